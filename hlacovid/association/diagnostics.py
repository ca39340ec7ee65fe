# File: hlacovid/association/diagnostics.py
# Location: hlacovid/hlacovid/association/diagnostics.py
"""
Per-locus diagnostics.

Provides:
- allele_frequency_table(): allele counts and case counts on the filtered data
- write_probability_plot(): histogram of maximum posterior probabilities with
  the confidence tier thresholds marked
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import numpy as np
import pandas as pd

from hlacovid.association.imputation import HIGH_CONFIDENCE, LOW_CONFIDENCE

logger = logging.getLogger("hlacovid")


def allele_frequency_table(
    data: pd.DataFrame, allele_column: str, outcomes: Sequence[str] = ()
) -> pd.DataFrame:
    """
    Allele counts for the filtered samples of one locus.

    Returns
    -------
    pd.DataFrame
        Columns ``allele``, ``count``, ``percent`` and ``<outcome>_cases`` for
        every outcome present in ``data``; sorted by descending count.
    """
    columns = ["allele", "count", "percent"] + [f"{o}_cases" for o in outcomes if o in data]
    if data.empty:
        return pd.DataFrame(columns=columns)

    counts = data[allele_column].astype(str).value_counts()
    table = pd.DataFrame({"allele": counts.index, "count": counts.to_numpy()})
    table["percent"] = table["count"] / table["count"].sum() * 100

    for outcome in outcomes:
        if outcome not in data:
            continue
        cases = (
            pd.to_numeric(data[outcome], errors="coerce")
            .eq(1)
            .groupby(data[allele_column].astype(str))
            .sum()
        )
        table[f"{outcome}_cases"] = table["allele"].map(cases).fillna(0).astype(int)

    return table.sort_values(["count", "allele"], ascending=[False, True]).reset_index(drop=True)


def write_probability_plot(
    max_probabilities: np.ndarray,
    locus: str,
    output_path: str | Path,
) -> Path:
    """Write the posterior probability histogram of one locus as PNG.

    Uses matplotlib's Agg backend so it works on headless HPC nodes. The
    backend MUST be set before importing matplotlib.pyplot.

    Parameters
    ----------
    max_probabilities : np.ndarray
        Maximum posterior probability per imputed sample.
    locus : str
        HLA locus, used in the title.
    output_path : str | Path
        Output file path, e.g. ``plots/severity/HLA_A_probability_dist.png``.

    Returns
    -------
    Path
        The written file.
    """
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(6, 4.5))
    ax.hist(
        np.asarray(max_probabilities, dtype=float),
        bins=20,
        range=(0.0, 1.0),
        color="lightblue",
        edgecolor="darkblue",
    )
    for threshold in (LOW_CONFIDENCE, HIGH_CONFIDENCE):
        ax.axvline(threshold, color="red", linestyle="--", linewidth=1)

    ax.set_xlabel("Posterior Probability")
    ax.set_ylabel("Frequency")
    ax.set_title(f"Posterior Probability Distribution - HLA-{locus}")
    fig.tight_layout()

    fig.savefig(str(output_path), dpi=150)
    plt.close(fig)

    logger.info(f"Probability plot written to {output_path}")
    return output_path
