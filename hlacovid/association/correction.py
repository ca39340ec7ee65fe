# File: hlacovid/association/correction.py
# Location: hlacovid/hlacovid/association/correction.py
"""
Multiple testing correction for per-allele Wald p-values.

Thin wrapper around statsmodels ``multipletests``. The locus-level
likelihood-ratio test is the primary significance gate; the corrected
per-allele values are reported alongside it as q-values.
"""

from __future__ import annotations

import logging

import numpy as np
import statsmodels.stats.multitest as smm

logger = logging.getLogger("hlacovid")

_METHODS = {"fdr": "fdr_bh", "bonferroni": "bonferroni"}


def apply_correction(
    pvals: list[float] | np.ndarray,
    method: str = "fdr",
) -> np.ndarray:
    """
    Apply multiple testing correction to a sequence of p-values.

    Parameters
    ----------
    pvals : list of float or np.ndarray
        Raw p-values to correct. Must be in [0, 1].
    method : str
        "fdr" (Benjamini-Hochberg, default) or "bonferroni". Unknown values
        fall back to "fdr" with a warning.

    Returns
    -------
    np.ndarray
        Corrected p-values in the same order as input.
    """
    pvals_array = np.asarray(pvals, dtype=float)

    if len(pvals_array) == 0:
        return pvals_array

    if method not in _METHODS:
        logger.warning(f"Unknown correction method '{method}'; using fdr")
        method = "fdr"

    corrected: np.ndarray = smm.multipletests(pvals_array, method=_METHODS[method])[1]
    return corrected
