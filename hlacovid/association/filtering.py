# File: hlacovid/association/filtering.py
# Location: hlacovid/hlacovid/association/filtering.py
"""
Sample filtering with auditable counts.

``DataFilter.filter`` applies three stages in a fixed order:

1. covariate standardization (delegates to ``CovariateProcessor``),
2. complete-case filter on the required variables,
3. allele frequency filter (alleles seen fewer than ``min_freq`` times are
   removed together with their samples).

The counts at each stage boundary are returned as ``FilterStats`` where
``initial_count == final_count + missing_filtered + frequency_filtered``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass

import pandas as pd

from hlacovid.association.covariates import CovariateProcessor
from hlacovid.pipeline_core.error_handling import DataValidationError

logger = logging.getLogger("hlacovid")


@dataclass(frozen=True)
class FilterStats:
    """Sample counts recorded at each filter stage boundary."""

    initial_count: int
    missing_filtered: int
    frequency_filtered: int
    final_count: int
    total_filtered_percent: float

    def to_dict(self) -> dict:
        """Plain dictionary view, used by the report writers."""
        return asdict(self)


def calculate_filtering_stats(initial: int, after_missing: int, final: int) -> FilterStats:
    """Build FilterStats from the counts before, between and after the two filters."""
    percent = ((initial - final) / initial) * 100 if initial else 0.0
    return FilterStats(
        initial_count=initial,
        missing_filtered=initial - after_missing,
        frequency_filtered=after_missing - final,
        final_count=final,
        total_filtered_percent=percent,
    )


def filter_missing_values(data: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Keep rows without a missing value in any of ``columns``."""
    absent = [c for c in columns if c not in data.columns]
    if absent:
        raise DataValidationError(
            f"Required variable(s) not present in data: {', '.join(absent)}",
            field=absent[0],
            stage="filtering",
        )
    if not columns:
        return data
    return data.loc[data[list(columns)].notna().all(axis=1)]


def filter_by_allele_frequency(
    data: pd.DataFrame, allele_column: str, min_freq: int = 10
) -> pd.DataFrame:
    """Keep rows whose ``allele_column`` value occurs at least ``min_freq`` times."""
    freq_table = data[allele_column].value_counts(dropna=True)
    valid_alleles = freq_table.index[freq_table >= min_freq]
    return data.loc[data[allele_column].isin(valid_alleles)]


class DataFilter:
    """
    Multi-stage sample filter for one locus.

    Parameters
    ----------
    covariates : CovariateProcessor, optional
        Processor used for stage 1. A default processor is created if omitted.
    logger : logging.Logger, optional
        Logger for filter summaries. Defaults to the package logger.
    """

    def __init__(
        self,
        covariates: CovariateProcessor | None = None,
        logger: logging.Logger | None = None,
    ):
        self.logger = logger or logging.getLogger("hlacovid")
        self.covariates = covariates or CovariateProcessor(logger=self.logger)

    def filter(
        self,
        data: pd.DataFrame,
        allele_column: str,
        required_vars: Sequence[str],
        min_freq: int = 10,
    ) -> tuple[pd.DataFrame, FilterStats]:
        """
        Standardize covariates, drop incomplete cases, drop rare alleles.

        Parameters
        ----------
        data : pd.DataFrame
            Imputed genotype calls joined to clinical records.
        allele_column : str
            Column holding the allele call that is filtered on frequency.
        required_vars : sequence of str
            Columns that must be non-missing.
        min_freq : int
            Minimum allele occurrence count on the complete cases.

        Returns
        -------
        filtered_data : pd.DataFrame
        stats : FilterStats
        """
        if allele_column not in data.columns:
            raise DataValidationError(
                f"Allele column '{allele_column}' not present in data",
                field=allele_column,
                stage="filtering",
            )
        initial_count = len(data)

        processed = self.covariates.standardize(data)

        complete = filter_missing_values(processed, required_vars)
        after_missing_count = len(complete)

        filtered = filter_by_allele_frequency(complete, allele_column, min_freq)
        final_count = len(filtered)

        stats = calculate_filtering_stats(initial_count, after_missing_count, final_count)
        self.logger.info(
            f"Filtering {allele_column}: {stats.initial_count} samples -> {stats.final_count} "
            f"({stats.missing_filtered} incomplete, {stats.frequency_filtered} rare allele; "
            f"{stats.total_filtered_percent:.1f}% removed)"
        )
        return filtered, stats
