"""
Unit tests for the multi-stage sample filter.

Checks stage order, count conservation in FilterStats, the allele
frequency threshold and the error paths.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from hlacovid.association.covariates import AGE_COLUMN, SEX_COLUMN
from hlacovid.association.filtering import (
    DataFilter,
    FilterStats,
    calculate_filtering_stats,
    filter_by_allele_frequency,
    filter_missing_values,
)
from hlacovid.pipeline_core.error_handling import DataValidationError, InvalidInputError
from tests.mocks import make_clinical_data

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _with_alleles(data: pd.DataFrame, alleles: list[str]) -> pd.DataFrame:
    out = data.copy()
    out["A_allele1"] = [alleles[i % len(alleles)] for i in range(len(out))]
    return out


# ---------------------------------------------------------------------------
# Stage helpers
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestFilterHelpers:
    def test_filter_missing_values_complete_cases(self):
        df = pd.DataFrame({"a": [1, None, 3], "b": [1, 2, None], "c": [None, None, None]})
        out = filter_missing_values(df, ["a", "b"])
        assert out.index.tolist() == [0]

    def test_filter_missing_values_absent_column_raises(self):
        with pytest.raises(DataValidationError, match="zzz"):
            filter_missing_values(pd.DataFrame({"a": [1]}), ["a", "zzz"])

    def test_filter_missing_values_no_columns_keeps_all(self):
        df = pd.DataFrame({"a": [None, 1]})
        assert len(filter_missing_values(df, [])) == 2

    def test_filter_by_allele_frequency_threshold_inclusive(self):
        """An allele seen exactly min_freq times is kept."""
        df = pd.DataFrame({"allele": ["x"] * 10 + ["y"] * 9 + ["z"] * 11})
        out = filter_by_allele_frequency(df, "allele", min_freq=10)
        assert set(out["allele"]) == {"x", "z"}
        assert len(out) == 21

    def test_calculate_filtering_stats(self):
        stats = calculate_filtering_stats(200, 180, 170)
        assert stats == FilterStats(
            initial_count=200,
            missing_filtered=20,
            frequency_filtered=10,
            final_count=170,
            total_filtered_percent=15.0,
        )

    def test_calculate_filtering_stats_empty_input(self):
        stats = calculate_filtering_stats(0, 0, 0)
        assert stats.total_filtered_percent == 0.0


# ---------------------------------------------------------------------------
# DataFilter.filter()
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestDataFilter:
    def test_counts_for_missing_outcomes(self):
        """200 samples, 20 without severity, all alleles frequent -> 180 remain."""
        data = _with_alleles(make_clinical_data(n=200, n_missing_severity=20), ["a", "b", "c"])
        filtered, stats = DataFilter().filter(data, "A_allele1", ["severity"], min_freq=10)

        assert stats.initial_count == 200
        assert stats.missing_filtered == 20
        assert stats.frequency_filtered == 0
        assert stats.final_count == 180
        assert len(filtered) == 180
        assert stats.total_filtered_percent == pytest.approx(10.0)

    def test_count_conservation(self):
        """initial = final + missing_filtered + frequency_filtered."""
        alleles = ["common"] * 7 + ["rare1", "rare2", "rare3"]
        data = _with_alleles(make_clinical_data(n=100, n_missing_severity=15), alleles)
        filtered, stats = DataFilter().filter(data, "A_allele1", ["severity"], min_freq=10)

        assert stats.initial_count == (
            stats.final_count + stats.missing_filtered + stats.frequency_filtered
        )
        assert stats.final_count == len(filtered)

    def test_frequency_counted_after_missing_filter(self):
        """Rare-allele check sees only complete cases."""
        data = make_clinical_data(n=30, seed=3)
        data["A_allele1"] = ["x"] * 20 + ["y"] * 10
        data.loc[20:24, "severity"] = np.nan  # 5 'y' samples incomplete -> 5 left
        filtered, stats = DataFilter().filter(data, "A_allele1", ["severity"], min_freq=10)

        assert stats.missing_filtered == 5
        assert stats.frequency_filtered == 5
        assert set(filtered["A_allele1"]) == {"x"}

    def test_output_has_standardized_covariates(self):
        data = _with_alleles(make_clinical_data(n=50), ["a", "b"])
        filtered, _ = DataFilter().filter(data, "A_allele1", ["severity"], min_freq=1)
        for col in (SEX_COLUMN, AGE_COLUMN, "PC1_scaled", "PC2_scaled"):
            assert col in filtered.columns

    def test_no_remaining_samples(self):
        data = _with_alleles(make_clinical_data(n=20), ["a", "b"])
        filtered, stats = DataFilter().filter(data, "A_allele1", ["severity"], min_freq=50)
        assert filtered.empty
        assert stats.final_count == 0
        assert stats.total_filtered_percent == pytest.approx(100.0)

    def test_missing_allele_column_raises(self):
        with pytest.raises(DataValidationError, match="A_allele1"):
            DataFilter().filter(make_clinical_data(n=10), "A_allele1", ["severity"])

    def test_invalid_covariate_propagates(self):
        data = _with_alleles(make_clinical_data(n=10), ["a"])
        data["age"] = "unknown"
        with pytest.raises(InvalidInputError):
            DataFilter().filter(data, "A_allele1", ["severity"], min_freq=1)

    def test_summary_logged(self, caplog, test_logger):
        data = _with_alleles(make_clinical_data(n=40), ["a", "b"])
        with caplog.at_level("INFO", logger="hlacovid.test"):
            DataFilter(logger=test_logger).filter(data, "A_allele1", ["severity"], min_freq=1)
        assert "Filtering A_allele1: 40 samples -> 40" in caplog.text
