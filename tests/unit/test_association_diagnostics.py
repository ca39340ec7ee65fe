"""Unit tests for allele frequency tables and the probability histogram."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from hlacovid.association.diagnostics import allele_frequency_table, write_probability_plot


@pytest.mark.unit
class TestAlleleFrequencyTable:
    def test_counts_percent_and_cases(self):
        data = pd.DataFrame(
            {
                "A_allele1": ["x", "y", "x", "z", "x", "y"],
                "severity": [1, 0, 1, 1, 0, 1],
            }
        )
        table = allele_frequency_table(data, "A_allele1", ["severity"])

        assert table["allele"].tolist() == ["x", "y", "z"]
        assert table["count"].tolist() == [3, 2, 1]
        assert table["percent"].sum() == pytest.approx(100.0)
        assert table["severity_cases"].tolist() == [2, 1, 1]

    def test_ties_sorted_by_allele(self):
        data = pd.DataFrame({"A_allele1": ["b", "a"]})
        assert allele_frequency_table(data, "A_allele1")["allele"].tolist() == ["a", "b"]

    def test_absent_outcome_ignored(self):
        data = pd.DataFrame({"A_allele1": ["x"]})
        table = allele_frequency_table(data, "A_allele1", ["hospitalization"])
        assert "hospitalization_cases" not in table.columns

    def test_empty_data(self):
        data = pd.DataFrame({"A_allele1": [], "severity": []})
        table = allele_frequency_table(data, "A_allele1", ["severity"])
        assert table.empty
        assert list(table.columns) == ["allele", "count", "percent", "severity_cases"]


@pytest.mark.unit
class TestProbabilityPlot:
    def test_writes_png(self, tmp_path):
        probs = np.random.default_rng(0).uniform(0.2, 1.0, 100)
        target = tmp_path / "plots" / "HLA_DRB1_probability_dist.png"
        out = write_probability_plot(probs, "DRB1", target)
        assert out.exists()
        assert out.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"
