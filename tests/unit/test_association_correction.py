"""
Unit tests for per-allele multiple testing correction.

apply_correction() must agree with statsmodels multipletests() and keep the
input order, because q-values are mapped back to alleles by position.
"""

from __future__ import annotations

import numpy as np
import pytest
import statsmodels.stats.multitest as smm

from hlacovid.association.correction import apply_correction


def _smm(pvals, method):
    return smm.multipletests(np.asarray(pvals, dtype=float), method=method)[1]


@pytest.mark.unit
class TestApplyCorrection:
    @pytest.mark.parametrize(
        "pvals",
        [
            [0.01, 0.05, 0.1, 0.2, 0.5, 0.9],
            [1e-10, 1e-6, 0.001, 0.01],
            [1.0, 1.0, 1.0],
            [0.04],
        ],
    )
    def test_fdr_matches_statsmodels(self, pvals):
        np.testing.assert_array_almost_equal(apply_correction(pvals), _smm(pvals, "fdr_bh"))

    def test_bonferroni_matches_statsmodels(self):
        pvals = [0.01, 0.02, 0.3, 0.6]
        result = apply_correction(pvals, method="bonferroni")
        np.testing.assert_array_almost_equal(result, _smm(pvals, "bonferroni"))
        assert result[-1] == 1.0

    def test_order_preserved(self):
        pvals = [0.5, 0.01, 0.2, 0.001]
        np.testing.assert_array_equal(apply_correction(pvals), _smm(pvals, "fdr_bh"))

    def test_unknown_method_falls_back_to_fdr(self, caplog):
        pvals = [0.01, 0.05, 0.2]
        with caplog.at_level("WARNING", logger="hlacovid"):
            result = apply_correction(pvals, method="holm-ish")
        np.testing.assert_array_equal(result, apply_correction(pvals, method="fdr"))
        assert "Unknown correction method 'holm-ish'" in caplog.text

    def test_empty_input(self):
        result = apply_correction([])
        assert isinstance(result, np.ndarray)
        assert result.size == 0

    def test_never_below_raw(self):
        rng = np.random.default_rng(42)
        pvals = rng.uniform(0, 1, 50)
        assert np.all(apply_correction(pvals) >= pvals - 1e-15)
