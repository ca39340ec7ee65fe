"""Shared pytest fixtures for all test modules."""

import logging

import pandas as pd
import pytest

from hlacovid.association.base import AnalysisParams
from hlacovid.association.covariates import CovariateProcessor
from tests.mocks import FakeHLAModel, make_clinical_data, make_genetic_data


@pytest.fixture
def params() -> AnalysisParams:
    """Default analysis parameters restricted to one outcome and locus A."""
    return AnalysisParams(outcomes=["severity"], loci=["A"])


@pytest.fixture
def test_logger() -> logging.Logger:
    """Named logger injected into components so caplog can capture it."""
    return logging.getLogger("hlacovid.test")


@pytest.fixture
def clinical_data() -> pd.DataFrame:
    """200 synthetic clinical records, no missing values."""
    return make_clinical_data(n=200, seed=1)


@pytest.fixture
def genetic_data(clinical_data):
    """Genetic samples matching the synthetic clinical records."""
    return make_genetic_data(clinical_data["id"].tolist())


@pytest.fixture
def model_registry():
    """Registry with a deterministic model for locus A only."""
    return {"A": FakeHLAModel()}


@pytest.fixture
def standardized_data(clinical_data) -> pd.DataFrame:
    """Synthetic clinical records with cyclic A alleles, covariates standardized."""
    data = clinical_data.copy()
    alleles = ["A*01:01", "A*02:01", "A*03:01", "A*11:01"]
    data["A_allele1"] = [alleles[i % len(alleles)] for i in range(len(data))]
    return CovariateProcessor().standardize(data)
