"""Synthetic inputs and imputation model doubles.

The model classes live in an importable module (not in conftest) so they
can be pickled into process-pool workers and into registry files.
"""

from collections.abc import Sequence

import numpy as np
import pandas as pd

from hlacovid.association.imputation import HLAPrediction
from hlacovid.genetic import GeneticData

DEFAULT_ALLELES = ("A*01:01", "A*02:01", "A*03:01", "A*11:01")


def make_clinical_data(
    n: int = 200,
    seed: int = 0,
    n_missing_severity: int = 0,
    n_pcs: int = 2,
    decimal_comma: bool = False,
) -> pd.DataFrame:
    """Clinical table with ids S000.., sex, age, PCs and three 0/1 outcomes."""
    rng = np.random.default_rng(seed)
    data = pd.DataFrame(
        {
            "id": [f"S{i:03d}" for i in range(n)],
            "sex": rng.choice(["female", "male"], size=n),
            "age": rng.normal(55, 15, size=n).round(1),
        }
    )
    for k in range(1, n_pcs + 1):
        data[f"PC{k}"] = rng.normal(0, 0.02, size=n).round(5)
    data["severity"] = rng.binomial(1, 0.4, size=n).astype(float)
    data["hospitalization"] = rng.binomial(1, 0.3, size=n).astype(float)
    data["asymptomatic"] = rng.binomial(1, 0.2, size=n).astype(float)

    if n_missing_severity:
        data.loc[: n_missing_severity - 1, "severity"] = np.nan
    if decimal_comma:
        data["age"] = data["age"].map(lambda v: f"{v}".replace(".", ","))
    return data


def make_genetic_data(sample_ids: Sequence[str], n_markers: int = 5, seed: int = 0) -> GeneticData:
    """Random 0/1/2 dosages for ``sample_ids``."""
    rng = np.random.default_rng(seed)
    genotypes = rng.integers(0, 3, size=(len(sample_ids), n_markers)).astype("float32")
    return GeneticData(sample_ids=list(sample_ids), genotypes=genotypes)


class FakeHLAModel:
    """
    Deterministic imputation model.

    Sample ``i`` of the genetic data gets ``alleles[i % len(alleles)]`` as
    both calls and max posterior ``probs[i % len(probs)]``.
    """

    def __init__(self, alleles: Sequence[str] = DEFAULT_ALLELES, probs: Sequence[float] = (0.9,)):
        self.alleles = list(alleles)
        self.probs = list(probs)

    def predict(self, genetic_data, covariates):
        ids = list(genetic_data.sample_ids)
        calls = [self.alleles[i % len(self.alleles)] for i in range(len(ids))]
        probs = np.array([self.probs[i % len(self.probs)] for i in range(len(ids))])
        postprob = np.column_stack([probs, (1 - probs) / 2, (1 - probs) / 2])
        return HLAPrediction(
            calls=pd.DataFrame(
                {"sample_id": ids, "allele1": calls, "allele2": calls, "prob": probs}
            ),
            postprob=postprob,
        )


class ExplodingModel:
    """Model whose prediction always raises."""

    def predict(self, genetic_data, covariates):
        raise RuntimeError("model exploded")


class MalformedModel:
    """Model returning calls without the probability column."""

    def predict(self, genetic_data, covariates):
        ids = list(genetic_data.sample_ids)
        return HLAPrediction(
            calls=pd.DataFrame({"sample_id": ids, "allele1": "X", "allele2": "X"}),
            postprob=np.ones((len(ids), 1)),
        )
