# File: hlacovid/association/imputation.py
# Location: hlacovid/hlacovid/association/imputation.py
"""
HLA imputation adapter and imputation-confidence metrics.

The imputation model itself is an external object looked up per locus in a
model registry. It must implement the ``ImputationModel`` protocol: given the
genetic samples and a covariate matrix indexed by sample ID, return an
``HLAPrediction`` holding one call per genetic sample and the posterior
probability vector over candidate genotypes.

Confidence tiers
----------------
The maximum posterior probability of every sample falls into exactly one tier:

``low``     max prob < 0.5
``medium``  0.5 <= max prob < 0.75
``high``    max prob >= 0.75

Tier percentages are reported in ``ImputationMetrics`` and sum to 100.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Mapping, Protocol

import numpy as np
import pandas as pd

from hlacovid.association.base import AnalysisParams, Failed, Ok, Outcome, Skipped
from hlacovid.association.covariates import CovariateProcessor
from hlacovid.models import get_hla_model

logger = logging.getLogger("hlacovid")

LOW_CONFIDENCE = 0.5
HIGH_CONFIDENCE = 0.75

_STAGE = "HLA imputation"
_CALL_COLUMNS = ["sample_id", "allele1", "allele2", "prob"]


@dataclass(frozen=True)
class HLAPrediction:
    """
    Raw output of an imputation model call.

    Fields
    ------
    calls : pd.DataFrame
        Columns ``sample_id``, ``allele1``, ``allele2``, ``prob``; one row per
        imputed sample.
    postprob : np.ndarray, shape (n_samples, n_candidate_genotypes)
        Posterior probabilities, rows aligned with ``calls``.
    """

    calls: pd.DataFrame
    postprob: np.ndarray


class ImputationModel(Protocol):
    """Interface expected from the objects stored in the model registry."""

    def predict(self, genetic_data: Any, covariates: pd.DataFrame) -> HLAPrediction:
        """Impute HLA genotypes for every sample of ``genetic_data``."""
        ...


@dataclass(frozen=True)
class ImputationMetrics:
    """Percentage of imputed samples in each confidence tier."""

    low_conf: float
    med_conf: float
    high_conf: float
    n_samples: int

    def to_dict(self) -> dict:
        """Plain dictionary view, used by the report writers."""
        return asdict(self)


@dataclass(frozen=True)
class ImputationResult:
    """Genotype calls, posterior probabilities and confidence metrics for one locus."""

    locus: str
    genotypes: pd.DataFrame
    probabilities: np.ndarray
    max_probabilities: np.ndarray
    metrics: ImputationMetrics
    n_matched: int


def calculate_imputation_metrics(postprob: np.ndarray) -> tuple[ImputationMetrics, np.ndarray]:
    """
    Compute confidence tier percentages from a posterior probability matrix.

    Parameters
    ----------
    postprob : np.ndarray, shape (n_samples, n_candidates)

    Returns
    -------
    metrics : ImputationMetrics
    max_probs : np.ndarray, shape (n_samples,)
        Maximum posterior probability per sample.

    Raises
    ------
    ValueError
        If the matrix holds no samples or a sample row is not finite.
    """
    probs = np.asarray(postprob, dtype=float)
    if probs.ndim == 1:
        probs = probs[:, np.newaxis]
    if probs.shape[0] == 0:
        raise ValueError("imputation returned no samples")

    max_probs = probs.max(axis=1)
    n_invalid = int((~np.isfinite(max_probs)).sum())
    if n_invalid:
        raise ValueError(f"{n_invalid} sample(s) have non-finite posterior probabilities")

    low = max_probs < LOW_CONFIDENCE
    high = max_probs >= HIGH_CONFIDENCE
    medium = (max_probs >= LOW_CONFIDENCE) & (max_probs < HIGH_CONFIDENCE)

    metrics = ImputationMetrics(
        low_conf=float(low.mean() * 100),
        med_conf=float(medium.mean() * 100),
        high_conf=float(high.mean() * 100),
        n_samples=int(max_probs.size),
    )
    return metrics, max_probs


def prepare_imputation_data(
    sample_ids: list[str],
    clinical_data: pd.DataFrame,
    processor: CovariateProcessor,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Match genetic samples to clinical records and build their covariate matrix.

    Returns
    -------
    matched_data : pd.DataFrame
        Standardized clinical records of the matched samples, indexed by sample ID
        in genetic sample order.
    covariates : pd.DataFrame
        Covariate matrix of the matched samples (same index).
    """
    id_column = processor.params.id_column
    clinical = clinical_data.drop_duplicates(subset=id_column).set_index(id_column)
    clinical.index = clinical.index.astype(str)
    matched_ids = [sid for sid in sample_ids if sid in clinical.index]
    matched = processor.standardize(clinical.loc[matched_ids])
    return matched, processor.covariate_matrix(matched)


def prepare_analysis_data(
    imputation: ImputationResult,
    clinical_data: pd.DataFrame,
    id_column: str = "id",
) -> pd.DataFrame:
    """
    Join genotype calls onto clinical records by sample identifier.

    Calls without a clinical record are excluded and a duplicated clinical
    identifier keeps its first record. The call columns are named
    ``<locus>_allele1``, ``<locus>_allele2`` and ``<locus>_prob``.
    """
    locus = imputation.locus
    calls = imputation.genotypes.rename(
        columns={
            "sample_id": id_column,
            "allele1": f"{locus}_allele1",
            "allele2": f"{locus}_allele2",
            "prob": f"{locus}_prob",
        }
    )
    calls[id_column] = calls[id_column].astype(str)
    clinical = clinical_data.copy()
    clinical[id_column] = clinical[id_column].astype(str)
    clinical = clinical.drop_duplicates(subset=id_column)
    return clinical.merge(calls, on=id_column, how="inner").reset_index(drop=True)


class ImputationAdapter:
    """
    Runs the locus-specific imputation model and scores its confidence.

    Parameters
    ----------
    params : AnalysisParams, optional
    covariates : CovariateProcessor, optional
        Processor used to build the covariate matrix for matched samples.
    logger : logging.Logger, optional
        Logger for failures and progress. Defaults to the package logger.
    """

    def __init__(
        self,
        params: AnalysisParams | None = None,
        covariates: CovariateProcessor | None = None,
        logger: logging.Logger | None = None,
    ):
        self.params = params or AnalysisParams()
        self.logger = logger or logging.getLogger("hlacovid")
        self.covariates = covariates or CovariateProcessor(self.params, logger=self.logger)

    def impute(
        self,
        locus_id: str,
        genetic_data: Any,
        clinical_data: pd.DataFrame,
        model_registry: Mapping[str, Any],
    ) -> Outcome[ImputationResult]:
        """
        Impute one locus.

        Returns
        -------
        Ok(ImputationResult)
            On success.
        Skipped
            When the registry has no model for ``locus_id``.
        Failed
            When data preparation or the model call raises; the failure is
            logged and never propagated.
        """
        model = get_hla_model(locus_id, model_registry)
        if model is None:
            self.logger.info(f"No imputation model for HLA-{locus_id}; skipping")
            return Skipped(reason=f"no imputation model for HLA-{locus_id}")

        try:
            sample_ids = [str(s) for s in genetic_data.sample_ids]
            matched, covariates = prepare_imputation_data(
                sample_ids, clinical_data, self.covariates
            )
            n_unmatched = len(sample_ids) - len(matched)
            if n_unmatched:
                self.logger.warning(
                    f"HLA-{locus_id}: {n_unmatched} genetic sample(s) have no clinical record"
                )

            prediction = model.predict(genetic_data, covariates)
            calls = pd.DataFrame(prediction.calls).reset_index(drop=True)
            missing_cols = [c for c in _CALL_COLUMNS if c not in calls.columns]
            if missing_cols:
                raise ValueError(f"prediction lacks column(s): {', '.join(missing_cols)}")

            postprob = np.asarray(prediction.postprob, dtype=float)
            if postprob.shape[0] != len(calls):
                raise ValueError(
                    f"posterior matrix has {postprob.shape[0]} rows for {len(calls)} calls"
                )
            metrics, max_probs = calculate_imputation_metrics(postprob)
        except Exception as e:
            failure = Failed(stage=_STAGE, identifier=locus_id, error=str(e))
            self.logger.error(failure.describe())
            return failure

        self.logger.info(
            f"HLA-{locus_id}: imputed {metrics.n_samples} samples "
            f"(low {metrics.low_conf:.1f}%, medium {metrics.med_conf:.1f}%, "
            f"high {metrics.high_conf:.1f}%)"
        )
        return Ok(
            ImputationResult(
                locus=locus_id,
                genotypes=calls[_CALL_COLUMNS].copy(),
                probabilities=postprob,
                max_probabilities=max_probs,
                metrics=metrics,
                n_matched=len(matched),
            )
        )
