"""
Per-locus HLA association analysis.

Components, in processing order:
- ImputationAdapter: runs the locus imputation model, scores confidence
- DataFilter: covariate standardization, complete cases, allele frequency
- AssociationTester: per-allele odds ratios and the locus likelihood-ratio test
- LocusOrchestrator: drives the components over the locus panel
"""

from hlacovid.association.base import (
    AnalysisParams,
    AssociationResult,
    Failed,
    LocusResult,
    LocusState,
    LocusTestResult,
    ModelSpec,
    Ok,
    Outcome,
    OutcomeAssociation,
    Skipped,
)
from hlacovid.association.covariates import CovariateProcessor
from hlacovid.association.engine import AnalysisRun, LocusOrchestrator
from hlacovid.association.filtering import DataFilter, FilterStats
from hlacovid.association.imputation import (
    HLAPrediction,
    ImputationAdapter,
    ImputationMetrics,
    ImputationModel,
    ImputationResult,
)
from hlacovid.association.regression import AssociationTester

__all__ = [
    "AnalysisParams",
    "AnalysisRun",
    "AssociationResult",
    "AssociationTester",
    "CovariateProcessor",
    "DataFilter",
    "Failed",
    "FilterStats",
    "HLAPrediction",
    "ImputationAdapter",
    "ImputationMetrics",
    "ImputationModel",
    "ImputationResult",
    "LocusOrchestrator",
    "LocusResult",
    "LocusState",
    "LocusTestResult",
    "ModelSpec",
    "Ok",
    "Outcome",
    "OutcomeAssociation",
    "Skipped",
]
