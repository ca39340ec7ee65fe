# File: hlacovid/association/base.py
# Location: hlacovid/hlacovid/association/base.py
"""
Core types shared by the per-locus analysis components.

Defines the AnalysisParams dataclass, the tagged ``Outcome`` result type
(``Ok`` / ``Skipped`` / ``Failed``), the explicit regression ``ModelSpec`` and
the result dataclasses assembled per allele, per outcome and per locus.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar, Union

if TYPE_CHECKING:
    from hlacovid.association.filtering import FilterStats
    from hlacovid.association.imputation import ImputationResult

logger = logging.getLogger("hlacovid")

T = TypeVar("T")

DEFAULT_LOCI: tuple[str, ...] = ("A", "B", "C", "DRB1", "DQA1", "DQB1", "DPA1", "DPB1")
DEFAULT_REQUIRED_VARS: tuple[str, ...] = ("severity", "hospitalization", "asymptomatic")


# ---------------------------------------------------------------------------
# Tagged outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful stage result wrapping ``value``."""

    value: T


@dataclass(frozen=True)
class Skipped:
    """Stage intentionally not run (e.g. no imputation model for a locus)."""

    reason: str


@dataclass(frozen=True)
class Failed:
    """
    Recoverable, locus-scoped failure.

    Fields
    ------
    stage : str
        Stage name, e.g. "HLA imputation" or "OR calculation".
    identifier : str
        Entity the stage was working on (locus or allele).
    error : str
        Human-readable failure message.
    """

    stage: str
    identifier: str
    error: str

    def describe(self) -> str:
        """Log line in the ``Error in <stage> for <identifier>: <error>`` format."""
        return f"Error in {self.stage} for {self.identifier}: {self.error}"


Outcome = Union[Ok[T], Skipped, Failed]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class AnalysisParams:
    """
    Typed view of the ``analysis_params``, ``report_params`` and
    ``clinical_columns`` configuration sections.

    Fields
    ------
    min_freq : int
        Minimum number of occurrences for an allele to be kept. Default: 10.
    required_vars : list[str]
        Columns that must be non-missing for a sample to be analysed.
    p_threshold : float
        Significance threshold used for the "Significant Findings" section.
    outcomes : list[str]
        Binary outcome columns tested for every locus.
    loci : list[str]
        HLA locus panel, processed in this order.
    workers : int
        Number of parallel locus workers. 1 = sequential, -1 = os.cpu_count().
    correction_method : str
        "fdr" (Benjamini-Hochberg) or "bonferroni" for per-allele q-values.
    confidence_level : float
        Confidence level of the reported odds ratio intervals.
    """

    min_freq: int = 10
    required_vars: list[str] = field(default_factory=lambda: list(DEFAULT_REQUIRED_VARS))
    p_threshold: float = 0.05
    outcomes: list[str] = field(default_factory=lambda: ["severity"])
    loci: list[str] = field(default_factory=lambda: list(DEFAULT_LOCI))
    workers: int = 1
    correction_method: str = "fdr"
    confidence_level: float = 0.95

    id_column: str = "id"
    """Sample identifier column of the clinical table."""

    sex_column: str = "sex"
    """Raw categorical sex column."""

    age_column: str = "age"
    """Raw age column (numeric after decimal normalization)."""

    sex_levels: list[str] = field(default_factory=lambda: ["female", "male"])
    """Sex categories in code order: first level -> 1, second level -> 2."""

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> AnalysisParams:
        """Build parameters from a merged configuration dictionary."""
        analysis = cfg.get("analysis_params") or {}
        report = cfg.get("report_params") or {}
        columns = cfg.get("clinical_columns") or {}
        defaults = cls()
        return cls(
            min_freq=int(analysis.get("min_freq", defaults.min_freq)),
            required_vars=list(analysis.get("required_vars", defaults.required_vars)),
            p_threshold=float(analysis.get("p_threshold", defaults.p_threshold)),
            outcomes=list(analysis.get("outcomes", defaults.outcomes)),
            loci=[str(locus) for locus in analysis.get("loci", defaults.loci)],
            workers=int(analysis.get("workers", defaults.workers)),
            correction_method=str(
                analysis.get("correction_method", defaults.correction_method)
            ),
            confidence_level=float(report.get("confidence_level", defaults.confidence_level)),
            id_column=str(columns.get("id", defaults.id_column)),
            sex_column=str(columns.get("sex", defaults.sex_column)),
            age_column=str(columns.get("age", defaults.age_column)),
            sex_levels=list(columns.get("sex_levels", defaults.sex_levels)),
        )


# ---------------------------------------------------------------------------
# Model definition and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelSpec:
    """
    Explicit logistic regression model definition.

    The design matrix is ``[intercept, allele term columns..., covariates...]``.
    ``allele_term`` is None for the covariates-only (null) model.
    """

    outcome: str
    covariates: tuple[str, ...]
    allele_term: str | None = None

    def null(self) -> ModelSpec:
        """Same model without the allele term."""
        return ModelSpec(outcome=self.outcome, covariates=self.covariates, allele_term=None)


@dataclass(frozen=True)
class AssociationResult:
    """Covariate-adjusted association of one allele with one outcome.

    Odds ratio and interval bounds are on the exponentiated scale.
    """

    allele: str
    odds_ratio: float
    ci_lower: float
    ci_upper: float
    p_value: float
    n_samples: int
    n_carriers: int


@dataclass(frozen=True)
class LocusTestResult:
    """Nested likelihood-ratio test (covariates-only vs covariates + allele)."""

    test_statistic: float
    p_value: float
    degrees_of_freedom: int


@dataclass(frozen=True)
class OutcomeAssociation:
    """
    All association results of one locus for one outcome variable.

    ``q_values`` maps allele -> multiple-testing corrected Wald p-value.
    ``failed_alleles`` maps allele -> failure message (Failed-soft alleles).
    ``locus_test`` is None when the LRT fit was degenerate; the reason is
    kept in ``locus_test_error``.
    """

    outcome: str
    allele_results: tuple[AssociationResult, ...]
    locus_test: LocusTestResult | None
    q_values: dict[str, float] = field(default_factory=dict)
    failed_alleles: dict[str, str] = field(default_factory=dict)
    locus_test_error: str | None = None


@dataclass(frozen=True)
class LocusResult:
    """Everything produced for one locus; assembled once, never mutated."""

    locus: str
    imputation: ImputationResult
    filter_stats: FilterStats
    associations: dict[str, OutcomeAssociation]
    allele_column: str
    allele_frequencies: Any = None


class LocusState(str, enum.Enum):
    """Per-locus processing state."""

    PENDING = "Pending"
    IMPUTING = "Imputing"
    FILTERING = "Filtering"
    TESTING = "Testing"
    REPORTING = "Reporting"
    DONE = "Done"
    SKIPPED = "Skipped"
