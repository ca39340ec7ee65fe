# File: hlacovid/association/regression.py
# Location: hlacovid/hlacovid/association/regression.py
"""
Covariate-adjusted logistic association tests.

Two tests are run per locus and outcome:

Per-allele odds ratio
    ``outcome ~ 1 + carrier(allele) + sex_numeric + age_scaled + PC*_scaled``
    fitted with statsmodels.Logit. The carrier indicator is 1 when the allele
    column equals the tested allele. OR = exp(beta), Wald interval
    exp(beta -/+ z * SE), Wald p-value. Exploratory.

Locus likelihood-ratio test
    Null model (covariates only) vs full model (covariates + categorical
    allele column, first level as reference). Statistic = deviance
    difference, df = number of extra parameters, chi2 p-value. This is the
    primary significance gate.

Design matrices are built from an explicit ``ModelSpec`` (ordered covariate
names plus one allele term); allele term columns are named
``<allele_column>[<level>]``.

Degenerate fits
---------------
A fit is reported as ``Failed`` (never raised) when:
- statsmodels raises (singular matrix, separation errors, ...)
- the optimizer reports non-convergence (per-allele fits only; the
  likelihood-ratio test only needs a finite log-likelihood)
- the allele term is aliased with the intercept/covariates and dropped
- more than one coefficient matches the allele term of a per-allele model
- the allele-term SE exceeds 100 (separation)
- the outcome is not coded 0/1 or has a single class
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence

import numpy as np
import pandas as pd
from scipy.stats import chi2, norm

from hlacovid.association.base import (
    AnalysisParams,
    AssociationResult,
    Failed,
    LocusTestResult,
    ModelSpec,
    Ok,
    Outcome,
    OutcomeAssociation,
)
from hlacovid.association.correction import apply_correction
from hlacovid.association.covariates import covariate_terms

logger = logging.getLogger("hlacovid")

# SE above which quasi-complete separation is assumed
_SEPARATION_BSE_THRESHOLD = 100.0

_INTERCEPT = "const"


class DegenerateFitError(Exception):
    """Raised internally when a model cannot be fitted or interpreted."""


def term_columns(names: Sequence[str], term: str) -> list[str]:
    """Design/coefficient names belonging to ``term`` (``term`` or ``term[level]``)."""
    prefix = f"{term}["
    return [n for n in names if n == term or n.startswith(prefix)]


def encode_allele_term(
    values: pd.Series, term: str, allele: str | None = None
) -> pd.DataFrame:
    """
    Encode the allele column for the design matrix.

    With ``allele`` set: a single 0/1 carrier indicator ``term[allele]``.
    Without: one-hot columns for every level but the first (sorted) level.
    """
    if allele is not None:
        indicator = (values.astype(str) == str(allele)).astype(float)
        return pd.DataFrame({f"{term}[{allele}]": indicator}, index=values.index)

    levels = sorted(values.astype(str).unique())
    return pd.DataFrame(
        {f"{term}[{level}]": (values.astype(str) == level).astype(float) for level in levels[1:]},
        index=values.index,
    )


def drop_aliased_columns(design: pd.DataFrame) -> tuple[pd.DataFrame, list[str]]:
    """
    Drop columns that are linear combinations of earlier columns.

    Columns are visited left to right and kept only if they increase the
    matrix rank, so the intercept and allele term take precedence over
    covariates appearing after them.
    """
    kept: list[str] = []
    dropped: list[str] = []
    rank = 0
    for col in design.columns:
        candidate = design[kept + [col]].to_numpy(dtype=float)
        new_rank = int(np.linalg.matrix_rank(candidate))
        if new_rank > rank:
            kept.append(col)
            rank = new_rank
        else:
            dropped.append(col)
    return design[kept], dropped


def build_design(
    data: pd.DataFrame, spec: ModelSpec, allele: str | None = None
) -> tuple[pd.Series, pd.DataFrame]:
    """
    Build outcome vector and design matrix for ``spec``.

    Rows with a missing value in the outcome, the allele column or any
    covariate are dropped (same rows for null and full models, because the
    allele column is always part of the model frame when it exists).

    Raises
    ------
    DegenerateFitError
        If the outcome is not binary 0/1, has a single class, or no rows remain.
    """
    used = [spec.outcome, *spec.covariates]
    if spec.allele_term is not None:
        used.append(spec.allele_term)
    missing = [c for c in used if c not in data.columns]
    if missing:
        raise DegenerateFitError(f"column(s) not in data: {', '.join(missing)}")

    frame = data[used].dropna()
    if frame.empty:
        raise DegenerateFitError("no complete rows for the model")

    y = pd.to_numeric(frame[spec.outcome], errors="coerce")
    if y.isna().any() or not set(y.unique()) <= {0, 1}:
        raise DegenerateFitError(f"outcome '{spec.outcome}' must be coded 0/1")
    if y.nunique() < 2:
        raise DegenerateFitError(f"outcome '{spec.outcome}' has a single class")

    parts = [pd.Series(1.0, index=frame.index, name=_INTERCEPT).to_frame()]
    if spec.allele_term is not None:
        parts.append(encode_allele_term(frame[spec.allele_term], spec.allele_term, allele))
    parts.append(frame[list(spec.covariates)].astype(float))
    design = pd.concat(parts, axis=1)
    return y.astype(float), design


def _run_logit(y: pd.Series, design: pd.DataFrame, method: str, maxiter: int):
    import statsmodels.api as sm

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        return sm.Logit(y, design).fit(method=method, disp=False, maxiter=maxiter)


def fit_logit(y: pd.Series, design: pd.DataFrame, require_convergence: bool = True):
    """
    Fit an unpenalized logistic regression after dropping aliased columns.

    Parameters
    ----------
    require_convergence : bool
        When True (Wald tests) non-convergence and non-finite estimates are
        degenerate. When False (likelihood-ratio tests) only the
        log-likelihood has to be finite: a quasi-separated level drives its
        coefficient towards infinity while the likelihood still converges.
        A Newton fit that raises or yields a non-finite likelihood is then
        retried with BFGS.

    Returns
    -------
    statsmodels LogitResults
        ``params``/``bse``/``pvalues`` are Series indexed by design column name.

    Raises
    ------
    DegenerateFitError
        On fitting errors, non-convergence or non-finite estimates.
    """
    design, dropped = drop_aliased_columns(design)
    if dropped:
        logger.debug(f"Dropped aliased design column(s): {', '.join(dropped)}")

    try:
        result = _run_logit(y, design, "newton", 100)
    except Exception as e:
        if require_convergence:
            raise DegenerateFitError(f"{type(e).__name__}: {e}") from e
        logger.debug(f"Newton fit failed ({type(e).__name__}: {e}); retrying with BFGS")
        result = None

    if not require_convergence:
        if result is None or not np.isfinite(result.llf):
            try:
                result = _run_logit(y, design, "bfgs", 1000)
            except Exception as e:
                raise DegenerateFitError(f"{type(e).__name__}: {e}") from e
        if not np.isfinite(result.llf):
            raise DegenerateFitError("non-finite log-likelihood")
        return result

    if not bool(result.mle_retvals.get("converged", True)):
        raise DegenerateFitError("logistic regression did not converge")
    if not (np.all(np.isfinite(result.params)) and np.all(np.isfinite(result.bse))):
        raise DegenerateFitError("non-finite coefficient estimates")
    return result


class AssociationTester:
    """
    Logistic regression association tests for one locus.

    Parameters
    ----------
    params : AnalysisParams, optional
        Supplies ``confidence_level`` and ``correction_method``.
    logger : logging.Logger, optional
        Logger for soft failures. Defaults to the package logger.
    """

    def __init__(self, params: AnalysisParams | None = None, logger: logging.Logger | None = None):
        self.params = params or AnalysisParams()
        self.logger = logger or logging.getLogger("hlacovid")

    @property
    def z_value(self) -> float:
        """Normal quantile for the configured two-sided confidence level."""
        return float(norm.ppf(1.0 - (1.0 - self.params.confidence_level) / 2.0))

    def _fail(self, stage: str, identifier: str, error: Exception | str) -> Failed:
        failure = Failed(stage=stage, identifier=str(identifier), error=str(error))
        self.logger.warning(failure.describe())
        return failure

    def test_allele(
        self,
        data: pd.DataFrame,
        allele: str,
        allele_column: str,
        outcome_var: str,
    ) -> Outcome[AssociationResult]:
        """
        Covariate-adjusted odds ratio of carrying ``allele``.

        ``data`` must be standardized (``sex_numeric``, ``age_scaled`` and
        ``PC*_scaled`` present).
        """
        spec = ModelSpec(
            outcome=outcome_var, covariates=covariate_terms(data), allele_term=allele_column
        )
        try:
            y, design = build_design(data, spec, allele=allele)
            fit = fit_logit(y, design)

            matches = term_columns(list(fit.params.index), allele_column)
            if not matches:
                raise DegenerateFitError("allele term absent from fitted model")
            if len(matches) > 1:
                raise DegenerateFitError(
                    f"{len(matches)} coefficients match the allele term: {', '.join(matches)}"
                )
            name = matches[0]
            beta = float(fit.params[name])
            se = float(fit.bse[name])
            if se > _SEPARATION_BSE_THRESHOLD:
                raise DegenerateFitError(f"separation suspected (SE={se:.1f})")
        except DegenerateFitError as e:
            return self._fail("OR calculation", allele, e)

        z = self.z_value
        return Ok(
            AssociationResult(
                allele=str(allele),
                odds_ratio=float(np.exp(beta)),
                ci_lower=float(np.exp(beta - z * se)),
                ci_upper=float(np.exp(beta + z * se)),
                p_value=float(fit.pvalues[name]),
                n_samples=int(len(y)),
                n_carriers=int(design[name].sum()),
            )
        )

    def test_locus(
        self, data: pd.DataFrame, allele_column: str, outcome_var: str
    ) -> Outcome[LocusTestResult]:
        """Likelihood-ratio test of the categorical allele term beyond covariates."""
        spec = ModelSpec(
            outcome=outcome_var, covariates=covariate_terms(data), allele_term=allele_column
        )
        try:
            y, full_design = build_design(data, spec)
            null_design = full_design.drop(columns=term_columns(full_design.columns, allele_column))

            null_fit = fit_logit(y, null_design, require_convergence=False)
            full_fit = fit_logit(y, full_design, require_convergence=False)

            df = int(round(full_fit.df_model - null_fit.df_model))
            if df <= 0:
                raise DegenerateFitError("allele term adds no estimable parameters")
        except DegenerateFitError as e:
            return self._fail("likelihood-ratio test", allele_column, e)

        statistic = max(2.0 * (float(full_fit.llf) - float(null_fit.llf)), 0.0)
        return Ok(
            LocusTestResult(
                test_statistic=statistic,
                p_value=float(chi2.sf(statistic, df)),
                degrees_of_freedom=df,
            )
        )

    def analyze(
        self, data: pd.DataFrame, allele_column: str, outcome_var: str
    ) -> OutcomeAssociation:
        """
        Test every allele present in ``data`` plus the locus-level LRT.

        Alleles whose fit is degenerate are recorded in ``failed_alleles`` and
        do not stop the remaining alleles.
        """
        alleles = sorted(data[allele_column].dropna().astype(str).unique())
        results: list[AssociationResult] = []
        failed: dict[str, str] = {}

        for allele in alleles:
            outcome = self.test_allele(data, allele, allele_column, outcome_var)
            if isinstance(outcome, Ok):
                results.append(outcome.value)
                self.logger.debug(
                    f"{allele_column} {allele} | {outcome_var}: OR={outcome.value.odds_ratio:.3g}, "
                    f"p={outcome.value.p_value:.3g}"
                )
            else:
                failed[allele] = outcome.error

        q_values: dict[str, float] = {}
        if results:
            corrected = apply_correction(
                [r.p_value for r in results], self.params.correction_method
            )
            q_values = {r.allele: float(q) for r, q in zip(results, corrected, strict=True)}

        locus_outcome = self.test_locus(data, allele_column, outcome_var)
        locus_test = locus_outcome.value if isinstance(locus_outcome, Ok) else None
        locus_error = locus_outcome.error if isinstance(locus_outcome, Failed) else None

        self.logger.info(
            f"{allele_column} | {outcome_var}: {len(results)}/{len(alleles)} alleles tested"
            + (
                f", LRT p={locus_test.p_value:.3g} (df={locus_test.degrees_of_freedom})"
                if locus_test is not None
                else ", LRT unavailable"
            )
        )
        return OutcomeAssociation(
            outcome=outcome_var,
            allele_results=tuple(results),
            locus_test=locus_test,
            q_values=q_values,
            failed_alleles=failed,
            locus_test_error=locus_error,
        )
