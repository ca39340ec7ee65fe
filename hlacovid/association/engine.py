# File: hlacovid/association/engine.py
# Location: hlacovid/hlacovid/association/engine.py
"""
LocusOrchestrator: drives imputation, filtering and testing for every locus.

Each locus moves through

    Pending -> Imputing -> Filtering -> Testing -> Reporting -> Done

or ends in ``Skipped`` when imputation returns ``Skipped``/``Failed``. A
skipped locus is recorded in ``AnalysisRun.skipped`` and never aborts the
run. Alleles whose fit is degenerate are kept as Failed-soft annotations in
the locus result; the locus still reaches ``Done``.

Loci share only read-only inputs (clinical table, model registry), so they
can run in parallel. With ``workers > 1`` every locus is dispatched to a
ProcessPoolExecutor worker that receives its own copy of the clinical table
and only its own model, and returns its LocusResult. The results dict is
pre-sized with one slot per locus and filled by the parent in panel order;
reporting also happens in the parent.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from hlacovid.association.base import (
    AnalysisParams,
    Failed,
    LocusResult,
    LocusState,
    Ok,
    Outcome,
    Skipped,
)
from hlacovid.association.covariates import CovariateProcessor
from hlacovid.association.diagnostics import allele_frequency_table
from hlacovid.association.filtering import DataFilter
from hlacovid.association.imputation import ImputationAdapter, prepare_analysis_data
from hlacovid.association.regression import AssociationTester

logger = logging.getLogger("hlacovid")


@dataclass
class AnalysisRun:
    """
    Aggregated outcome of a run over the locus panel.

    ``results`` holds one LocusResult per locus that reached ``Done``;
    ``skipped`` maps skipped loci to the reason; ``history`` keeps every
    state each locus passed through.
    """

    results: dict[str, LocusResult] = field(default_factory=dict)
    skipped: dict[str, str] = field(default_factory=dict)
    history: dict[str, list[LocusState]] = field(default_factory=dict)

    @property
    def states(self) -> dict[str, LocusState]:
        """Terminal state per locus."""
        return {locus: states[-1] for locus, states in self.history.items()}


def allele_column_for(locus: str) -> str:
    """Allele call column tested for ``locus``."""
    return f"{locus}_allele1"


def process_locus(
    locus: str,
    genetic_data: Any,
    clinical_data: pd.DataFrame,
    model_registry: Mapping[str, Any],
    *,
    params: AnalysisParams,
    imputer: ImputationAdapter,
    data_filter: DataFilter,
    tester: AssociationTester,
) -> tuple[Outcome[LocusResult], list[LocusState]]:
    """
    Run imputation, filtering and testing for one locus.

    Returns the locus outcome and the states visited so far (up to
    ``Testing``, or ``Skipped``). Reporting is left to the caller.
    """
    history = [LocusState.PENDING, LocusState.IMPUTING]
    imputed = imputer.impute(locus, genetic_data, clinical_data, model_registry)
    if not isinstance(imputed, Ok):
        history.append(LocusState.SKIPPED)
        return imputed, history

    history.append(LocusState.FILTERING)
    allele_column = allele_column_for(locus)
    analysis_data = prepare_analysis_data(imputed.value, clinical_data, params.id_column)
    filtered, stats = data_filter.filter(
        analysis_data, allele_column, params.required_vars, params.min_freq
    )

    history.append(LocusState.TESTING)
    associations = {
        outcome: tester.analyze(filtered, allele_column, outcome) for outcome in params.outcomes
    }
    result = LocusResult(
        locus=locus,
        imputation=imputed.value,
        filter_stats=stats,
        associations=associations,
        allele_column=allele_column,
        allele_frequencies=allele_frequency_table(filtered, allele_column, params.outcomes),
    )
    return Ok(result), history


def _worker_initializer() -> None:
    """Set BLAS thread counts to 1 in worker processes to prevent oversubscription."""
    os.environ["OPENBLAS_NUM_THREADS"] = "1"
    os.environ["MKL_NUM_THREADS"] = "1"
    os.environ["OMP_NUM_THREADS"] = "1"


def _run_locus_worker(
    args: tuple[str, Any, pd.DataFrame, dict[str, Any], dict[str, Any]],
) -> tuple[str, Outcome[LocusResult], list[LocusState]]:
    """Process a single locus in a subprocess worker."""
    locus, genetic_data, clinical_data, registry, components = args
    outcome, history = process_locus(locus, genetic_data, clinical_data, registry, **components)
    return locus, outcome, history


class LocusOrchestrator:
    """
    Runs the per-locus analysis over the HLA panel.

    Parameters
    ----------
    params : AnalysisParams, optional
        Panel, filter thresholds, outcomes and worker count.
    imputer, data_filter, tester : optional
        Stage components; defaults are built from ``params`` sharing ``logger``.
    logger : logging.Logger, optional
        Injected into the default components. Defaults to the package logger.
    reporter : callable, optional
        ``reporter(result)`` is called for every completed locus during the
        ``Reporting`` state (e.g. to persist intermediate results).

    Usage
    -----
    >>> orchestrator = LocusOrchestrator(AnalysisParams(outcomes=["severity"]))
    >>> run = orchestrator.run(genetic_data, clinical_data, model_registry)
    >>> sorted(run.results), run.skipped
    """

    def __init__(
        self,
        params: AnalysisParams | None = None,
        imputer: ImputationAdapter | None = None,
        data_filter: DataFilter | None = None,
        tester: AssociationTester | None = None,
        logger: logging.Logger | None = None,
        reporter: Callable[[LocusResult], Any] | None = None,
    ) -> None:
        self.params = params or AnalysisParams()
        self.logger = logger or logging.getLogger("hlacovid")
        covariates = CovariateProcessor(self.params, logger=self.logger)
        self.imputer = imputer or ImputationAdapter(self.params, covariates, logger=self.logger)
        self.data_filter = data_filter or DataFilter(covariates, logger=self.logger)
        self.tester = tester or AssociationTester(self.params, logger=self.logger)
        self.reporter = reporter

    def _components(self) -> dict[str, Any]:
        return {
            "params": self.params,
            "imputer": self.imputer,
            "data_filter": self.data_filter,
            "tester": self.tester,
        }

    def _n_workers(self, n_loci: int) -> int:
        n_workers = self.params.workers
        if n_workers == -1:
            n_workers = os.cpu_count() or 1
        return max(1, min(n_workers, n_loci))

    def run(
        self,
        genetic_data: Any,
        clinical_data: pd.DataFrame,
        model_registry: Mapping[str, Any],
        loci: list[str] | None = None,
    ) -> AnalysisRun:
        """
        Analyze every locus of the panel.

        Parameters
        ----------
        genetic_data : GeneticData
            Genetic samples, shared read-only by all loci.
        clinical_data : pd.DataFrame
            Cleaned clinical table, shared read-only by all loci.
        model_registry : Mapping[str, Any]
            Locus -> imputation model.
        loci : list of str, optional
            Overrides ``params.loci``.

        Returns
        -------
        AnalysisRun
        """
        loci = list(loci if loci is not None else self.params.loci)
        slots: dict[str, tuple[Outcome[LocusResult], list[LocusState]] | None] = {
            locus: None for locus in loci
        }
        n_workers = self._n_workers(len(loci))

        if n_workers > 1:
            import concurrent.futures

            self.logger.info(f"Parallel locus analysis: {n_workers} workers for {len(loci)} loci")
            components = self._components()
            args_list = [
                (
                    locus,
                    genetic_data,
                    clinical_data,
                    {locus: model_registry[locus]} if locus in model_registry else {},
                    components,
                )
                for locus in loci
            ]
            with concurrent.futures.ProcessPoolExecutor(
                max_workers=n_workers,
                initializer=_worker_initializer,
            ) as executor:
                for locus, outcome, history in executor.map(_run_locus_worker, args_list):
                    slots[locus] = (outcome, history)
        else:
            for locus in loci:
                self.logger.info(f"Analyzing HLA-{locus}...")
                slots[locus] = process_locus(
                    locus, genetic_data, clinical_data, model_registry, **self._components()
                )

        run = AnalysisRun()
        for locus in loci:
            outcome, history = slots[locus]  # type: ignore[misc]
            if isinstance(outcome, Ok):
                history.append(LocusState.REPORTING)
                if self.reporter is not None:
                    self.reporter(outcome.value)
                history.append(LocusState.DONE)
                run.results[locus] = outcome.value
            else:
                reason = outcome.reason if isinstance(outcome, Skipped) else outcome.describe()
                if isinstance(outcome, Failed):
                    self.logger.warning(f"Imputation failed for HLA-{locus}")
                run.skipped[locus] = reason
            run.history[locus] = history

        self.logger.info(
            f"Locus analysis complete: {len(run.results)} done, {len(run.skipped)} skipped"
            + (f" ({', '.join(run.skipped)})" if run.skipped else "")
        )
        return run
