# File: hlacovid/pipeline.py
# Location: hlacovid/hlacovid/pipeline.py

"""
Pipeline driver.

Setup (configuration, input files, output directories) is fail-fast: any
problem there raises and aborts the run. Once the inputs are loaded, the
per-locus analysis runs through ``LocusOrchestrator`` where locus-scoped
problems only skip the affected locus or allele.
"""

import datetime
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import pandas as pd

from .association.base import AnalysisParams
from .association.engine import AnalysisRun, LocusOrchestrator
from .clinical import load_clinical_data
from .genetic import GeneticData, load_plink
from .models import load_model_registry
from .pipeline_core.error_handling import PipelineError, validate_output_directory
from .report import LocusReporter, generate_global_report, save_final_results
from .validators import validate_clinical_columns, validate_clinical_data

logger = logging.getLogger("hlacovid")


@dataclass
class AnalysisInputs:
    """Inputs shared read-only by every locus."""

    clinical_data: pd.DataFrame
    genetic_data: GeneticData
    model_registry: Mapping[str, Any]
    params: AnalysisParams


def _required_file(cfg: Dict[str, Any], key: str) -> str:
    value = (cfg.get("files") or {}).get(key)
    if not value:
        raise PipelineError(f"Configuration lacks files.{key}", stage="setup")
    return str(value)


def load_and_process_data(cfg: Dict[str, Any]) -> AnalysisInputs:
    """
    Load and validate the clinical table, genetic data and model registry.

    Required variables absent from the clinical table are reported with a
    warning and dropped from the complete-case filter.

    Raises
    ------
    FileNotFoundError, FileFormatError, DataValidationError
        On any setup problem.
    """
    params = AnalysisParams.from_config(cfg)

    clinical_data = load_clinical_data(_required_file(cfg, "clinical"), params)
    validate_clinical_columns(clinical_data, params.id_column, params.outcomes)
    missing = validate_clinical_data(clinical_data, params.required_vars, params.id_column)
    if missing:
        params.required_vars = [v for v in params.required_vars if v not in missing]

    genetic_data = load_plink(_required_file(cfg, "genetic"))
    model_registry = load_model_registry(_required_file(cfg, "model"))

    return AnalysisInputs(
        clinical_data=clinical_data,
        genetic_data=genetic_data,
        model_registry=model_registry,
        params=params,
    )


def run_analysis_pipeline(
    cfg: Dict[str, Any],
    inputs: Optional[AnalysisInputs] = None,
    logger: Optional[logging.Logger] = None,
) -> AnalysisRun:
    """
    Run the complete analysis described by ``cfg``.

    Parameters
    ----------
    cfg : dict
        Merged configuration (see ``hlacovid.config.DEFAULT_CONFIG``).
    inputs : AnalysisInputs, optional
        Pre-loaded inputs; loaded from ``cfg["files"]`` when omitted.
    logger : logging.Logger, optional
        Logger injected into the analysis components.

    Returns
    -------
    AnalysisRun
    """
    log = logger or logging.getLogger("hlacovid")
    start_time = datetime.datetime.now()
    log.info(f"Analysis started at {start_time.isoformat(timespec='seconds')}")

    directories = cfg.get("directories") or {}
    results_dir = validate_output_directory(directories.get("results", "results"), "setup")
    plots_dir = validate_output_directory(directories.get("plots", "plots"), "setup")

    if inputs is None:
        inputs = load_and_process_data(cfg)
    params = inputs.params

    report_params = cfg.get("report_params") or {}
    reporter = LocusReporter(
        results_dir,
        plots_dir,
        params,
        include_plots=bool(report_params.get("include_plots", True)),
        include_tables=bool(report_params.get("include_tables", True)),
    )
    orchestrator = LocusOrchestrator(params, logger=log, reporter=reporter)
    run = orchestrator.run(inputs.genetic_data, inputs.clinical_data, inputs.model_registry)

    generate_global_report(run, results_dir, params)
    save_final_results(run, results_dir)

    elapsed = datetime.datetime.now() - start_time
    log.info(
        f"Analysis completed in {elapsed.total_seconds():.1f}s; results in {Path(results_dir)}"
    )
    return run
