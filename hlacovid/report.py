# File: hlacovid/report.py
# Location: hlacovid/hlacovid/report.py

"""
Result persistence and text reports.

Per locus and outcome (under ``<results>/<outcome>/``):
- ``HLA_<locus>_statistics.pkl``: filter counts, association results, allele
  frequencies and imputation metrics
- ``HLA_<locus>_imputation.pkl``: genotype calls and posterior probabilities
- ``HLA_<locus>_report.txt``: rendered text report

Across loci (under ``<results>/``):
- ``summary.tsv``: one row per locus, outcome and tested allele
- ``global_report.txt``: locus tests, skipped loci and significant alleles
- ``final_results.pkl``: the whole AnalysisRun
"""

import datetime
import logging
import pickle
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
from jinja2 import Environment, FileSystemLoader

from .association.base import AnalysisParams, LocusResult
from .association.diagnostics import write_probability_plot
from .association.engine import AnalysisRun
from .version import __version__

logger = logging.getLogger("hlacovid")

SUMMARY_COLUMNS = [
    "locus",
    "outcome",
    "allele",
    "odds_ratio",
    "ci_lower",
    "ci_upper",
    "p_value",
    "q_value",
    "n_samples",
    "n_carriers",
    "lrt_statistic",
    "lrt_df",
    "lrt_p_value",
]


def _template_env() -> Environment:
    templates_dir = Path(__file__).parent / "templates"
    if not templates_dir.exists():
        raise FileNotFoundError(f"Templates directory not found at: {templates_dir}")
    return Environment(
        loader=FileSystemLoader(str(templates_dir)),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def _dump_pickle(obj: Any, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as fh:
        pickle.dump(obj, fh)
    return path


def save_intermediate_results(
    result: LocusResult, results_dir: Union[str, Path], outcome: str
) -> List[Path]:
    """
    Pickle the statistics and imputation output of one locus for one outcome.

    Returns
    -------
    list of Path
        The statistics and imputation pickle paths.
    """
    out_dir = Path(results_dir) / outcome
    association = result.associations.get(outcome)

    statistics = {
        "locus": result.locus,
        "outcome": outcome,
        "filter_stats": result.filter_stats.to_dict(),
        "imputation_metrics": result.imputation.metrics.to_dict(),
        "association": association,
        "allele_frequencies": result.allele_frequencies,
    }
    imputation = {
        "locus": result.locus,
        "genotypes": result.imputation.genotypes,
        "probabilities": result.imputation.probabilities,
        "max_probabilities": result.imputation.max_probabilities,
        "n_matched": result.imputation.n_matched,
    }
    return [
        _dump_pickle(statistics, out_dir / f"HLA_{result.locus}_statistics.pkl"),
        _dump_pickle(imputation, out_dir / f"HLA_{result.locus}_imputation.pkl"),
    ]


def generate_locus_report(
    result: LocusResult,
    outcome: str,
    results_dir: Union[str, Path],
    params: Optional[AnalysisParams] = None,
    include_tables: bool = True,
) -> Path:
    """
    Render the text report of one locus for one outcome.

    The report has the sections "Sample Statistics", "Association Results"
    and "Significant Findings" (alleles with p < ``params.p_threshold``).
    """
    params = params or AnalysisParams()
    association = result.associations[outcome]

    frequencies: List[Dict[str, Any]] = []
    if include_tables and isinstance(result.allele_frequencies, pd.DataFrame):
        frequencies = result.allele_frequencies.to_dict("records")

    significant = [r for r in association.allele_results if r.p_value < params.p_threshold]
    template = _template_env().get_template("locus_report.txt.j2")
    content = template.render(
        locus=result.locus,
        outcome=outcome,
        metrics=result.imputation.metrics,
        stats=result.filter_stats,
        frequencies=frequencies,
        cases_column=f"{outcome}_cases",
        locus_test=association.locus_test,
        locus_test_error=association.locus_test_error,
        results=association.allele_results,
        q_values=association.q_values,
        failed=association.failed_alleles,
        ci_label=f"{params.confidence_level:.0%} CI",
        p_threshold=params.p_threshold,
        significant=significant,
    )

    report_path = Path(results_dir) / outcome / f"HLA_{result.locus}_report.txt"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    with open(report_path, "w", encoding="utf-8") as out_f:
        out_f.write(content)
    logger.info(f"Report for HLA-{result.locus} ({outcome}) written to {report_path}")
    return report_path


def summary_table(run: AnalysisRun) -> pd.DataFrame:
    """One row per analyzed locus, outcome and successfully tested allele."""
    rows = []
    for locus, result in run.results.items():
        for outcome, association in result.associations.items():
            test = association.locus_test
            for r in association.allele_results:
                rows.append(
                    {
                        "locus": locus,
                        "outcome": outcome,
                        "allele": r.allele,
                        "odds_ratio": r.odds_ratio,
                        "ci_lower": r.ci_lower,
                        "ci_upper": r.ci_upper,
                        "p_value": r.p_value,
                        "q_value": association.q_values.get(r.allele, float("nan")),
                        "n_samples": r.n_samples,
                        "n_carriers": r.n_carriers,
                        "lrt_statistic": test.test_statistic if test else float("nan"),
                        "lrt_df": test.degrees_of_freedom if test else None,
                        "lrt_p_value": test.p_value if test else float("nan"),
                    }
                )
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def generate_global_report(
    run: AnalysisRun,
    results_dir: Union[str, Path],
    params: Optional[AnalysisParams] = None,
) -> Dict[str, Path]:
    """
    Write ``summary.tsv`` and ``global_report.txt`` for the whole run.

    Returns
    -------
    dict
        ``{"summary": <tsv path>, "report": <text path>}``
    """
    params = params or AnalysisParams()
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)

    summary = summary_table(run)
    summary_path = results_dir / "summary.tsv"
    summary.to_csv(summary_path, sep="\t", index=False)

    locus_tests = []
    for locus, result in run.results.items():
        for outcome, association in result.associations.items():
            test = association.locus_test
            locus_tests.append(
                {
                    "locus": locus,
                    "outcome": outcome,
                    "n_samples": result.filter_stats.final_count,
                    "df": test.degrees_of_freedom if test else None,
                    "statistic": test.test_statistic if test else None,
                    "p_value": test.p_value if test else None,
                }
            )
    significant = summary[summary["p_value"] < params.p_threshold].to_dict("records")

    template = _template_env().get_template("global_report.txt.j2")
    content = template.render(
        generated=datetime.datetime.now().isoformat(timespec="seconds"),
        version=__version__,
        outcomes=params.outcomes,
        p_threshold=params.p_threshold,
        done=list(run.results),
        skipped=run.skipped,
        locus_tests=locus_tests,
        significant=significant,
    )
    report_path = results_dir / "global_report.txt"
    with open(report_path, "w", encoding="utf-8") as out_f:
        out_f.write(content)

    logger.info(f"Global report written to {report_path} ({len(summary)} allele rows)")
    return {"summary": summary_path, "report": report_path}


def save_final_results(run: AnalysisRun, results_dir: Union[str, Path]) -> Path:
    """Pickle the complete AnalysisRun to ``<results>/final_results.pkl``."""
    path = _dump_pickle(run, Path(results_dir) / "final_results.pkl")
    logger.info(f"Final results saved to {path}")
    return path


class LocusReporter:
    """
    Per-locus reporting callback used by the orchestrator in its Reporting state.

    Writes the intermediate pickles and text report of every outcome and,
    when enabled, the posterior probability histogram.
    """

    def __init__(
        self,
        results_dir: Union[str, Path],
        plots_dir: Union[str, Path],
        params: Optional[AnalysisParams] = None,
        include_plots: bool = True,
        include_tables: bool = True,
    ):
        self.results_dir = Path(results_dir)
        self.plots_dir = Path(plots_dir)
        self.params = params or AnalysisParams()
        self.include_plots = include_plots
        self.include_tables = include_tables

    def __call__(self, result: LocusResult) -> None:
        for outcome in result.associations:
            save_intermediate_results(result, self.results_dir, outcome)
            generate_locus_report(
                result, outcome, self.results_dir, self.params, self.include_tables
            )
        if self.include_plots:
            write_probability_plot(
                result.imputation.max_probabilities,
                result.locus,
                self.plots_dir / f"HLA_{result.locus}_probability_dist.png",
            )
