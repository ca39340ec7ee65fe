# File: hlacovid/cli.py
# Location: hlacovid/hlacovid/cli.py

"""Command-line entry point for the HLA association analysis."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import load_config
from .pipeline import run_analysis_pipeline
from .version import __version__

logger = logging.getLogger("hlacovid")

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        description="hlacovid: associate imputed HLA alleles with COVID-19 outcomes."
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"hlacovid {__version__}",
        help="Show the current version and exit",
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yml",
        help="Path to the YAML configuration file (default: config.yml)",
    )
    parser.add_argument(
        "--log-level",
        choices=list(LOG_LEVEL_MAP),
        default="INFO",
        help="Set the logging level",
    )
    parser.add_argument(
        "--log-file",
        help="Path to a file to write logs to (in addition to stderr). "
        "Defaults to files.log_file from the configuration.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Number of loci analyzed in parallel (-1 = all CPUs). Overrides the configuration.",
    )
    return parser


def _add_file_handler(log_file: str, level: int) -> None:
    log_file_path = Path(log_file)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    fh = logging.FileHandler(log_file_path)
    fh.setLevel(level)
    fh.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    logger.addHandler(fh)
    logger.debug(f"Logging to file enabled: {log_file}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run main entry point for the hlacovid CLI.

    Steps:
        1. Parse arguments and configure logging.
        2. Load the configuration.
        3. Run the analysis pipeline.

    Returns 0 on success and 1 when setup or the analysis fails.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    args = create_parser().parse_args(argv)
    level = LOG_LEVEL_MAP[args.log_level]
    logger.setLevel(level)

    try:
        cfg: Dict[str, Any] = load_config(args.config)
        logger.debug(f"Configuration loaded: {cfg}")

        log_file = args.log_file or (cfg.get("files") or {}).get("log_file")
        if log_file:
            _add_file_handler(log_file, level)

        if args.workers is not None:
            cfg["analysis_params"]["workers"] = args.workers

        run_analysis_pipeline(cfg, logger=logger)
        return 0
    except Exception as e:
        logger.error(f"Analysis failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
