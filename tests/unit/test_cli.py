"""Unit tests for the command-line entry point."""

import logging
from unittest.mock import patch

import pytest

from hlacovid.cli import create_parser, main
from hlacovid.pipeline_core.error_handling import DataValidationError
from hlacovid.version import __version__


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(
        "files:\n"
        f"  log_file: {tmp_path / 'logs' / 'analysis.log'}\n"
        "analysis_params:\n"
        "  workers: 1\n"
    )
    return path


@pytest.fixture(autouse=True)
def _drop_file_handlers():
    yield
    hlacovid_logger = logging.getLogger("hlacovid")
    for handler in list(hlacovid_logger.handlers):
        if isinstance(handler, logging.FileHandler):
            hlacovid_logger.removeHandler(handler)
            handler.close()


@pytest.mark.unit
class TestCLI:
    def test_parser_defaults(self):
        args = create_parser().parse_args([])
        assert args.config == "config.yml"
        assert args.log_level == "INFO"
        assert args.log_file is None
        assert args.workers is None

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    @patch("hlacovid.cli.run_analysis_pipeline")
    def test_success_returns_zero(self, mock_run, config_file, tmp_path):
        assert main(["-c", str(config_file), "--workers", "3"]) == 0
        cfg = mock_run.call_args.args[0]
        assert cfg["analysis_params"]["workers"] == 3
        assert (tmp_path / "logs" / "analysis.log").exists()

    @patch("hlacovid.cli.run_analysis_pipeline")
    def test_log_file_option(self, mock_run, config_file, tmp_path):
        log_file = tmp_path / "custom" / "run.log"
        assert main(["-c", str(config_file), "--log-file", str(log_file)]) == 0
        assert log_file.exists()

    @patch("hlacovid.cli.run_analysis_pipeline")
    def test_pipeline_error_returns_one(self, mock_run, config_file, caplog):
        mock_run.side_effect = DataValidationError("no outcome column 'severity'", field="severity")
        with caplog.at_level("ERROR", logger="hlacovid"):
            assert main(["-c", str(config_file)]) == 1
        assert "Analysis failed: no outcome column 'severity'" in caplog.text

    def test_missing_config_returns_one(self, tmp_path, caplog):
        with caplog.at_level("ERROR", logger="hlacovid"):
            assert main(["-c", str(tmp_path / "absent.yml")]) == 1
        assert "Analysis failed" in caplog.text
