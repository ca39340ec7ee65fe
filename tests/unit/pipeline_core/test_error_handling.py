"""Unit tests for error handling utilities."""

import pytest

from hlacovid.association.base import Failed
from hlacovid.pipeline_core.error_handling import (
    DataValidationError,
    FileFormatError,
    InvalidInputError,
    PipelineError,
    validate_file_exists,
    validate_output_directory,
)


@pytest.mark.unit
class TestExceptionClasses:
    """Test custom exception classes."""

    def test_pipeline_error(self):
        error = PipelineError("Test error", stage="setup", details={"key": "value"})
        assert str(error) == "Test error"
        assert error.stage == "setup"
        assert error.details == {"key": "value"}

    def test_file_format_error(self):
        error = FileFormatError("/path/to/models.pkl", "pickled model registry", stage="loading")
        assert "/path/to/models.pkl" in str(error)
        assert "pickled model registry" in str(error)
        assert error.details["file"] == "/path/to/models.pkl"
        assert isinstance(error, PipelineError)

    def test_data_validation_error(self):
        error = DataValidationError("Missing outcome", "severity", stage="validation")
        assert "Missing outcome" in str(error)
        assert error.details["field"] == "severity"

    def test_invalid_input_error(self):
        error = InvalidInputError("age", "could not convert 'forty'")
        assert str(error) == (
            "Column 'age' is not usable as a numeric covariate: could not convert 'forty'"
        )
        assert error.stage == "covariate processing"
        assert error.details == {"column": "age"}

    def test_failed_outcome_message(self):
        failure = Failed(stage="OR calculation", identifier="A*02:01", error="singular matrix")
        assert failure.describe() == "Error in OR calculation for A*02:01: singular matrix"


@pytest.mark.unit
class TestValidationFunctions:
    """Test validation helper functions."""

    def test_validate_file_exists(self, tmp_path):
        test_file = tmp_path / "clinical.tsv"
        test_file.write_text("id\n")

        assert validate_file_exists(test_file, "test_stage") == test_file

        with pytest.raises(FileNotFoundError):
            validate_file_exists(tmp_path / "missing.txt", "test_stage")

        # Directory instead of file
        with pytest.raises(FileFormatError):
            validate_file_exists(tmp_path, "test_stage")

    def test_validate_output_directory(self, tmp_path):
        assert validate_output_directory(tmp_path, "test_stage") == tmp_path

        new_dir = tmp_path / "results" / "severity"
        assert validate_output_directory(new_dir, "test_stage", create=True) == new_dir
        assert new_dir.exists()

        with pytest.raises(FileNotFoundError):
            validate_output_directory(tmp_path / "missing", "test_stage", create=False)

        file_path = tmp_path / "file.txt"
        file_path.write_text("content")
        with pytest.raises(FileFormatError):
            validate_output_directory(file_path, "test_stage")
