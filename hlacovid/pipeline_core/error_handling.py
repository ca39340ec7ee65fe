"""
Error handling utilities for the HLA association pipeline.

This module provides:
- Custom exception classes for setup and data errors
- Validation helpers for input files and output directories

Only setup-level problems are raised as exceptions. Locus-scoped problems
(missing imputation model, failed model call, degenerate regression fit)
are returned as tagged outcomes, see ``hlacovid.association.base``.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, stage: Optional[str] = None, details: Optional[Dict] = None):
        """Initialize pipeline error.

        Parameters
        ----------
        message : str
            Error message
        stage : str, optional
            Stage where error occurred
        details : dict, optional
            Additional error details
        """
        super().__init__(message)
        self.stage = stage
        self.details = details or {}


class FileFormatError(PipelineError):
    """Raised when a file has an invalid format."""

    def __init__(self, file_path: str, expected_format: str, stage: Optional[str] = None):
        """Initialize file format error."""
        message = f"Invalid file format for {file_path}. Expected: {expected_format}"
        super().__init__(message, stage, {"file": file_path, "expected_format": expected_format})


class DataValidationError(PipelineError):
    """Raised when data validation fails."""

    def __init__(self, message: str, field: str, stage: Optional[str] = None):
        """Initialize data validation error."""
        super().__init__(message, stage, {"field": field})


class InvalidInputError(PipelineError):
    """Raised when a covariate column cannot be coerced to numeric values."""

    def __init__(self, column: str, reason: str, stage: Optional[str] = "covariate processing"):
        """Initialize invalid input error."""
        message = f"Column '{column}' is not usable as a numeric covariate: {reason}"
        super().__init__(message, stage, {"column": column})


def validate_file_exists(file_path: Union[str, Path], stage_name: str) -> Path:
    """Validate that a file exists and is readable.

    Parameters
    ----------
    file_path : str or Path
        Path to validate
    stage_name : str
        Stage name for error reporting

    Returns
    -------
    Path
        Validated path object

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    FileFormatError
        If the path is not a regular file
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Required file not found: {path}")

    if not path.is_file():
        raise FileFormatError(str(path), "file", stage_name)

    try:
        with open(path, "rb"):
            pass
    except PermissionError:
        raise PermissionError(f"Cannot read file: {path}")

    return path


def validate_output_directory(
    output_dir: Union[str, Path], stage_name: str, create: bool = True
) -> Path:
    """Validate output directory, creating it when requested.

    Parameters
    ----------
    output_dir : str or Path
        Output directory path
    stage_name : str
        Stage name for error reporting
    create : bool
        Whether to create directory if it doesn't exist

    Returns
    -------
    Path
        Validated directory path

    Raises
    ------
    PermissionError
        If directory cannot be created or written to
    """
    path = Path(output_dir)

    if path.exists():
        if not path.is_dir():
            raise FileFormatError(str(path), "directory", stage_name)
    elif create:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            raise PermissionError(f"Cannot create directory: {path}")
    else:
        raise FileNotFoundError(f"Output directory does not exist: {path}")

    test_file = path / ".write_test"
    try:
        test_file.touch()
        test_file.unlink()
    except PermissionError:
        raise PermissionError(f"Cannot write to directory: {path}")

    return path
