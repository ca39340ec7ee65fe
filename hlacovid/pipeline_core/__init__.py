"""
Pipeline infrastructure shared by the analysis stages.

Currently exposes the exception hierarchy and the setup validation helpers.
"""

from .error_handling import (
    DataValidationError,
    FileFormatError,
    InvalidInputError,
    PipelineError,
    validate_file_exists,
    validate_output_directory,
)

__all__ = [
    "DataValidationError",
    "FileFormatError",
    "InvalidInputError",
    "PipelineError",
    "validate_file_exists",
    "validate_output_directory",
]
