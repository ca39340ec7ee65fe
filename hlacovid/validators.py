# File: hlacovid/validators.py
# Location: hlacovid/hlacovid/validators.py

"""
Validation module for the clinical input table.

Provides functions to check that the clinical table carries the identifier,
outcome and required analysis columns before any locus is processed.
"""

import logging
from typing import List, Sequence

import pandas as pd

from .pipeline_core.error_handling import DataValidationError

logger = logging.getLogger("hlacovid")


def validate_clinical_data(
    data: pd.DataFrame, required_vars: Sequence[str], id_column: str = "id"
) -> List[str]:
    """
    Report missing required variables and basic table statistics.

    Missing required variables are not fatal: a warning names them and the
    caller decides whether to continue without them.

    Parameters
    ----------
    data : pd.DataFrame
        Clinical records.
    required_vars : sequence of str
        Variables that should be present.
    id_column : str
        Sample identifier column, excluded from the variable listing.

    Returns
    -------
    list of str
        Required variables absent from ``data``.
    """
    missing = [var for var in required_vars if var not in data.columns]
    if missing:
        logger.warning(f"Missing required variables: {', '.join(missing)}")

    variables = [str(c) for c in data.columns if c != id_column]
    logger.info(f"Clinical data: {len(data)} samples")
    logger.info(f"Available variables: {', '.join(variables)}")
    return missing


def validate_clinical_columns(
    data: pd.DataFrame, id_column: str, outcomes: Sequence[str]
) -> None:
    """
    Check the columns every locus analysis depends on.

    Raises
    ------
    DataValidationError
        If the identifier column or any outcome column is absent.
    """
    if id_column not in data.columns:
        raise DataValidationError(
            f"Clinical data has no identifier column '{id_column}'",
            field=id_column,
            stage="validation",
        )
    for outcome in outcomes:
        if outcome not in data.columns:
            raise DataValidationError(
                f"Clinical data has no outcome column '{outcome}'",
                field=outcome,
                stage="validation",
            )
