# File: hlacovid/clinical.py
# Location: hlacovid/hlacovid/clinical.py

"""
Clinical table loading.

The clinical table is tab-separated with a header row. Numeric covariates
(age, principal components) may use ',' as decimal separator; they are
normalized to '.' and coerced to numbers here, before covariate
standardization sees them.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from .association.base import AnalysisParams
from .association.covariates import pc_columns
from .pipeline_core.error_handling import DataValidationError, validate_file_exists

logger = logging.getLogger("hlacovid")


def _normalize_decimal(series: pd.Series) -> pd.Series:
    if pd.api.types.is_numeric_dtype(series):
        return series.astype(float)
    text = series.map(lambda v: str(v).strip().replace(",", ".") if pd.notna(v) else None)
    return pd.to_numeric(text, errors="coerce").astype(float)


def clean_numeric_data(data: pd.DataFrame, age_column: str = "age") -> pd.DataFrame:
    """
    Normalize decimal separators of the age and ``PC<n>`` columns.

    Values that still cannot be parsed become NaN (reported at DEBUG level).
    Returns a copy; the input frame is left untouched.
    """
    cleaned = data.copy()
    columns = ([age_column] if age_column in cleaned.columns else []) + pc_columns(cleaned)
    for col in columns:
        before = cleaned[col].notna().sum()
        cleaned[col] = _normalize_decimal(cleaned[col])
        lost = int(before - cleaned[col].notna().sum())
        if lost:
            logger.debug(f"Column {col}: {lost} unparseable value(s) set to missing")
    return cleaned


def load_clinical_data(
    clinical_file: Union[str, Path], params: Optional[AnalysisParams] = None
) -> pd.DataFrame:
    """
    Load the tab-separated clinical table.

    Parameters
    ----------
    clinical_file : str or Path
        Path to the clinical table.
    params : AnalysisParams, optional
        Supplies the identifier and age column names.

    Returns
    -------
    pd.DataFrame
        Clinical records with string identifiers and numeric age/PC columns.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    DataValidationError
        If the identifier column is absent.
    """
    params = params or AnalysisParams()
    path = validate_file_exists(clinical_file, "clinical loading")

    data = pd.read_csv(path, sep="\t", dtype={params.id_column: str})
    if params.id_column not in data.columns:
        raise DataValidationError(
            f"Clinical table {path} has no identifier column '{params.id_column}'",
            field=params.id_column,
            stage="clinical loading",
        )

    data = clean_numeric_data(data, age_column=params.age_column)
    logger.info(f"Loaded {len(data)} clinical records from {path}")
    return data
