# File: hlacovid/association/covariates.py
# Location: hlacovid/hlacovid/association/covariates.py
"""
Covariate standardization for the HLA association models.

Provides ``CovariateProcessor`` which derives the numeric model covariates
from the raw clinical columns:

- ``sex_numeric``: sex levels mapped to codes 1, 2, ...; missing values get
  the batch mode (smallest code wins ties).
- ``age_scaled``: missing ages get the batch mean, then the column is
  z-scored with the post-imputation mean and sample standard deviation.
- ``PC<n>_scaled``: every raw principal component column z-scored on its
  own; missing PC values stay missing.

Raw columns are never overwritten and rows are never dropped. Because the
derived columns are always recomputed from the raw ones, standardizing an
already standardized table over the same samples returns identical values.
"""

from __future__ import annotations

import logging
import re

import numpy as np
import pandas as pd

from hlacovid.association.base import AnalysisParams
from hlacovid.pipeline_core.error_handling import InvalidInputError

logger = logging.getLogger("hlacovid")

_PC_PATTERN = re.compile(r"^PC(\d+)$")

SEX_COLUMN = "sex_numeric"
AGE_COLUMN = "age_scaled"


def pc_columns(data: pd.DataFrame) -> list[str]:
    """Return raw principal component columns (``PC1``, ``PC2``, ...) in numeric order."""
    found = [(int(m.group(1)), col) for col in data.columns if (m := _PC_PATTERN.match(str(col)))]
    return [col for _, col in sorted(found)]


def covariate_terms(data: pd.DataFrame) -> tuple[str, ...]:
    """Ordered covariate term names: sex, age, then scaled PCs present in ``data``."""
    return (SEX_COLUMN, AGE_COLUMN) + tuple(f"{pc}_scaled" for pc in pc_columns(data))


def _to_numeric(series: pd.Series, column: str) -> pd.Series:
    try:
        return pd.to_numeric(series, errors="raise").astype(float)
    except (ValueError, TypeError) as e:
        raise InvalidInputError(column, str(e)) from e


def _zscore(values: pd.Series) -> pd.Series:
    """Center and scale with the sample SD; a degenerate SD only centers."""
    mean = values.mean()
    std = values.std(ddof=1)
    if not np.isfinite(std) or std == 0:
        return values - mean
    return (values - mean) / std


def _mode_code(codes: pd.Series) -> float | None:
    counts = codes.dropna().value_counts()
    if counts.empty:
        return None
    top = counts[counts == counts.max()]
    return float(min(top.index))


class CovariateProcessor:
    """
    Standardize clinical covariates into the numeric model columns.

    Parameters
    ----------
    params : AnalysisParams
        Supplies the raw sex/age column names and the sex level order.
    logger : logging.Logger, optional
        Logger used for diagnostics. Defaults to the package logger.
    """

    def __init__(self, params: AnalysisParams | None = None, logger: logging.Logger | None = None):
        self.params = params or AnalysisParams()
        self.logger = logger or logging.getLogger("hlacovid")

    def standardize(self, records: pd.DataFrame) -> pd.DataFrame:
        """
        Return a copy of ``records`` with ``sex_numeric``, ``age_scaled`` and
        ``PC<n>_scaled`` columns added.

        Raises
        ------
        InvalidInputError
            If age or a PC column holds non-numeric values, the sex or age
            column is absent, or no sample has a usable sex value.
        """
        data = records.copy()
        data[SEX_COLUMN] = self._sex_codes(data)
        data[AGE_COLUMN] = self._scaled_age(data)
        for pc in pc_columns(data):
            data[f"{pc}_scaled"] = _zscore(_to_numeric(data[pc], pc))
        return data

    def covariate_matrix(self, data: pd.DataFrame) -> pd.DataFrame:
        """
        Covariate matrix ``[sex_numeric, age_scaled, PC1_scaled, ...]``.

        ``data`` must already be standardized; the index is preserved so
        rows stay aligned to their samples.
        """
        return data.loc[:, list(covariate_terms(data))].astype(float)

    def _sex_codes(self, data: pd.DataFrame) -> pd.Series:
        column = self.params.sex_column
        if column not in data.columns:
            raise InvalidInputError(column, "column not found")
        levels = {str(level).lower(): code for code, level in enumerate(self.params.sex_levels, 1)}
        codes = data[column].map(
            lambda v: levels.get(str(v).strip().lower()) if pd.notna(v) else None
        ).astype(float)
        n_missing = int(codes.isna().sum())
        if n_missing:
            mode = _mode_code(codes)
            if mode is None:
                raise InvalidInputError(column, "no sample has a recognised sex value")
            self.logger.debug(f"Imputing {n_missing} missing sex value(s) with mode {mode:g}")
            codes = codes.fillna(mode)
        return codes

    def _scaled_age(self, data: pd.DataFrame) -> pd.Series:
        column = self.params.age_column
        if column not in data.columns:
            raise InvalidInputError(column, "column not found")
        age = _to_numeric(data[column], column)
        if len(age) and age.isna().all():
            raise InvalidInputError(column, "no observed ages")
        n_missing = int(age.isna().sum())
        if n_missing:
            self.logger.debug(f"Imputing {n_missing} missing age value(s) with the batch mean")
            age = age.fillna(age.mean())
        return _zscore(age)
