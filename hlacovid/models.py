# File: hlacovid/models.py
# Location: hlacovid/hlacovid/models.py

"""
HLA imputation model registry.

The registry is a pickled mapping from locus identifier (e.g. "A", "DRB1")
to an opaque model object implementing ``predict(genetic_data, covariates)``.
It is loaded once at setup and only read afterwards.
"""

import logging
import pickle
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from .pipeline_core.error_handling import FileFormatError, validate_file_exists

logger = logging.getLogger("hlacovid")


def load_model_registry(model_file: Union[str, Path]) -> Mapping[str, Any]:
    """
    Load a pickled model registry.

    Parameters
    ----------
    model_file : str or Path
        Pickle file holding a dict of locus -> model.

    Returns
    -------
    Mapping[str, Any]
        Read-only view of the registry keyed by locus identifier.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    FileFormatError
        If the file cannot be unpickled or does not hold a mapping.
    """
    path = validate_file_exists(model_file, "model loading")
    try:
        with open(path, "rb") as fh:
            registry = pickle.load(fh)
    except (pickle.UnpicklingError, EOFError, AttributeError, ImportError) as e:
        raise FileFormatError(str(path), f"pickled model registry ({e})", "model loading") from e

    if not isinstance(registry, Mapping):
        raise FileFormatError(str(path), "mapping of locus -> model", "model loading")

    registry = {str(locus): model for locus, model in registry.items()}
    logger.info(f"Loaded imputation models for loci: {', '.join(sorted(registry))}")
    return MappingProxyType(registry)


def get_hla_model(locus: str, model_registry: Optional[Mapping[str, Any]]) -> Optional[Any]:
    """Return the model for ``locus`` or None when the registry has none."""
    if not model_registry:
        return None
    return model_registry.get(locus)
