# File: hlacovid/config.py
# Location: hlacovid/hlacovid/config.py

"""
Configuration management module.

This module handles loading configuration from a YAML file. Values from the
file are merged over ``DEFAULT_CONFIG`` so that a configuration file only
needs to name the input files and whatever it overrides.
"""

import copy
import os
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG: Dict[str, Any] = {
    "files": {
        "clinical": None,
        "model": None,
        "genetic": None,
        "log_file": "logs/analysis.log",
    },
    "directories": {
        "results": "results",
        "plots": "plots",
        "logs": "logs",
    },
    "analysis_params": {
        "min_freq": 10,
        "required_vars": ["severity", "hospitalization", "asymptomatic"],
        "p_threshold": 0.05,
        "outcomes": ["severity"],
        "loci": ["A", "B", "C", "DRB1", "DQA1", "DQB1", "DPA1", "DPB1"],
        "workers": 1,
        "correction_method": "fdr",
    },
    "report_params": {
        "confidence_level": 0.95,
        "include_plots": True,
        "include_tables": True,
    },
    "clinical_columns": {
        "id": "id",
        "sex": "sex",
        "age": "age",
        "sex_levels": ["female", "male"],
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_file: Optional[str] = "config.yml") -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Parameters
    ----------
    config_file : str, optional
        Path to a configuration file in YAML format. If None, the defaults
        are returned unchanged.

    Returns
    -------
    dict
        Configuration dictionary: ``DEFAULT_CONFIG`` deep-merged with the
        file contents.

    Raises
    ------
    FileNotFoundError
        If the specified configuration file does not exist.
    ValueError
        If the file cannot be parsed or its top level is not a mapping.
    """
    if config_file is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    if not os.path.exists(config_file):
        raise FileNotFoundError(f"Configuration file '{config_file}' not found.")

    with open(config_file, "r", encoding="utf-8") as f:
        try:
            loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing YAML configuration: {e}")

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Configuration file '{config_file}' must contain a mapping")

    return _deep_merge(DEFAULT_CONFIG, loaded)
