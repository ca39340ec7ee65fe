"""Test doubles shared by the unit and integration tests."""

from .models import (
    DEFAULT_ALLELES,
    ExplodingModel,
    FakeHLAModel,
    MalformedModel,
    make_clinical_data,
    make_genetic_data,
)

__all__ = [
    "DEFAULT_ALLELES",
    "ExplodingModel",
    "FakeHLAModel",
    "MalformedModel",
    "make_clinical_data",
    "make_genetic_data",
]
