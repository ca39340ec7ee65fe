# File: hlacovid/__init__.py
# Location: hlacovid/hlacovid/__init__.py

"""
hlacovid Package.

This package associates imputed HLA alleles with COVID-19 clinical outcomes
(severity, hospitalization, asymptomatic status). It imputes each locus of a
fixed HLA panel, filters the joined clinical data, and reports covariate
adjusted odds ratios and likelihood-ratio tests per allele and locus.
"""

from .version import __version__
