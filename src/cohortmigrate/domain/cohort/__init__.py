"""Cohort loading and the cohort context value object."""

from __future__ import annotations

from .context import CohortContext
from .loader import load_cohort, load_cohort_file, parse_row, required_columns

__all__ = [
    "CohortContext",
    "load_cohort",
    "load_cohort_file",
    "parse_row",
    "required_columns",
]
