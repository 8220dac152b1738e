"""Supplier catalog normalisation: classify, sanitize, filter."""

from .classifier import classify
from .exclusions import ExclusionCache, Exclusions, apply_exclusions
from .models import CanonicalCategory, CanonicalProduct, CatalogTree, Modification
from .sanitize import clean_name, parse_locale_number

__all__ = [
    "CanonicalCategory",
    "CanonicalProduct",
    "CatalogTree",
    "ExclusionCache",
    "Exclusions",
    "Modification",
    "apply_exclusions",
    "classify",
    "clean_name",
    "parse_locale_number",
]
