"""
ICD Toolkit

Utilities for ICD-9 and ICD-10 diagnostic codes:
- Conversion between short ("39101") and decimal ("391.01") forms
- Validity checks and kind inference (ICD-9 vs ICD-10)
- Condensation and explanation of code lists against a reference hierarchy
- Comorbidity assignment (Charlson/Quan maps bundled; Elixhauser, AHRQ via YAML)

This package can be used within MEDS-style pipelines or as a standalone library.
"""

from .code import Code, CodeForm, CodeKind, CodeSet
from .comorbidity import ComorbidityMap, assign_comorbidities, charlson_score, comorbid, load_builtin_map
from .condense import condense, explain_code
from .convert import decimal_to_short, short_to_decimal, to_decimal, to_short
from .exceptions import AmbiguousKindError, ConversionError, IcdError, ParseError, UndefinedCodeWarning
from .hierarchy import Hierarchy, HierarchyNode
from .parser import parse_code, parse_codes
from .registry import MapRegistry
from .validity import is_valid

__version__ = "0.1.0"

__all__ = [
    "Code",
    "CodeForm",
    "CodeKind",
    "CodeSet",
    "ComorbidityMap",
    "Hierarchy",
    "HierarchyNode",
    "MapRegistry",
    "AmbiguousKindError",
    "ConversionError",
    "IcdError",
    "ParseError",
    "UndefinedCodeWarning",
    "assign_comorbidities",
    "charlson_score",
    "comorbid",
    "condense",
    "decimal_to_short",
    "explain_code",
    "is_valid",
    "load_builtin_map",
    "parse_code",
    "parse_codes",
    "short_to_decimal",
    "to_decimal",
    "to_short",
]
