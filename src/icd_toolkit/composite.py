"""
Utility functions for parsing composite diagnosis codes.

Supports parsing composite code strings like:
- DIAGNOSIS//ICD9//4011
- DIAGNOSIS//ICD10CM//I10
- DIAGNOSIS//ICD//10//R531 (MIMIC / MEDS event codes)

These composite codes contain:
1. Prefix (e.g., DIAGNOSIS)
2. System (e.g., ICD9, ICD-10-CM), optionally split into ICD//VERSION
3. Code (the actual diagnosis code)
"""

import re
from typing import Optional, Dict

from .code import CodeKind

# PREFIX//SYSTEM//CODE, e.g. "DIAGNOSIS//ICD9//4011"
_COMPOSITE_RE = re.compile(
    r'^\s*(?P<prefix>[A-Za-z_]+)\s*//\s*(?P<system>[^/]+?)\s*//\s*(?P<code>[^/]+?)\s*$',
    flags=re.IGNORECASE
)

# PREFIX//ICD//VERSION//CODE, e.g. "DIAGNOSIS//ICD//10//R531"
_VERSIONED_RE = re.compile(
    r'^\s*(?P<prefix>[A-Za-z_]+)\s*//\s*ICD\s*//\s*(?P<version>9|10)\s*//\s*(?P<code>[^/]+?)\s*$',
    flags=re.IGNORECASE
)

# Map system name variations to code kinds
SYSTEM_ALIASES = {
    'ICD9': CodeKind.ICD9,
    'ICD-9': CodeKind.ICD9,
    'ICD9CM': CodeKind.ICD9,
    'ICD-9-CM': CodeKind.ICD9,
    'ICD_9_CM': CodeKind.ICD9,
    'ICD10': CodeKind.ICD10,
    'ICD-10': CodeKind.ICD10,
    'ICD10CM': CodeKind.ICD10,
    'ICD-10-CM': CodeKind.ICD10,
    'ICD_10_CM': CodeKind.ICD10,
    'ICD10CA': CodeKind.ICD10,
    'ICD-10-CA': CodeKind.ICD10,
}


def parse_composite_code(code_string: str) -> Optional[Dict[str, str]]:
    """
    Parse composite diagnosis code strings.

    Examples:
        >>> parse_composite_code("DIAGNOSIS//ICD9//4011")
        {'prefix': 'DIAGNOSIS', 'system': 'ICD9', 'kind': 'icd9', 'code': '4011'}

        >>> parse_composite_code("DIAGNOSIS//ICD//10//R531")
        {'prefix': 'DIAGNOSIS', 'system': 'ICD10', 'kind': 'icd10', 'code': 'R531'}

        >>> parse_composite_code("401.1")  # Plain code
        None

    Args:
        code_string: Input code string (may be plain or composite format)

    Returns:
        Dictionary with keys 'prefix', 'system', 'kind' and 'code' if composite
        format detected, None if input is a plain code. 'kind' is None when the
        system is not an ICD-9/ICD-10 variant.
    """
    if not isinstance(code_string, str):
        return None

    match = _VERSIONED_RE.match(code_string)
    if match:
        system = f"ICD{match.group('version')}"
    else:
        match = _COMPOSITE_RE.match(code_string)
        if not match:
            return None
        system = match.group('system').upper().strip()

    kind = SYSTEM_ALIASES.get(system)

    return {
        "prefix": match.group('prefix').upper(),
        "system": system,
        "kind": kind.value if kind else None,
        "code": match.group('code').strip(),
    }


def is_composite_code(code_string: str) -> bool:
    """Check if a code string is in composite format."""
    return parse_composite_code(code_string) is not None


def extract_plain_code(code_string: str) -> str:
    """
    Extract the plain code from either composite or plain format.

    Examples:
        >>> extract_plain_code("DIAGNOSIS//ICD9//4011")
        '4011'

        >>> extract_plain_code("401.1")
        '401.1'
    """
    parsed = parse_composite_code(code_string)
    if parsed:
        return parsed['code']
    return code_string


def extract_kind(code_string: str) -> Optional[CodeKind]:
    """
    Extract the code kind from a composite code.

    Returns:
        CodeKind, or None for plain codes and non-ICD systems
    """
    parsed = parse_composite_code(code_string)
    if parsed and parsed['kind']:
        return CodeKind(parsed['kind'])
    return None
