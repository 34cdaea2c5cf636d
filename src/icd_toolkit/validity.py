"""
Validity checks for diagnosis codes.

Validity here is purely grammatical: a valid code has the shape and range
of its kind. Whether it is a real classification entry is a question for
the reference hierarchy (see ``Hierarchy.is_defined``).
"""

import logging
from typing import Any, Iterable, List

from .code import Code, CodeKind, INFER, coerce_kind
from .convert import pad_major, to_short
from .exceptions import AmbiguousKindError, IcdError
from .parser import (
    FormHint,
    KindHint,
    icd10_major_matches,
    icd9_major_matches,
    matches_grammar,
    parse_code,
)

logger = logging.getLogger(__name__)


def is_valid(code: Any, kind: KindHint = INFER, form: FormHint = INFER) -> bool:
    """
    Check whether a code is valid under its kind's grammar.

    Never raises: malformed input, unknown hints and disagreements between
    hint and text all return False. Without a kind hint a code is valid when
    either kind accepts it, so "V10" is valid both as ICD-9 and as ICD-10.

    Args:
        code: Raw code text or a Code
        kind: Kind hint ("icd9", "icd10" or "infer")
        form: Form hint ("short", "decimal" or "infer")

    Returns:
        True if valid
    """
    try:
        parsed = parse_code(code, kind=kind, form=form)
    except AmbiguousKindError as e:
        return any(matches_grammar(c) for c in e.candidates)
    except (IcdError, ValueError) as e:
        logger.debug(f"Invalid code {code!r}: {e}")
        return False
    return matches_grammar(parsed)


def is_valid_major(major: Any, kind: KindHint = INFER) -> bool:
    """Check whether text is a valid major on its own."""
    if not isinstance(major, str):
        return False
    major = major.strip().upper()
    try:
        hint = coerce_kind(kind)
    except ValueError:
        return False
    if hint == CodeKind.ICD9:
        return icd9_major_matches(major)
    if hint == CodeKind.ICD10:
        return icd10_major_matches(major)
    return icd9_major_matches(major) or icd10_major_matches(major)


def is_major(code: Any, kind: KindHint = INFER, form: FormHint = INFER) -> bool:
    """True if the code is valid and consists of a major only."""
    if not is_valid(code, kind=kind, form=form):
        return False
    try:
        parsed = parse_code(code, kind=kind, form=form)
    except AmbiguousKindError as e:
        return all(not c.minor for c in e.candidates)
    return not parsed.minor


def get_major(code: Any, kind: KindHint = INFER, form: FormHint = INFER) -> str:
    """
    Return the padded major of a code.

    Raises:
        ParseError, AmbiguousKindError, ConversionError
    """
    parsed = parse_code(code, kind=kind, form=form)
    return pad_major(parsed.major, parsed.kind)


def filter_valid(codes: Iterable[Any], kind: KindHint = INFER, form: FormHint = INFER) -> List[Any]:
    """Keep only the valid codes, preserving order."""
    return [c for c in codes if is_valid(c, kind=kind, form=form)]


def filter_invalid(codes: Iterable[Any], kind: KindHint = INFER, form: FormHint = INFER) -> List[Any]:
    """Keep only the invalid codes, preserving order."""
    return [c for c in codes if not is_valid(c, kind=kind, form=form)]


def normalize(code: Any, kind: KindHint = INFER, form: FormHint = INFER) -> Code:
    """Parse strictly and return the short form of a code."""
    return to_short(parse_code(code, kind=kind, form=form, strict=True))
