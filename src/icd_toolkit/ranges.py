"""
Code ranges and classification ordering.
"""

import logging
from typing import Any, Iterable, List, Tuple

from .code import CodeKind, INFER
from .convert import to_short
from .exceptions import IcdError
from .parser import KindHint, parse_code

logger = logging.getLogger(__name__)

_ICD9_GROUP = {"V": 1, "E": 2}


def _split_letter(short: str) -> Tuple[str, str]:
    if short[0].isalpha():
        return short[0], short[1:]
    return "", short


def expand_range(start: Any, end: Any, kind: KindHint = INFER) -> List[str]:
    """
    Enumerate short-form codes from ``start`` to ``end`` inclusive.

    Both endpoints must share a leading letter (if any) and have the same
    short-form length; the remaining characters are counted as a number.

    Examples:
        >>> expand_range("I60", "I69")[:3]
        ['I60', 'I61', 'I62']

        >>> expand_range("425.4", "425.6")
        ['4254', '4255', '4256']

    Raises:
        ValueError: Endpoints cannot span a range
        ParseError, AmbiguousKindError: An endpoint is not a code
    """
    first = to_short(parse_code(start, kind=kind))
    last = to_short(parse_code(end, kind=kind))
    if first.kind != last.kind:
        raise ValueError(f"Range endpoints differ in kind: {start!r}, {end!r}")

    lo, hi = first.short, last.short
    if len(lo) != len(hi):
        raise ValueError(f"Range endpoints differ in length: {start!r}, {end!r}")

    letter, lo_digits = _split_letter(lo)
    end_letter, hi_digits = _split_letter(hi)
    if letter != end_letter:
        raise ValueError(f"Range endpoints differ in prefix: {start!r}, {end!r}")
    if not (lo_digits.isdigit() and hi_digits.isdigit()):
        raise ValueError(f"Range endpoints are not numeric: {start!r}, {end!r}")
    if int(lo_digits) > int(hi_digits):
        raise ValueError(f"Range start is after range end: {start!r}, {end!r}")

    width = len(lo_digits)
    return [f"{letter}{n:0{width}d}" for n in range(int(lo_digits), int(hi_digits) + 1)]


def _sort_key(code: Any, kind: KindHint) -> Tuple:
    try:
        short = to_short(parse_code(code, kind=kind))
    except IcdError:
        return (9, "")
    if short.kind == CodeKind.ICD9:
        return (_ICD9_GROUP.get(short.major[0], 0), short.short)
    return (5, short.short)


def sort_codes(codes: Iterable[Any], kind: KindHint = INFER) -> List[Any]:
    """
    Sort codes in classification order.

    ICD-9 numeric codes come first, then V codes, then E codes; ICD-10
    codes follow in alphanumeric order. Unparseable codes are kept at the
    end in their original order.
    """
    return sorted(codes, key=lambda c: _sort_key(c, kind))
