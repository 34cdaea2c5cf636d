"""
Conversion between short and decimal code representations.

Short form has no punctuation ("39101"); decimal form inserts a separator
after the major when a minor is present ("391.01"). ICD-9 majors are
left-padded with zeros in both forms, so "1" becomes "001" and "V1"
becomes "V01".
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Union

import pandas as pd

from .code import BatchResult, Code, CodeError, CodeForm, CodeKind, INFER, coerce_form
from .exceptions import ConversionError, IcdError
from .parser import FormHint, KindHint, parse_code

logger = logging.getLogger(__name__)

# Digits after the letter in padded ICD-9 V and E majors
_ICD9_LETTER_WIDTH = {"V": 2, "E": 3}


def pad_major(major: str, kind: CodeKind) -> str:
    """
    Left-pad an ICD-9 major to its canonical width.

    ICD-10 majors are returned unchanged. Only the major is padded; the
    minor is never touched.

    Raises:
        ConversionError: The major has no digits to pad, or has non-digits
            where digits are expected
    """
    if kind == CodeKind.ICD10:
        return major

    letter = major[0]
    if letter in _ICD9_LETTER_WIDTH:
        digits = major[1:]
        if not digits.isdigit():
            raise ConversionError("ICD-9 major has no numeric part to pad", code=major)
        return letter + digits.zfill(_ICD9_LETTER_WIDTH[letter])

    if not major.isdigit():
        raise ConversionError("ICD-9 major is not numeric", code=major)
    return major.zfill(3)


def to_short(code: Code) -> Code:
    """Return the short-form equivalent of a code."""
    return Code(kind=code.kind, major=pad_major(code.major, code.kind),
                minor=code.minor, is_short=True)


def to_decimal(code: Code) -> Code:
    """Return the decimal-form equivalent of a code."""
    return Code(kind=code.kind, major=pad_major(code.major, code.kind),
                minor=code.minor, is_short=False)


def convert_codes(
    codes: Iterable[Any],
    to: Union[CodeForm, str],
    kind: KindHint = INFER,
    form: FormHint = INFER
) -> BatchResult:
    """
    Convert a batch of codes to short or decimal strings.

    Args:
        codes: Raw code strings or Code values
        to: Target form, "short" or "decimal"
        kind: Kind hint applied to every item
        form: Form hint describing the input

    Returns:
        BatchResult whose values are strings, None where an item failed
    """
    target = coerce_form(to)
    if target is None:
        raise ValueError("Target form must be 'short' or 'decimal'")
    convert = to_short if target == CodeForm.SHORT else to_decimal

    result = BatchResult()
    for i, item in enumerate(codes):
        try:
            result.values.append(str(convert(parse_code(item, kind=kind, form=form))))
        except IcdError as e:
            result.values.append(None)
            result.errors.append(CodeError(index=i, raw=item, error=e))

    for err in result.errors:
        logger.warning(f"Could not convert code {err.raw!r}: {err.error}")
    return result


def decimal_to_short(codes, kind: KindHint = INFER) -> Union[List[Optional[str]], Optional[str]]:
    """
    Convert decimal-form codes to short form.

    Examples:
        >>> decimal_to_short(["1", "10.20", "100", "123.45"])
        ['001', '01020', '100', '12345']

    Args:
        codes: A code string or a sequence of them
        kind: Kind hint

    Returns:
        Short-form strings, None for items that could not be converted
    """
    if isinstance(codes, str):
        return convert_codes([codes], CodeForm.SHORT, kind=kind, form=CodeForm.DECIMAL).values[0]
    return convert_codes(codes, CodeForm.SHORT, kind=kind, form=CodeForm.DECIMAL).values


def short_to_decimal(codes, kind: KindHint = INFER) -> Union[List[Optional[str]], Optional[str]]:
    """
    Convert short-form codes to decimal form.

    Examples:
        >>> short_to_decimal(["1", "22", "2244", "1005"])
        ['001', '022', '224.4', '100.5']
    """
    if isinstance(codes, str):
        return convert_codes([codes], CodeForm.DECIMAL, kind=kind, form=CodeForm.SHORT).values[0]
    return convert_codes(codes, CodeForm.DECIMAL, kind=kind, form=CodeForm.SHORT).values


def _to_parts(codes: Iterable[Any], kind: KindHint, form: CodeForm, minor_empty: str) -> pd.DataFrame:
    majors = []
    minors = []
    for item in codes:
        try:
            code = parse_code(item, kind=kind, form=form)
        except IcdError as e:
            logger.debug(f"Could not split code {item!r}: {e}")
            majors.append(None)
            minors.append(None)
            continue
        majors.append(code.major)
        minors.append(code.minor or minor_empty)
    return pd.DataFrame({"major": majors, "minor": minors}, dtype=object)


def short_to_parts(codes: Iterable[Any], kind: KindHint = INFER, minor_empty: str = "") -> pd.DataFrame:
    """
    Split short-form codes into major and minor parts.

    Args:
        codes: Short-form code strings
        kind: Kind hint; decides where ICD-9 E codes split
        minor_empty: Value used for codes without a minor

    Returns:
        DataFrame with 'major' and 'minor' columns, aligned with the input.
        Rows that could not be parsed hold None.
    """
    if isinstance(codes, str):
        codes = [codes]
    return _to_parts(codes, kind, CodeForm.SHORT, minor_empty)


def decimal_to_parts(codes: Iterable[Any], kind: KindHint = INFER, minor_empty: str = "") -> pd.DataFrame:
    """Split decimal-form codes into major and minor parts."""
    if isinstance(codes, str):
        codes = [codes]
    return _to_parts(codes, kind, CodeForm.DECIMAL, minor_empty)


def _join_parts(major: Any, minor: Any, kind: KindHint) -> Code:
    major = "" if major is None or pd.isna(major) else str(major).strip()
    minor = "" if minor is None or pd.isna(minor) else str(minor).strip()
    text = f"{major}.{minor}" if minor else major
    return parse_code(text, kind=kind, form=CodeForm.DECIMAL)


def _parts_apply(major, minor, kind: KindHint, convert) -> Any:
    if isinstance(major, str) or major is None:
        return str(convert(_join_parts(major, minor, kind)))

    majors: Sequence = list(major)
    minors: Sequence = [None] * len(majors) if minor is None else list(minor)
    if len(majors) != len(minors):
        raise ValueError("major and minor must have the same length")

    out: List[Optional[str]] = []
    for mj, mn in zip(majors, minors):
        try:
            out.append(str(convert(_join_parts(mj, mn, kind))))
        except IcdError as e:
            logger.warning(f"Could not join parts {mj!r}, {mn!r}: {e}")
            out.append(None)
    return out


def parts_to_short(major, minor=None, kind: KindHint = INFER):
    """
    Join major and minor parts into short-form codes.

    Accepts scalars (returns a string, raising on failure) or equal-length
    sequences (returns a list with None for failed rows).
    """
    return _parts_apply(major, minor, kind, to_short)


def parts_to_decimal(major, minor=None, kind: KindHint = INFER):
    """Join major and minor parts into decimal-form codes."""
    return _parts_apply(major, minor, kind, to_decimal)


def reformat(code: Code, form: Union[CodeForm, str]) -> Code:
    """Return ``code`` in the requested form."""
    target = coerce_form(form)
    if target == CodeForm.DECIMAL:
        return to_decimal(code)
    return to_short(code)
