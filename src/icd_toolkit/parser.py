"""
Parsing of raw code text into Code values.

The parser only checks structure (characters, a single decimal point, a
non-empty major). Whether a code fits its kind's grammar is answered by
``matches_grammar`` and is used for kind inference and strict parsing.
"""

import logging
import re
from typing import Any, Iterable, List, Optional, Tuple, Union

from .code import (
    BatchResult,
    Code,
    CodeError,
    CodeForm,
    CodeKind,
    CodeSet,
    INFER,
    coerce_form,
    coerce_kind,
)
from .composite import parse_composite_code
from .exceptions import AmbiguousKindError, IcdError, ParseError

logger = logging.getLogger(__name__)

_STRUCTURE_RE = re.compile(r'^[A-Z0-9]+(\.[A-Z0-9]*)?$')

_ICD9_N_MAJOR_RE = re.compile(r'^\d{1,3}$')
_ICD9_V_MAJOR_RE = re.compile(r'^V\d{1,2}$')
_ICD9_E_MAJOR_RE = re.compile(r'^E\d{1,3}$')
_ICD9_NV_MINOR_RE = re.compile(r'^\d{0,2}$')
_ICD9_E_MINOR_RE = re.compile(r'^\d?$')

_ICD10_MAJOR_RE = re.compile(r'^[A-Z]\d\d$')
_ICD10_MINOR_RE = re.compile(r'^[A-Z0-9]{0,4}$')

KindHint = Union[CodeKind, str, None]
FormHint = Union[CodeForm, str, None]


def icd9_major_matches(major: str) -> bool:
    """Grammar and range check for an ICD-9 major, padded or not."""
    if _ICD9_N_MAJOR_RE.match(major):
        return int(major) > 0
    if _ICD9_V_MAJOR_RE.match(major):
        return 1 <= int(major[1:]) <= 91
    return bool(_ICD9_E_MAJOR_RE.match(major))


def icd10_major_matches(major: str) -> bool:
    return bool(_ICD10_MAJOR_RE.match(major))


def matches_grammar(code: Code) -> bool:
    """Check a parsed code against the grammar of its own kind."""
    if code.kind == CodeKind.ICD9:
        if not icd9_major_matches(code.major):
            return False
        if code.major.startswith("E"):
            return bool(_ICD9_E_MINOR_RE.match(code.minor))
        return bool(_ICD9_NV_MINOR_RE.match(code.minor))
    return icd10_major_matches(code.major) and bool(_ICD10_MINOR_RE.match(code.minor))


def _major_length(body: str, kind: CodeKind) -> int:
    if kind == CodeKind.ICD9 and body.startswith("E"):
        return 4
    return 3


def split_short(body: str, kind: CodeKind) -> Tuple[str, str]:
    """
    Split an unpunctuated code into major and minor.

    Three or fewer characters (four for ICD-9 E codes) are always a whole
    major: "020" is major 020, never 2.0.
    """
    n = _major_length(body, kind)
    if len(body) <= n:
        return body, ""
    return body[:n], body[n:]


def split_decimal(body: str) -> Tuple[str, str]:
    major, _, minor = body.partition(".")
    return major, minor


def _prepare(text: Any) -> Tuple[str, Optional[CodeKind]]:
    if text is None or (isinstance(text, float) and text != text):
        raise ParseError("Missing code", code=None)

    raw = str(text).strip()
    composite_kind = None
    parsed = parse_composite_code(raw)
    if parsed:
        if parsed["kind"] is None:
            raise ParseError(f"Unsupported coding system '{parsed['system']}'", code=raw)
        composite_kind = CodeKind(parsed["kind"])
        raw = parsed["code"]

    body = raw.upper()
    if not body:
        raise ParseError("Empty code", code=str(text))
    if not _STRUCTURE_RE.match(body):
        raise ParseError("Malformed code", code=str(text))
    return body, composite_kind


def _resolve_form(body: str, form: Optional[CodeForm], raw: Any) -> CodeForm:
    has_dot = "." in body
    if form is None:
        return CodeForm.DECIMAL if has_dot else CodeForm.SHORT
    if form == CodeForm.SHORT and has_dot:
        raise ParseError("Decimal separator in a short-form code", code=str(raw))
    return form


def _build(body: str, kind: CodeKind, form: CodeForm) -> Code:
    if form == CodeForm.DECIMAL:
        major, minor = split_decimal(body)
    else:
        major, minor = split_short(body, kind)
    return Code(kind=kind, major=major, minor=minor, is_short=form == CodeForm.SHORT)


def parse_code(
    text: Any,
    kind: KindHint = INFER,
    form: FormHint = INFER,
    strict: bool = False
) -> Code:
    """
    Parse raw code text into a Code.

    Kind inference (no hint) considers every kind whose grammar accepts the
    text. A single match wins; two matches are ambiguous. With no match, a
    leading letter other than E or V means ICD-10 and an all-digit code
    means ICD-9.

    Examples:
        >>> parse_code("391.1")
        Code(kind=<CodeKind.ICD9: 'icd9'>, major='391', minor='1', is_short=False)

        >>> parse_code("020").major
        '020'

    Args:
        text: Raw code text, plain or composite (e.g. "DIAGNOSIS//ICD9//4011")
        kind: "icd9", "icd10", a CodeKind, or "infer"
        form: "short", "decimal", a CodeForm, or "infer"
        strict: Also reject codes that do not match their kind's grammar

    Returns:
        Parsed Code

    Raises:
        ParseError: Malformed text, or a hint the text contradicts
        AmbiguousKindError: Valid under both kinds and no hint given
    """
    if isinstance(text, Code):
        kind_hint = coerce_kind(kind)
        if kind_hint is not None and kind_hint != text.kind:
            raise ParseError(f"Code is {text.kind.value}, expected {kind_hint.value}", code=str(text))
        return text

    body, composite_kind = _prepare(text)
    kind_hint = coerce_kind(kind)
    if composite_kind and kind_hint and composite_kind != kind_hint:
        raise ParseError(
            f"Composite system says {composite_kind.value}, expected {kind_hint.value}",
            code=str(text)
        )
    kind_hint = kind_hint or composite_kind
    code_form = _resolve_form(body, coerce_form(form), text)

    if kind_hint is not None:
        code = _build(body, kind_hint, code_form)
    else:
        builds = [_build(body, k, code_form) for k in CodeKind]
        candidates = [c for c in builds if matches_grammar(c)]
        if len(candidates) == 1:
            code = candidates[0]
        elif candidates:
            raise AmbiguousKindError(
                "Code is valid as both ICD-9 and ICD-10", code=str(text), candidates=candidates
            )
        elif body[0].isalpha() and body[0] not in "EV":
            code = _build(body, CodeKind.ICD10, code_form)
        elif body.replace(".", "").isdigit():
            code = _build(body, CodeKind.ICD9, code_form)
        else:
            raise AmbiguousKindError(
                "Cannot determine code kind", code=str(text), candidates=builds
            )

    if strict and not matches_grammar(code):
        raise ParseError(f"Not a valid {code.kind.value} code", code=str(text))
    return code


def parse_candidates(text: Any, form: FormHint = INFER) -> List[Code]:
    """
    Parse text without committing to a kind.

    Returns a single parse when the kind can be inferred and every candidate
    parse when it is ambiguous.
    """
    try:
        return [parse_code(text, kind=INFER, form=form)]
    except AmbiguousKindError as e:
        return e.candidates


def parse_codes(
    items: Iterable[Any],
    kind: KindHint = INFER,
    form: FormHint = INFER,
    strict: bool = False
) -> BatchResult:
    """
    Parse a batch of codes.

    A failing item never aborts the batch: its slot in ``values`` is None and
    the failure is recorded in ``errors``.
    """
    result = BatchResult()
    for i, item in enumerate(items):
        try:
            result.values.append(parse_code(item, kind=kind, form=form, strict=strict))
        except IcdError as e:
            logger.debug(f"Could not parse item {i}: {e}")
            result.values.append(None)
            result.errors.append(CodeError(index=i, raw=item, error=e))
    if result.errors:
        logger.info(f"Parsed {len(result.values) - len(result.errors)} codes, {len(result.errors)} failed")
    return result


def parse_code_set(
    items: Iterable[Any],
    kind: KindHint = INFER,
    form: FormHint = INFER,
    strict: bool = False
) -> Tuple[CodeSet, List[CodeError]]:
    """Parse a batch into a CodeSet plus the failed items."""
    result = parse_codes(items, kind=kind, form=form, strict=strict)
    return CodeSet(result.successful()), result.errors
