"""
Condensation and explanation of code lists.

condense() collapses every branch of the hierarchy whose leaf coverage is
fully present in the input to the branch's top code. The leaf coverage of
the output always equals the leaf coverage of the input.
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Set

import pandas as pd

from .code import Code, CodeError, CodeForm, CodeSet, INFER
from .convert import reformat, to_short
from .exceptions import IcdError, UndefinedCodeWarning
from .hierarchy import Hierarchy, HierarchyNode
from .parser import FormHint, parse_code

logger = logging.getLogger(__name__)

EXPLAIN_COLUMNS = ["code", "long_desc", "short_desc"]


@dataclass
class CondenseResult:
    """
    Output of condense().

    Attributes:
        codes: Minimal covering codes, short form, in hierarchy order
        undefined: Well-formed input codes absent from the hierarchy
        errors: Input items that could not be parsed
    """

    codes: CodeSet
    undefined: List[Code] = field(default_factory=list)
    errors: List[CodeError] = field(default_factory=list)

    def to_list(self, form: FormHint = CodeForm.SHORT) -> List[str]:
        return [str(reformat(c, form)) for c in self.codes]


@dataclass
class ExplainResult:
    """
    Output of explain_code().

    Attributes:
        table: DataFrame with columns code, long_desc, short_desc
        undefined: Well-formed codes with no entry in the hierarchy
        errors: Input items that are not well-formed codes
    """

    table: pd.DataFrame
    undefined: List[Code] = field(default_factory=list)
    errors: List[CodeError] = field(default_factory=list)


def _split_defined(
    codes: Iterable[Any],
    hierarchy: Hierarchy,
    form: FormHint,
    strict: bool = False
):
    defined: List[Code] = []
    undefined: List[Code] = []
    errors: List[CodeError] = []
    seen: Set[str] = set()

    for i, item in enumerate(codes):
        try:
            code = to_short(parse_code(item, kind=hierarchy.kind, form=form))
        except IcdError as e:
            if strict:
                raise
            errors.append(CodeError(index=i, raw=item, error=e))
            continue
        if code.short in seen:
            continue
        seen.add(code.short)
        if hierarchy.is_defined(code):
            defined.append(code)
        else:
            undefined.append(code)

    for err in errors:
        logger.warning(f"Skipping malformed code {err.raw!r}: {err.error}")
    return defined, undefined, errors


def _report_undefined(undefined: List[Code], hierarchy: Hierarchy, warn: bool):
    if not undefined:
        return
    listed = ", ".join(c.short for c in undefined[:10])
    more = f" and {len(undefined) - 10} more" if len(undefined) > 10 else ""
    message = f"{len(undefined)} codes not defined in {hierarchy.name}: {listed}{more}"
    logger.warning(message)
    if warn:
        warnings.warn(message, UndefinedCodeWarning, stacklevel=3)


def condense(
    codes: Iterable[Any],
    hierarchy: Hierarchy,
    defined_only: bool = False,
    warn: bool = True,
    form: FormHint = INFER
) -> CondenseResult:
    """
    Condense codes to the minimal set of codes with the same leaf coverage.

    Every node whose entire leaf coverage is present is reported by its own
    code; partially covered branches are reported per child. Applying
    condense twice gives the same result as applying it once.

    Examples:
        >>> condense(hierarchy.children("391"), hierarchy).to_list()
        ['391']

    Args:
        codes: Codes (strings or Code values) of the hierarchy's kind
        hierarchy: Reference hierarchy
        defined_only: Drop codes absent from the hierarchy before condensing,
            without reporting them
        warn: Emit an UndefinedCodeWarning for undefined codes
        form: Form hint for the input

    Returns:
        CondenseResult with the condensed codes and diagnostics
    """
    defined, undefined, errors = _split_defined(codes, hierarchy, form)

    if defined_only:
        if undefined:
            logger.debug(f"Dropped {len(undefined)} undefined codes before condensing")
        undefined = []
    else:
        _report_undefined(undefined, hierarchy, warn)

    covered: Set[str] = set()
    for code in defined:
        covered |= hierarchy.leaves(code.short)

    kept: List[str] = []
    if covered:
        stack: List[HierarchyNode] = list(reversed(hierarchy.roots))
        while stack:
            node = stack.pop()
            coverage = hierarchy.leaves(node.code)
            if coverage <= covered:
                kept.append(node.code)
            elif coverage & covered:
                stack.extend(reversed(node.children))

    logger.debug(f"Condensed {len(defined)} codes to {len(kept)}")

    return CondenseResult(
        codes=CodeSet(hierarchy.as_code(c) for c in kept),
        undefined=undefined,
        errors=errors,
    )


def explain_code(
    codes: Iterable[Any],
    hierarchy: Hierarchy,
    condense_codes: bool = True,
    strict: bool = False,
    warn: bool = True,
    form: FormHint = INFER
) -> ExplainResult:
    """
    Describe a list of codes.

    Undefined codes are reported (and warned about) but do not stop the
    explanation. Malformed codes are collected in ``errors``, or raised when
    ``strict`` is set.

    Args:
        codes: Codes to explain
        hierarchy: Reference hierarchy with descriptions
        condense_codes: Condense before explaining, so a complete branch is
            described by its top code only
        strict: Raise on the first malformed code
        warn: Emit an UndefinedCodeWarning for undefined codes
        form: Form hint for the input

    Returns:
        ExplainResult whose table has columns code, long_desc, short_desc

    Raises:
        ParseError, AmbiguousKindError: Only when ``strict`` is set
    """
    defined, undefined, errors = _split_defined(codes, hierarchy, form, strict=strict)
    _report_undefined(undefined, hierarchy, warn)

    if condense_codes:
        shorts = condense(defined, hierarchy, warn=False).codes.shorts()
    else:
        shorts = [c.short for c in defined]

    rows = []
    for short in shorts:
        node = hierarchy.node(short)
        rows.append({"code": node.code, "long_desc": node.long_desc, "short_desc": node.short_desc})

    table = pd.DataFrame(rows, columns=EXPLAIN_COLUMNS)
    return ExplainResult(table=table, undefined=undefined, errors=errors)
