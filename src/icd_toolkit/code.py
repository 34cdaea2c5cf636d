"""
Value types for diagnostic codes.

A Code holds the two halves of a code (major and minor) together with its
kind (ICD-9 or ICD-10) and the representation it is currently held in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union


class CodeKind(str, Enum):
    ICD9 = "icd9"
    ICD10 = "icd10"


class CodeForm(str, Enum):
    SHORT = "short"
    DECIMAL = "decimal"


INFER = "infer"

_KIND_ALIASES = {
    "9": CodeKind.ICD9,
    "ICD9": CodeKind.ICD9,
    "ICD-9": CodeKind.ICD9,
    "ICD9CM": CodeKind.ICD9,
    "ICD-9-CM": CodeKind.ICD9,
    "10": CodeKind.ICD10,
    "ICD10": CodeKind.ICD10,
    "ICD-10": CodeKind.ICD10,
    "ICD10CM": CodeKind.ICD10,
    "ICD-10-CM": CodeKind.ICD10,
    "ICD10CA": CodeKind.ICD10,
    "ICD-10-CA": CodeKind.ICD10,
}


def coerce_kind(value: Union[CodeKind, str, None]) -> Optional[CodeKind]:
    """
    Normalize a kind hint.

    Accepts a CodeKind, common spellings such as "icd9", "ICD-10-CM" or "10",
    and "infer"/None, which both return None.
    """
    if value is None or isinstance(value, CodeKind):
        return value
    key = str(value).strip().upper().replace("_", "-")
    if key == "INFER":
        return None
    if key in _KIND_ALIASES:
        return _KIND_ALIASES[key]
    if key.replace("-", "") in _KIND_ALIASES:
        return _KIND_ALIASES[key.replace("-", "")]
    raise ValueError(f"Unknown code kind: {value!r}")


def coerce_form(value: Union[CodeForm, str, None]) -> Optional[CodeForm]:
    """Normalize a form hint; "infer"/None return None."""
    if value is None or isinstance(value, CodeForm):
        return value
    key = str(value).strip().lower()
    if key == INFER:
        return None
    try:
        return CodeForm(key)
    except ValueError:
        raise ValueError(f"Unknown code form: {value!r}") from None


@dataclass(frozen=True)
class Code:
    """
    An immutable, parsed diagnostic code.

    Attributes:
        kind: ICD-9 or ICD-10
        major: Part before the decimal separator, never empty
        minor: Part after the decimal separator, possibly empty
        is_short: Whether the code is held in short (unpunctuated) form
    """

    kind: CodeKind
    major: str
    minor: str = ""
    is_short: bool = True

    def __post_init__(self):
        if not self.major:
            raise ValueError("Code major must not be empty")

    @property
    def short(self) -> str:
        return self.major + self.minor

    @property
    def decimal(self) -> str:
        if self.minor:
            return f"{self.major}.{self.minor}"
        return self.major

    @property
    def form(self) -> CodeForm:
        return CodeForm.SHORT if self.is_short else CodeForm.DECIMAL

    @property
    def key(self) -> Tuple[CodeKind, str]:
        """Identity used for de-duplication."""
        return (self.kind, self.short)

    def __str__(self) -> str:
        return self.short if self.is_short else self.decimal


@dataclass(frozen=True)
class CodeError:
    """A single failed item of a batch operation."""

    index: int
    raw: Any
    error: Exception

    def __str__(self) -> str:
        return f"[{self.index}] {self.raw!r}: {self.error}"


@dataclass
class BatchResult:
    """
    Output of a batch operation.

    ``values`` is aligned with the input; failed positions hold None and are
    described in ``errors``.
    """

    values: List[Any] = field(default_factory=list)
    errors: List[CodeError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def successful(self) -> List[Any]:
        return [v for v in self.values if v is not None]


class CodeSet:
    """
    An ordered collection of unique codes.

    Codes sharing kind and short form are duplicates; the first occurrence
    is kept. CodeSets are immutable.
    """

    __slots__ = ("_codes", "_index")

    def __init__(self, codes: Iterable[Code] = ()):
        unique: List[Code] = []
        index: Dict[Tuple[CodeKind, str], Code] = {}
        for code in codes:
            if not isinstance(code, Code):
                raise TypeError(f"CodeSet holds Code values, got {type(code).__name__}")
            if code.key in index:
                continue
            index[code.key] = code
            unique.append(code)
        self._codes: Tuple[Code, ...] = tuple(unique)
        self._index = index

    def __iter__(self) -> Iterator[Code]:
        return iter(self._codes)

    def __len__(self) -> int:
        return len(self._codes)

    def __getitem__(self, item: int) -> Code:
        return self._codes[item]

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Code):
            return item.key in self._index
        if isinstance(item, str):
            return any(short == item for _, short in self._index)
        return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CodeSet):
            return NotImplemented
        return [c.key for c in self] == [c.key for c in other]

    def __hash__(self) -> int:
        return hash(tuple(c.key for c in self))

    def shorts(self) -> List[str]:
        """Short-form strings, in order."""
        return [c.short for c in self._codes]

    def to_list(self) -> List[str]:
        """Strings in each code's held representation."""
        return [str(c) for c in self._codes]

    def __repr__(self) -> str:
        return f"CodeSet({self.to_list()})"
