"""
Exceptions raised while parsing, converting and validating ICD codes.

Exception hierarchy:
    IcdError (base)
    ├── ParseError           → malformed code text
    ├── AmbiguousKindError   → valid as ICD-9 and ICD-10, no hint given
    └── ConversionError      → code cannot be padded or formatted

UndefinedCodeWarning is a warning, not an error: the code is well formed
but absent from the reference hierarchy.
"""

from typing import Any, List, Optional


class IcdError(Exception):
    """
    Base exception for all code handling errors.

    Attributes:
        message: Human-readable error description
        code: The raw code text that triggered the error, if known
    """

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code is not None:
            return f"{self.message} (code: {self.code!r})"
        return self.message


class ParseError(IcdError):
    """Code text is not structurally a diagnosis code."""


class AmbiguousKindError(IcdError):
    """
    Code text is a valid code under more than one kind.

    Attributes:
        candidates: Every candidate parse, one per kind
    """

    def __init__(self, message: str, code: Optional[str] = None,
                 candidates: Optional[List[Any]] = None):
        super().__init__(message, code)
        self.candidates = list(candidates or [])


class ConversionError(IcdError):
    """A parsed code cannot be padded or rendered in the requested form."""


class UndefinedCodeWarning(UserWarning):
    """A well-formed code that is not an entry of the reference hierarchy."""
