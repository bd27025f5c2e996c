"""
Error taxonomy shared by the loader, adapter, stores and pipelines
"""
from enum import Enum


class CodeaskError(Exception):
    """Base class for errors raised by Codeask services."""


class LoadErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"


class LoadError(CodeaskError):
    """A repository could not be loaded at all."""

    def __init__(self, kind: LoadErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class AdapterUnavailable(CodeaskError):
    """A summarize, embed or generate call failed or timed out."""


class PersistenceError(CodeaskError):
    """A store read or write failed."""


class ValidationError(CodeaskError):
    """Input was rejected before any model call."""
