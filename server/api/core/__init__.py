"""
Core configuration and error types

The database and dependency helpers import the table models, so they are
imported from their own modules (core.database, core.deps).
"""
from .config import *
from .errors import (
    CodeaskError,
    LoadError,
    LoadErrorKind,
    AdapterUnavailable,
    PersistenceError,
    ValidationError,
)

__all__ = [
    # Config
    "ANTHROPIC_API_KEY",
    "API_SECRET_KEY",
    "CLAUDE_MODEL",
    "DATABASE_URL",
    "GITHUB_TOKEN",
    "GITHUB_API_URL",
    "LOADER_CONCURRENCY",
    "MAX_LOAD_BYTES",
    "MAX_DOCUMENT_CHARS",
    "EMBEDDING_MODEL",
    "EMBEDDING_DIM",
    "INDEX_CONCURRENCY",
    "INDEX_DELAY_SECONDS",
    "MODEL_CALL_TIMEOUT",
    "DB_CALL_TIMEOUT",
    "SUMMARY_MAX_CHARS",
    "DEFAULT_TOP_K",
    "MAX_TOP_K",
    "CONTEXT_CODE_CHARS",
    "COMMIT_FETCH_LIMIT",
    "COMMIT_POLL_LIMIT",
    # Errors
    "CodeaskError",
    "LoadError",
    "LoadErrorKind",
    "AdapterUnavailable",
    "PersistenceError",
    "ValidationError",
]
