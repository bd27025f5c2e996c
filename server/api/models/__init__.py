"""
Table models, in-process types and API schemas
"""
from .tables import Base, EmbeddingStatus, Project, SourceCodeEmbedding, Question, Commit
from .schemas import FileReference
from .documents import Document, IndexResult, QueryResult, CommitData, PollResult

__all__ = [
    "Base",
    "EmbeddingStatus",
    "Project",
    "SourceCodeEmbedding",
    "Question",
    "Commit",
    "FileReference",
    "Document",
    "IndexResult",
    "QueryResult",
    "CommitData",
    "PollResult",
]
