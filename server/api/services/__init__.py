"""
Business logic services for Codeask
"""
from .generation import init_claude_client
from .embeddings import init_embedding_model
from .adapter import ModelAdapter, get_adapter, reset_adapter
from .github import GitHubClient
from .vector_store import VectorStore
from .questions import QuestionStore
from .projects import ProjectStore
from .commits import CommitStore, CommitSummarizer
from .indexing import IndexingPipeline
from .query import QueryPipeline

__all__ = [
    "init_claude_client",
    "init_embedding_model",
    "ModelAdapter",
    "get_adapter",
    "reset_adapter",
    "GitHubClient",
    "VectorStore",
    "QuestionStore",
    "ProjectStore",
    "CommitStore",
    "CommitSummarizer",
    "IndexingPipeline",
    "QueryPipeline",
]
