"""
In-process data types passed between the loader, filter and pipelines
"""
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePosixPath
from typing import Dict, List, Optional

from models.schemas import FileReference


@dataclass(frozen=True)
class Document:
    """A loaded repository file. Exists only during a load + index pass."""
    path: str
    content: str

    @property
    def file_name(self) -> str:
        return PurePosixPath(self.path).name or self.path

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lower().lstrip(".")

    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))

    @property
    def line_count(self) -> int:
        return len(self.content.split("\n"))


@dataclass
class IndexResult:
    success: bool = False
    processed_count: int = 0
    skipped_count: int = 0
    errors: List[str] = field(default_factory=list)
    repository_stats: Optional[Dict] = None


@dataclass
class QueryResult:
    answer: str
    sources: List[FileReference] = field(default_factory=list)
    success: bool = True
    question_id: Optional[int] = None


@dataclass
class CommitData:
    commit_hash: str
    commit_message: str
    commit_author_name: Optional[str] = None
    commit_author_avatar: Optional[str] = None
    commit_date: Optional[datetime] = None
    summary: Optional[str] = None


@dataclass
class PollResult:
    processed: int = 0
    total: int = 0
    commits: List[CommitData] = field(default_factory=list)
