"""
Pydantic schemas for API requests and responses
"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from core.config import DEFAULT_TOP_K, MAX_TOP_K


class FileReference(BaseModel):
    """Snapshot of one retrieved file, frozen into a Question at answer time."""
    file_name: str
    summary: str
    source_code: str
    similarity: float


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1)
    github_url: str = Field(..., min_length=1)


class ProjectInfo(BaseModel):
    id: str
    name: str
    github_url: str
    created_at: str


class IndexRequest(BaseModel):
    github_token: Optional[str] = None
    ref: Optional[str] = None
    skip_existing: bool = False
    run_id: Optional[str] = None


class IndexResponse(BaseModel):
    success: bool
    processed_count: int = 0
    skipped_count: int = 0
    errors: List[str] = []
    error_kind: Optional[str] = None
    run_id: Optional[str] = None
    repository_stats: Optional[Dict] = None


class QueryRequest(BaseModel):
    question: str = Field(..., min_length=1)
    top_k: int = Field(DEFAULT_TOP_K, ge=1, le=MAX_TOP_K)


class QueryResponse(BaseModel):
    answer: str
    sources: List[FileReference] = []
    success: bool = True
    question_id: Optional[int] = None


class QuestionInfo(BaseModel):
    id: int
    text: str
    answer: str
    file_references: List[FileReference] = []
    created_at: str


class IndexedFileInfo(BaseModel):
    id: int
    file_name: str
    file_path: str
    summary: str
    embedding_status: str
    updated_at: Optional[str] = None


class IndexedFilePage(BaseModel):
    files: List[IndexedFileInfo]
    total: int
    has_more: bool


class RecentFile(BaseModel):
    file_name: str
    summary: str
    created_at: Optional[str] = None


class IndexStats(BaseModel):
    total_files: int
    files_with_embeddings: int
    file_types: Dict[str, int] = {}
    avg_summary_length: int = 0
    recent_files: List[RecentFile] = []


class CommitInfo(BaseModel):
    commit_hash: str
    commit_message: str
    commit_author_name: Optional[str] = None
    commit_author_avatar: Optional[str] = None
    commit_date: Optional[datetime] = None
    summary: Optional[str] = None


class PollResponse(BaseModel):
    processed: int
    total: int
    commits: List[CommitInfo] = []


class StatusResponse(BaseModel):
    status: str
    project_count: int
    file_count: int
    question_count: int
    commit_count: int
