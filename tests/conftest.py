"""
Shared test doubles for the adapter, stores and GitHub client.
"""
import asyncio
import math
from datetime import datetime
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest
from sqlalchemy.exc import OperationalError

from core.errors import AdapterUnavailable, LoadError, LoadErrorKind, PersistenceError
from models.documents import CommitData, Document
from models.schemas import FileReference, QuestionInfo
from models.tables import EmbeddingStatus
from services.github import parse_github_url


class FakeAdapter:
    """Deterministic adapter: fixed summaries, vectors looked up by text."""

    def __init__(
        self,
        summary: Optional[str] = None,
        vector: Optional[List[float]] = None,
        vectors: Optional[Dict[str, List[float]]] = None,
        answer: str = "stub answer",
        fail_summarize: bool = False,
        fail_embed_for=(),
        fail_generate: bool = False,
        embed_delay: float = 0.0,
    ):
        self.summary = summary
        self.vector = vector if vector is not None else [1.0, 0.0, 0.0]
        self.vectors = vectors or {}
        self.answer = answer
        self.fail_summarize = fail_summarize
        self.fail_embed_for = set(fail_embed_for)
        self.fail_generate = fail_generate
        self.embed_delay = embed_delay
        self.summarize_calls = []
        self.embed_calls = []
        self.prompts = []

    async def summarize(self, text, hint=None):
        self.summarize_calls.append((text, hint))
        if self.fail_summarize:
            raise AdapterUnavailable("summarize failed")
        if self.summary is not None:
            return self.summary
        return f"summary of {hint}"

    async def embed(self, text):
        self.embed_calls.append(text)
        if self.embed_delay:
            await asyncio.sleep(self.embed_delay)
        if text in self.fail_embed_for:
            raise AdapterUnavailable(f"embed failed for {text!r}")
        return list(self.vectors.get(text, self.vector))

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.fail_generate:
            raise AdapterUnavailable("generate failed")
        return self.answer


def cosine_similarity(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorStore:
    """Same contract as VectorStore, with similarity computed in Python."""

    def __init__(self, fail_set_embedding_for=()):
        self.rows: List[dict] = []
        self.next_id = 1
        self.fail_set_embedding_for = set(fail_set_embedding_for)

    def rows_for(self, project_id: str) -> List[dict]:
        return [row for row in self.rows if row["project_id"] == project_id]

    async def upsert(self, project_id, file_path, file_name, summary, source_code, content_hash):
        for row in self.rows:
            if row["project_id"] == project_id and row["file_path"] == file_path:
                row.update(
                    file_name=file_name,
                    summary=summary,
                    source_code=source_code,
                    content_hash=content_hash,
                    embedding=None,
                    status=EmbeddingStatus.PENDING,
                )
                return row["id"]
        row = {
            "id": self.next_id,
            "project_id": project_id,
            "file_path": file_path,
            "file_name": file_name,
            "summary": summary,
            "source_code": source_code,
            "content_hash": content_hash,
            "embedding": None,
            "status": EmbeddingStatus.PENDING,
        }
        self.next_id += 1
        self.rows.append(row)
        return row["id"]

    async def set_embedding(self, row_id, vector):
        for row in self.rows:
            if row["id"] == row_id:
                if row["file_path"] in self.fail_set_embedding_for:
                    raise PersistenceError("vector write failed")
                row["embedding"] = list(vector)
                row["status"] = EmbeddingStatus.EMBEDDED
                return
        raise PersistenceError(f"row {row_id} no longer exists")

    async def is_indexed(self, project_id, file_path, content_hash):
        return any(
            row["project_id"] == project_id
            and row["file_path"] == file_path
            and row["content_hash"] == content_hash
            and row["status"] == EmbeddingStatus.EMBEDDED
            for row in self.rows
        )

    async def top_k(self, project_id, query_vector, k):
        scored = [
            (cosine_similarity(query_vector, row["embedding"]), row)
            for row in self.rows_for(project_id)
            if row["embedding"] is not None
        ]
        scored.sort(key=lambda item: (-item[0], item[1]["id"]))
        return [
            FileReference(
                file_name=row["file_name"],
                summary=row["summary"],
                source_code=row["source_code"],
                similarity=similarity,
            )
            for similarity, row in scored[:k]
        ]

    async def clear(self, project_id):
        before = len(self.rows)
        self.rows = [row for row in self.rows if row["project_id"] != project_id]
        return before - len(self.rows)


class InMemoryQuestionStore:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saved: List[dict] = []

    async def save(self, project_id, text, answer, sources):
        if self.fail:
            raise PersistenceError("questions table unavailable")
        self.saved.append({
            "id": len(self.saved) + 1,
            "project_id": project_id,
            "text": text,
            "answer": answer,
            "file_references": [source.model_dump() for source in sources],
        })
        return len(self.saved)

    async def list(self, project_id):
        return [q for q in self.saved if q["project_id"] == project_id]

    async def get(self, project_id, question_id):
        for q in self.saved:
            if q["project_id"] == project_id and q["id"] == question_id:
                return QuestionInfo(
                    id=q["id"],
                    text=q["text"],
                    answer=q["answer"],
                    file_references=[FileReference(**ref) for ref in q["file_references"]],
                    created_at="2024-01-01T00:00:00",
                )
        return None


class InMemoryCommitStore:
    def __init__(self):
        self.rows: Dict[tuple, CommitData] = {}

    async def existing_hashes(self, project_id):
        return {commit_hash for (pid, commit_hash) in self.rows if pid == project_id}

    async def upsert_many(self, project_id, commits):
        for commit in commits:
            self.rows[(project_id, commit.commit_hash)] = commit
        return len(commits)

    async def list(self, project_id):
        return [commit for (pid, _), commit in self.rows.items() if pid == project_id]


class InMemoryProjectStore:
    def __init__(self, *projects):
        self.projects = {p.id: p for p in projects}

    async def create(self, name, github_url):
        parse_github_url(github_url)
        project = make_project(f"p{len(self.projects) + 1}", github_url, name=name)
        self.projects[project.id] = project
        return project

    async def get(self, project_id):
        return self.projects.get(project_id)

    async def list(self):
        return list(self.projects.values())


class BrokenSession:
    """Session whose every query fails as if the database were down."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    async def get(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))


class FakeLoader:
    def __init__(self, documents=None, error: Optional[LoadError] = None):
        self.documents = documents or []
        self.error = error
        self.calls = []

    async def load_repository(self, github_url, ref=None):
        self.calls.append((github_url, ref))
        if self.error:
            raise self.error
        return list(self.documents)


class FakeGitHub(FakeLoader):
    """Loader plus commit endpoints."""

    def __init__(self, commits=None, diffs=None, failing_diffs=(), documents=None, error=None):
        super().__init__(documents=documents, error=error)
        self.commits = commits or []
        self.diffs = diffs or {}
        self.failing_diffs = set(failing_diffs)
        self.diff_requests = []

    async def list_commits(self, github_url, limit=15):
        if self.error:
            raise self.error
        return list(self.commits)

    async def fetch_commit_diff(self, github_url, commit_hash):
        self.diff_requests.append(commit_hash)
        if commit_hash in self.failing_diffs:
            raise LoadError(LoadErrorKind.UNAVAILABLE, "diff unavailable")
        return self.diffs.get(commit_hash, f"COMMIT: {commit_hash[:7]}")


def make_project(project_id="p1", github_url="https://github.com/acme/widgets", name="widgets"):
    return SimpleNamespace(id=project_id, name=name, github_url=github_url, created_at=datetime(2024, 1, 1))


def make_commit(commit_hash, message="feat: add thing", day=1):
    return CommitData(
        commit_hash=commit_hash,
        commit_message=message,
        commit_author_name="Ada",
        commit_date=datetime(2024, 1, day),
    )


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def store():
    return InMemoryVectorStore()


@pytest.fixture
def questions():
    return InMemoryQuestionStore()


@pytest.fixture
def sample_documents():
    return [
        Document(path="a.ts", content="export function add(a,b){return a+b}"),
        Document(path="b.ts", content=""),
    ]
