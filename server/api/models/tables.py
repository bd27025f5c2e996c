"""
Database models for projects, indexed source files, questions and commits
"""
import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from pgvector.sqlalchemy import Vector
from core.config import EMBEDDING_DIM

Base = declarative_base()


class EmbeddingStatus(str, enum.Enum):
    """Two-phase write state: the row exists before its vector does."""
    PENDING = "pending"
    EMBEDDED = "embedded"


class Project(Base):
    """A registered GitHub repository."""
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    github_url = Column(String(500), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class SourceCodeEmbedding(Base):
    """One indexed file: summary, original source and its embedding."""
    __tablename__ = "source_code_embeddings"
    __table_args__ = (
        UniqueConstraint("project_id", "file_path", name="uq_source_code_embeddings_project_path"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(500), nullable=False)
    file_path = Column(String(1000), nullable=False)
    summary = Column(Text, nullable=False)
    source_code = Column(Text, nullable=False)  # Full content; truncated only when rendered
    content_hash = Column(String(64), nullable=False)
    embedding = Column(Vector(EMBEDDING_DIM), nullable=True)
    embedding_status = Column(
        Enum(EmbeddingStatus, name="embedding_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=EmbeddingStatus.PENDING,
    )
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Question(Base):
    """A question asked about a project, with its answer and frozen sources."""
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    file_references = Column(JSONB, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)


class Commit(Base):
    """A polled commit and its AI (or fallback) summary."""
    __tablename__ = "commits"
    __table_args__ = (
        UniqueConstraint("project_id", "commit_hash", name="uq_commits_project_hash"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    commit_hash = Column(String(64), nullable=False)
    commit_message = Column(Text, nullable=False)
    commit_author_name = Column(String(200), nullable=True)
    commit_author_avatar = Column(String(500), nullable=True)
    commit_date = Column(DateTime(timezone=True), nullable=True)
    summary = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
