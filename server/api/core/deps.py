"""
FastAPI dependencies (authentication, stores, adapter)
"""
from typing import Optional
from fastapi import Header, HTTPException
from core.config import API_SECRET_KEY
from core.database import get_session_factory
from services.adapter import ModelAdapter, get_adapter
from services.commits import CommitStore
from services.github import GitHubClient
from services.projects import ProjectStore
from services.questions import QuestionStore
from services.vector_store import VectorStore


async def verify_api_key(x_api_key: Optional[str] = Header(None)):
    """Verify API key if authentication is enabled."""
    if API_SECRET_KEY and API_SECRET_KEY != "change-me-in-production":
        if not x_api_key or x_api_key != API_SECRET_KEY:
            raise HTTPException(status_code=401, detail="Invalid or missing API key")


def get_model_adapter() -> ModelAdapter:
    return get_adapter()


def get_vector_store() -> VectorStore:
    return VectorStore(get_session_factory())


def get_question_store() -> QuestionStore:
    return QuestionStore(get_session_factory())


def get_project_store() -> ProjectStore:
    return ProjectStore(get_session_factory())


def get_commit_store() -> CommitStore:
    return CommitStore(get_session_factory())


def get_github_client(x_github_token: Optional[str] = Header(None)) -> GitHubClient:
    """GitHub client using the caller's token when given, else the configured one."""
    if x_github_token:
        return GitHubClient(token=x_github_token)
    return GitHubClient()
