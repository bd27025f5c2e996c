"""
Registered projects (the repository reference the pipelines work from)
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from core.errors import PersistenceError
from models.tables import Project
from services.github import parse_github_url


class ProjectStore:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def create(self, name: str, github_url: str) -> Project:
        """Register a repository. Raises LoadError for a URL that is not a GitHub repository."""
        parse_github_url(github_url)
        try:
            async with self.session_factory() as session:
                project = Project(name=name, github_url=github_url.strip())
                session.add(project)
                await session.commit()
                return project
        except SQLAlchemyError as e:
            raise PersistenceError(f"creating project failed: {type(e).__name__}: {e}") from e

    async def get(self, project_id: str) -> Optional[Project]:
        try:
            async with self.session_factory() as session:
                return await session.get(Project, project_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"loading project {project_id} failed: {type(e).__name__}: {e}") from e

    async def list(self) -> List[Project]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Project).order_by(Project.created_at.desc()))
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(f"listing projects failed: {type(e).__name__}: {e}") from e
