"""
Persistence for asked questions and their frozen source snapshots
"""
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError

from core.errors import PersistenceError
from models.schemas import FileReference, QuestionInfo
from models.tables import Question


class QuestionStore:
    """Question/answer records scoped by project."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def save(self, project_id: str, text: str, answer: str, sources: List[FileReference]) -> int:
        """Store a Q&A with a copy of its sources; returns the question id."""
        try:
            async with self.session_factory() as session:
                question = Question(
                    project_id=project_id,
                    text=text,
                    answer=answer,
                    file_references=[source.model_dump() for source in sources],
                )
                session.add(question)
                await session.commit()
                return question.id
        except SQLAlchemyError as e:
            raise PersistenceError(f"saving question failed: {type(e).__name__}: {e}") from e

    async def list(self, project_id: str) -> List[QuestionInfo]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Question)
                    .where(Question.project_id == project_id)
                    .order_by(Question.created_at.desc(), Question.id.desc())
                )
                questions = result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"listing questions failed: {type(e).__name__}: {e}") from e

        return [question_info(q) for q in questions]

    async def get(self, project_id: str, question_id: int) -> Optional[QuestionInfo]:
        """One question with its frozen sources; None when it does not exist in the project."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Question)
                    .where(Question.project_id == project_id)
                    .where(Question.id == question_id)
                )
                question = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"loading question failed: {type(e).__name__}: {e}") from e

        return question_info(question) if question else None

    async def delete(self, project_id: str, question_id: int) -> bool:
        """Delete one question; False when it does not exist in the project."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(Question)
                    .where(Question.project_id == project_id)
                    .where(Question.id == question_id)
                )
                await session.commit()
                return bool(result.rowcount)
        except SQLAlchemyError as e:
            raise PersistenceError(f"deleting question failed: {type(e).__name__}: {e}") from e

    async def clear(self, project_id: str) -> int:
        try:
            async with self.session_factory() as session:
                result = await session.execute(delete(Question).where(Question.project_id == project_id))
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"clearing questions failed: {type(e).__name__}: {e}") from e


def question_info(q: Question) -> QuestionInfo:
    return QuestionInfo(
        id=q.id,
        text=q.text,
        answer=q.answer,
        file_references=[FileReference(**ref) for ref in q.file_references or []],
        created_at=q.created_at.isoformat() if q.created_at else "",
    )
