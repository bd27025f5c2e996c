"""
Vector store for indexed source files (pgvector, database-side similarity)
"""
import asyncio
from typing import List

from sqlalchemy import select, update, delete, func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError

from core.config import DB_CALL_TIMEOUT
from core.errors import PersistenceError
from models.schemas import FileReference, IndexStats, IndexedFileInfo, IndexedFilePage, RecentFile
from models.tables import EmbeddingStatus, SourceCodeEmbedding


def top_k_statement(project_id: str, query_vector: List[float], k: int):
    """Nearest embedded rows of one project by cosine distance, ties by insertion order."""
    distance = SourceCodeEmbedding.embedding.cosine_distance(query_vector)
    return (
        select(
            SourceCodeEmbedding.file_name,
            SourceCodeEmbedding.summary,
            SourceCodeEmbedding.source_code,
            (1 - distance).label("similarity"),
        )
        .where(SourceCodeEmbedding.project_id == project_id)
        .where(SourceCodeEmbedding.embedding.is_not(None))
        .order_by(distance, SourceCodeEmbedding.id)
        .limit(k)
    )


def upsert_statement(
    project_id: str,
    file_path: str,
    file_name: str,
    summary: str,
    source_code: str,
    content_hash: str,
):
    """Insert or update the row for (project_id, file_path); the embedding is reset until rewritten."""
    values = {
        "project_id": project_id,
        "file_path": file_path,
        "file_name": file_name,
        "summary": summary,
        "source_code": source_code,
        "content_hash": content_hash,
        "embedding": None,
        "embedding_status": EmbeddingStatus.PENDING,
    }
    stmt = insert(SourceCodeEmbedding).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=[SourceCodeEmbedding.project_id, SourceCodeEmbedding.file_path],
        set_={
            "file_name": stmt.excluded.file_name,
            "summary": stmt.excluded.summary,
            "source_code": stmt.excluded.source_code,
            "content_hash": stmt.excluded.content_hash,
            "embedding": None,
            "embedding_status": EmbeddingStatus.PENDING,
            "updated_at": func.now(),
        },
    ).returning(SourceCodeEmbedding.id)


class VectorStore:
    """
    Persistence for SourceCodeEmbedding rows, scoped by project.

    Every operation opens its own session from the factory, so concurrent
    per-file writes never share a session. Failures raise PersistenceError.
    """

    def __init__(self, session_factory, timeout: float = DB_CALL_TIMEOUT):
        self.session_factory = session_factory
        self.timeout = timeout

    async def _run(self, label: str, operation):
        try:
            return await asyncio.wait_for(operation(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise PersistenceError(f"{label} timed out after {self.timeout:g}s")
        except SQLAlchemyError as e:
            raise PersistenceError(f"{label} failed: {type(e).__name__}: {e}") from e

    async def upsert(
        self,
        project_id: str,
        file_path: str,
        file_name: str,
        summary: str,
        source_code: str,
        content_hash: str,
    ) -> int:
        """Create or update the file's row without an embedding; returns the row id."""
        async def operation():
            async with self.session_factory() as session:
                result = await session.execute(
                    upsert_statement(project_id, file_path, file_name, summary, source_code, content_hash)
                )
                row_id = result.scalar_one()
                await session.commit()
                return row_id

        return await self._run(f"upsert {file_path}", operation)

    async def set_embedding(self, row_id: int, vector: List[float]):
        """Second write of the two-phase insert: store the vector and mark the row embedded."""
        async def operation():
            async with self.session_factory() as session:
                result = await session.execute(
                    update(SourceCodeEmbedding)
                    .where(SourceCodeEmbedding.id == row_id)
                    .values(embedding=vector, embedding_status=EmbeddingStatus.EMBEDDED)
                )
                await session.commit()
                if result.rowcount == 0:
                    raise PersistenceError(f"row {row_id} no longer exists")

        await self._run(f"set embedding for row {row_id}", operation)

    async def is_indexed(self, project_id: str, file_path: str, content_hash: str) -> bool:
        """True when the file is already embedded with the same content."""
        async def operation():
            async with self.session_factory() as session:
                row_id = await session.scalar(
                    select(SourceCodeEmbedding.id)
                    .where(SourceCodeEmbedding.project_id == project_id)
                    .where(SourceCodeEmbedding.file_path == file_path)
                    .where(SourceCodeEmbedding.content_hash == content_hash)
                    .where(SourceCodeEmbedding.embedding_status == EmbeddingStatus.EMBEDDED)
                )
                return row_id is not None

        return await self._run(f"lookup {file_path}", operation)

    async def top_k(self, project_id: str, query_vector: List[float], k: int) -> List[FileReference]:
        """
        Most similar embedded files of a project.

        Returns:
            FileReferences ordered by descending similarity; [] for an empty project
        """
        async def operation():
            async with self.session_factory() as session:
                result = await session.execute(top_k_statement(project_id, query_vector, k))
                return [
                    FileReference(
                        file_name=row.file_name,
                        summary=row.summary,
                        source_code=row.source_code,
                        similarity=float(row.similarity),
                    )
                    for row in result.all()
                ]

        return await self._run("similarity search", operation)

    async def clear(self, project_id: str) -> int:
        """Delete every indexed file of a project; returns the number of rows removed."""
        async def operation():
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(SourceCodeEmbedding).where(SourceCodeEmbedding.project_id == project_id)
                )
                await session.commit()
                return result.rowcount or 0

        return await self._run(f"clear project {project_id}", operation)

    async def list_files(self, project_id: str, limit: int = 20, offset: int = 0) -> IndexedFilePage:
        async def operation():
            async with self.session_factory() as session:
                rows = (await session.execute(
                    select(SourceCodeEmbedding)
                    .where(SourceCodeEmbedding.project_id == project_id)
                    .order_by(SourceCodeEmbedding.file_name, SourceCodeEmbedding.id)
                    .limit(limit)
                    .offset(offset)
                )).scalars().all()
                total = await session.scalar(
                    select(func.count(SourceCodeEmbedding.id))
                    .where(SourceCodeEmbedding.project_id == project_id)
                ) or 0

            return IndexedFilePage(
                files=[
                    IndexedFileInfo(
                        id=row.id,
                        file_name=row.file_name,
                        file_path=row.file_path,
                        summary=row.summary,
                        embedding_status=EmbeddingStatus(row.embedding_status).value,
                        updated_at=row.updated_at.isoformat() if row.updated_at else None,
                    )
                    for row in rows
                ],
                total=total,
                has_more=total > offset + limit,
            )

        return await self._run(f"list files for {project_id}", operation)

    async def stats(self, project_id: str) -> IndexStats:
        """File counts, extension distribution, average summary length and recent files."""
        async def operation():
            async with self.session_factory() as session:
                rows = (await session.execute(
                    select(
                        SourceCodeEmbedding.file_name,
                        SourceCodeEmbedding.summary,
                        SourceCodeEmbedding.embedding_status,
                        SourceCodeEmbedding.created_at,
                    )
                    .where(SourceCodeEmbedding.project_id == project_id)
                    .order_by(SourceCodeEmbedding.created_at.desc(), SourceCodeEmbedding.id.desc())
                )).all()
            return build_stats(rows)

        return await self._run(f"stats for {project_id}", operation)


def build_stats(rows) -> IndexStats:
    """Aggregate (file_name, summary, embedding_status, created_at) rows, newest first."""
    file_types = {}
    summaries = [row.summary for row in rows if row.summary]
    for row in rows:
        name = row.file_name.lower()
        extension = name.rsplit(".", 1)[-1] if "." in name else "unknown"
        file_types[extension] = file_types.get(extension, 0) + 1

    embedded = sum(1 for row in rows if EmbeddingStatus(row.embedding_status) == EmbeddingStatus.EMBEDDED)
    avg_length = round(sum(len(s) for s in summaries) / len(summaries)) if summaries else 0

    return IndexStats(
        total_files=len(rows),
        files_with_embeddings=embedded,
        file_types=file_types,
        avg_summary_length=avg_length,
        recent_files=[
            RecentFile(
                file_name=row.file_name,
                summary=row.summary,
                created_at=row.created_at.isoformat() if row.created_at else None,
            )
            for row in rows[:5]
        ],
    )
