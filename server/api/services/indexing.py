"""
Indexing pipeline: summarize, embed and store repository files
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from core.config import DB_CALL_TIMEOUT, INDEX_CONCURRENCY, INDEX_DELAY_SECONDS, MODEL_CALL_TIMEOUT
from core.errors import PersistenceError
from models.documents import Document, IndexResult
from services.github import repository_stats
from services.summarizer import summarize_document
from utils.filtering import filter_relevant_documents
from utils.hashing import compute_content_hash
from utils.logging import log
from utils.settle import settle_all

ProgressCallback = Callable[[str], Awaitable[None]]


@dataclass
class FileOutcome:
    """Result of one file: indexed, skipped, or an error tagged with its path."""
    path: str
    indexed: bool = False
    skipped: bool = False
    error: Optional[str] = None


class IndexingPipeline:
    """
    Turns documents into stored, embedded SourceCodeEmbedding rows.

    Files are processed concurrently and in isolation: a model timeout or a
    failed write for one file is recorded in the result and never stops the
    others.
    """

    def __init__(
        self,
        adapter,
        store,
        skip_existing: bool = False,
        concurrency: int = INDEX_CONCURRENCY,
        call_timeout: float = MODEL_CALL_TIMEOUT,
        db_timeout: float = DB_CALL_TIMEOUT,
        delay_seconds: float = INDEX_DELAY_SECONDS,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.adapter = adapter
        self.store = store
        self.skip_existing = skip_existing
        self.concurrency = max(1, concurrency)
        self.call_timeout = call_timeout
        self.db_timeout = db_timeout
        self.delay_seconds = delay_seconds
        self.on_progress = on_progress

    async def _report(self, status: str):
        if self.on_progress:
            await self.on_progress(status)

    async def _process(self, project_id: str, doc: Document, semaphore: asyncio.Semaphore,
                       position: int, total: int) -> FileOutcome:
        async with semaphore:
            content_hash = compute_content_hash(doc.content)

            if self.skip_existing:
                try:
                    if await self.store.is_indexed(project_id, doc.path, content_hash):
                        log(f"⏭️  Skipping {doc.path} - already indexed")
                        return FileOutcome(doc.path, skipped=True)
                except PersistenceError as e:
                    return FileOutcome(doc.path, error=f"Database error for {doc.path}: {e}")

            await self._report(f"Summarizing {doc.path} ({position}/{total})...")
            try:
                # Outer bound leaves room for the adapter's own timeout and the pattern fallback
                summary = await asyncio.wait_for(
                    summarize_document(self.adapter, doc.content, doc.file_name),
                    timeout=self.call_timeout * 2,
                )
                # Embed the summary, not the raw source
                embedding = await asyncio.wait_for(self.adapter.embed(summary), timeout=self.call_timeout)
            except asyncio.TimeoutError:
                return FileOutcome(doc.path, error=f"Processing error for {doc.path}: timed out after {self.call_timeout:g}s")
            except Exception as e:
                log(f"❌ Error processing {doc.path}: {type(e).__name__}: {e}")
                return FileOutcome(doc.path, error=f"Processing error for {doc.path}: {e}")

            # Two-phase write: the row (summary, source) first, then its vector
            try:
                row_id = await asyncio.wait_for(
                    self.store.upsert(
                        project_id=project_id,
                        file_path=doc.path,
                        file_name=doc.file_name,
                        summary=summary,
                        source_code=doc.content,
                        content_hash=content_hash,
                    ),
                    timeout=self.db_timeout,
                )
                await asyncio.wait_for(self.store.set_embedding(row_id, embedding), timeout=self.db_timeout)
            except asyncio.TimeoutError:
                return FileOutcome(doc.path, error=f"Database error for {doc.path}: timed out after {self.db_timeout:g}s")
            except Exception as e:
                log(f"❌ Database error for {doc.path}: {type(e).__name__}: {e}")
                return FileOutcome(doc.path, error=f"Database error for {doc.path}: {e}")

            log(f"✅ Stored embedding for: {doc.path}")
            if self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)
            return FileOutcome(doc.path, indexed=True)

    async def index_documents(self, project_id: str, documents: List[Document]) -> IndexResult:
        """
        Index already-filtered documents.

        Args:
            project_id: Project the rows belong to
            documents: Relevant documents

        Returns:
            IndexResult with per-file counts; errors are listed in input order
        """
        result = IndexResult()
        semaphore = asyncio.Semaphore(self.concurrency)
        total = len(documents)

        outcomes = await settle_all(
            self._process(project_id, doc, semaphore, position, total)
            for position, doc in enumerate(documents, 1)
        )

        for doc, outcome in zip(documents, outcomes):
            if not outcome.ok:
                result.errors.append(f"Processing error for {doc.path}: {outcome.error}")
                continue
            file_outcome = outcome.value
            if file_outcome.indexed:
                result.processed_count += 1
            elif file_outcome.skipped:
                result.skipped_count += 1
            else:
                result.errors.append(file_outcome.error)

        result.success = True
        log(f"📊 Results: {result.processed_count} processed, {result.skipped_count} skipped, {len(result.errors)} errors")
        return result

    async def index_repository(self, project_id: str, github_url: str, loader, ref: Optional[str] = None) -> IndexResult:
        """
        Load, filter and index a repository.

        Raises:
            LoadError: the repository could not be loaded; nothing is persisted
        """
        log(f"🚀 Starting RAG indexing for: {github_url}")
        await self._report("Loading repository...")

        documents = await loader.load_repository(github_url, ref=ref)
        if not documents:
            log("⚠️  No documents found in repository")
            await self._report("complete:No files to index")
            return IndexResult(success=True)

        stats = repository_stats(documents)
        log(f"📦 Loaded {stats['total_files']} files, {stats['total_lines']} lines, "
            f"largest: {stats['largest_file']['path']}")

        relevant = filter_relevant_documents(documents)
        filtered_out = len(documents) - len(relevant)
        log(f"📋 Processing {len(relevant)} relevant files (skipped {filtered_out})")

        result = await self.index_documents(project_id, relevant)
        result.skipped_count += filtered_out
        result.repository_stats = stats

        await self._report(
            f"complete:{result.processed_count} indexed, {result.skipped_count} skipped, {len(result.errors)} errors"
        )
        log(f"🎉 Indexing completed for {github_url}")
        return result
