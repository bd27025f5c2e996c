"""
Commit polling and AI commit summaries with pattern-based fallback
"""
from typing import Dict, List, Set, Tuple

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError

from core.config import COMMIT_POLL_LIMIT, MODEL_CALL_TIMEOUT
from core.errors import CodeaskError, LoadError, LoadErrorKind, PersistenceError
from models.documents import CommitData, PollResult
from models.tables import Commit
from services.summarizer import AISummarizer, pattern_summarizer
from utils.logging import log
from utils.settle import settle_all


def upsert_commits_statement(project_id: str, commits: List[CommitData]):
    """Bulk insert keyed on (project_id, commit_hash); a repeated hash updates in place."""
    stmt = insert(Commit).values([
        {
            "project_id": project_id,
            "commit_hash": c.commit_hash,
            "commit_message": c.commit_message,
            "commit_author_name": c.commit_author_name,
            "commit_author_avatar": c.commit_author_avatar,
            "commit_date": c.commit_date,
            "summary": c.summary,
        }
        for c in commits
    ])
    return stmt.on_conflict_do_update(
        index_elements=[Commit.project_id, Commit.commit_hash],
        set_={
            "commit_message": stmt.excluded.commit_message,
            "commit_author_name": stmt.excluded.commit_author_name,
            "commit_author_avatar": stmt.excluded.commit_author_avatar,
            "commit_date": stmt.excluded.commit_date,
            "summary": stmt.excluded.summary,
        },
    )


class CommitStore:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def existing_hashes(self, project_id: str) -> Set[str]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Commit.commit_hash).where(Commit.project_id == project_id)
                )
                return set(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(f"reading commit hashes failed: {type(e).__name__}: {e}") from e

    async def upsert_many(self, project_id: str, commits: List[CommitData]) -> int:
        if not commits:
            return 0
        try:
            async with self.session_factory() as session:
                result = await session.execute(upsert_commits_statement(project_id, commits))
                await session.commit()
                return result.rowcount if result.rowcount is not None and result.rowcount >= 0 else len(commits)
        except SQLAlchemyError as e:
            raise PersistenceError(f"saving commits failed: {type(e).__name__}: {e}") from e

    async def list(self, project_id: str) -> List[CommitData]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Commit)
                    .where(Commit.project_id == project_id)
                    .order_by(Commit.commit_date.desc().nulls_last(), Commit.id.desc())
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"listing commits failed: {type(e).__name__}: {e}") from e

        return [
            CommitData(
                commit_hash=row.commit_hash,
                commit_message=row.commit_message,
                commit_author_name=row.commit_author_name,
                commit_author_avatar=row.commit_author_avatar,
                commit_date=row.commit_date,
                summary=row.summary,
            )
            for row in rows
        ]


class CommitSummarizer:
    """
    Polls a project's latest commits and stores the new ones with summaries.

    Every new commit yields a row: when the diff fetch or the model call
    fails, the summary comes from keyword matching on the commit message.
    """

    def __init__(self, adapter, github, commits, projects, poll_limit: int = COMMIT_POLL_LIMIT,
                 timeout: float = MODEL_CALL_TIMEOUT):
        self.ai = AISummarizer(adapter)
        self.github = github
        self.commits = commits
        self.projects = projects
        self.poll_limit = poll_limit
        self.timeout = timeout

    async def summarize_commit(self, github_url: str, commit: CommitData) -> Tuple[str, bool]:
        """Returns (summary, produced_by_model)."""
        short = commit.commit_hash[:7]
        try:
            diff_text = await self.github.fetch_commit_diff(github_url, commit.commit_hash)
            summary = await self.ai.summarize_commit(diff_text)
            log(f"✅ AI summary generated for {short}")
            return summary, True
        except CodeaskError as e:
            log(f"⚠️  Commit {short}: {e} - using pattern detection")
            return pattern_summarizer.summarize_commit(commit.commit_message), False

    async def poll(self, project_id: str) -> PollResult:
        """
        Fetch the latest commits of a project and store the unseen ones.

        Raises:
            LoadError: project unknown or its repository cannot be read
            PersistenceError: the batch insert failed
        """
        project = await self.projects.get(project_id)
        if project is None:
            raise LoadError(LoadErrorKind.NOT_FOUND, f"Project with ID {project_id} not found")

        log(f"🔍 Polling commits for project: {project.name} -> {project.github_url}")
        latest = (await self.github.list_commits(project.github_url))[:self.poll_limit]

        existing = await self.commits.existing_hashes(project_id)
        new_commits = [c for c in latest if c.commit_hash not in existing]
        log(f"Found {len(new_commits)} new commits out of {len(latest)} total commits")

        if not new_commits:
            return PollResult(processed=0, total=len(latest), commits=[])

        outcomes = await settle_all(
            (self.summarize_commit(project.github_url, commit) for commit in new_commits),
            timeout=self.timeout,
        )

        processed = []
        ai_count = 0
        for commit, outcome in zip(new_commits, outcomes):
            if outcome.ok:
                summary, from_model = outcome.value
                ai_count += int(from_model)
            else:
                log(f"⚠️  Summary task failed for {commit.commit_hash[:7]}: {outcome.error}")
                summary = pattern_summarizer.summarize_commit(commit.commit_message)
            processed.append(CommitData(
                commit_hash=commit.commit_hash,
                commit_message=commit.commit_message,
                commit_author_name=commit.commit_author_name,
                commit_author_avatar=commit.commit_author_avatar,
                commit_date=commit.commit_date,
                summary=summary,
            ))

        saved = await self.commits.upsert_many(project_id, processed)
        log(f"🎉 Processed {len(processed)} commits with {ai_count} AI summaries, saved {saved}")
        return PollResult(processed=saved, total=len(latest), commits=processed)

    async def poll_many(self, project_ids: List[str]) -> Dict:
        """Poll projects one after another; a failing project is reported, not raised."""
        results = []
        total_processed = 0
        for project_id in project_ids:
            try:
                result = await self.poll(project_id)
                results.append({
                    "project_id": project_id,
                    "processed": result.processed,
                    "total": result.total,
                })
                total_processed += result.processed
            except CodeaskError as e:
                log(f"❌ Failed to poll commits for project {project_id}: {e}")
                results.append({"project_id": project_id, "processed": 0, "total": 0, "error": str(e)})

        log(f"🏁 Completed polling. Total commits processed: {total_processed}")
        return {"results": results, "total_processed": total_processed}
