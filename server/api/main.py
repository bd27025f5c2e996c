"""
Codeask API - ask questions about a GitHub repository with Claude

Indexes repository files (summary + embedding per file) into pgvector and
answers questions with retrieval-augmented generation. Also polls commit
history and stores a summary per commit.
"""
import uuid
import asyncio
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional, List

import httpx
from fastapi import FastAPI, HTTPException, Depends, Query
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from core import (
    ANTHROPIC_API_KEY, API_SECRET_KEY, EMBEDDING_MODEL,
    LoadError, LoadErrorKind, PersistenceError, ValidationError,
)
from core.database import init_db, get_session, close_db
from core.deps import (
    verify_api_key, get_model_adapter, get_vector_store, get_question_store,
    get_project_store, get_commit_store, get_github_client,
)
from models import Project, SourceCodeEmbedding, Question, Commit
from models.schemas import (
    CommitInfo, FileReference, IndexRequest, IndexResponse, IndexStats, IndexedFilePage,
    PollResponse, ProjectCreate, ProjectInfo, QueryRequest, QueryResponse, QuestionInfo,
    StatusResponse,
)
from services import (
    init_claude_client, init_embedding_model, reset_adapter,
    GitHubClient, IndexingPipeline, QueryPipeline, CommitSummarizer,
)
from utils import (
    log, index_progress, send_progress, init_index_progress, progress_reporter,
    cleanup_index_progress,
)

# HTTP status per repository load failure
LOAD_ERROR_STATUS = {
    LoadErrorKind.NOT_FOUND: 404,
    LoadErrorKind.UNAUTHORIZED: 401,
    LoadErrorKind.RATE_LIMITED: 429,
    LoadErrorKind.UNAVAILABLE: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Initialize database
    await init_db()

    # Initialize Claude client with custom timeout settings
    if ANTHROPIC_API_KEY:
        # Create custom HTTP client with connection timeout
        http_client = httpx.Client(
            timeout=httpx.Timeout(
                connect=30.0,  # 30s to establish connection
                read=300.0,    # 5 minutes to read response
                write=30.0,    # 30s to send request
                pool=30.0      # 30s to get connection from pool
            )
        )
        init_claude_client(ANTHROPIC_API_KEY, http_client)
    else:
        log("⚠️  WARNING: ANTHROPIC_API_KEY not set - summaries use pattern analysis and questions cannot be answered")

    # Initialize embedding model
    init_embedding_model(EMBEDDING_MODEL)

    log(f"🚀 Codeask API started")
    log(f"🔐 API key auth: {'enabled' if API_SECRET_KEY != 'change-me-in-production' else 'disabled'}")

    yield

    # Cleanup
    reset_adapter()
    await close_db()
    log("👋 Codeask API shutting down")


# Initialize FastAPI app
app = FastAPI(title="Codeask", lifespan=lifespan)

# CORS for the dashboard and remote clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def require_project(project_id: str, projects) -> Project:
    project = await projects.get(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def project_info(project: Project) -> ProjectInfo:
    return ProjectInfo(
        id=project.id,
        name=project.name,
        github_url=project.github_url,
        created_at=project.created_at.isoformat() if project.created_at else "",
    )


# ============================================================================
# API ROUTES
# ============================================================================

@app.get("/api/status", response_model=StatusResponse)
async def get_status(session: AsyncSession = Depends(get_session)):
    """Get server status and index statistics."""
    project_count = await session.scalar(select(func.count(Project.id)))
    file_count = await session.scalar(select(func.count(SourceCodeEmbedding.id)))
    question_count = await session.scalar(select(func.count(Question.id)))
    commit_count = await session.scalar(select(func.count(Commit.id)))
    return StatusResponse(
        status="ok",
        project_count=project_count or 0,
        file_count=file_count or 0,
        question_count=question_count or 0,
        commit_count=commit_count or 0,
    )


@app.post("/api/projects", response_model=ProjectInfo)
async def create_project(
    request: ProjectCreate,
    projects=Depends(get_project_store),
    _: bool = Depends(verify_api_key)
):
    """Register a GitHub repository."""
    try:
        project = await projects.create(request.name, request.github_url)
    except LoadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    log(f"📁 Project created: {project.name} -> {project.github_url}")
    return project_info(project)


@app.get("/api/projects", response_model=List[ProjectInfo])
async def list_projects(
    projects=Depends(get_project_store),
    _: bool = Depends(verify_api_key)
):
    """List registered projects, newest first."""
    return [project_info(p) for p in await projects.list()]


@app.get("/api/projects/{project_id}", response_model=ProjectInfo)
async def get_project(
    project_id: str,
    projects=Depends(get_project_store),
    _: bool = Depends(verify_api_key)
):
    return project_info(await require_project(project_id, projects))


@app.post("/api/projects/{project_id}/index", response_model=IndexResponse)
async def index_project(
    project_id: str,
    request: IndexRequest,
    projects=Depends(get_project_store),
    store=Depends(get_vector_store),
    adapter=Depends(get_model_adapter),
    github: GitHubClient = Depends(get_github_client),
    _: bool = Depends(verify_api_key)
):
    """Load, summarize, embed and store a project's repository files."""
    project = await require_project(project_id, projects)

    # Generate run ID if not provided (for SSE progress tracking)
    run_id = request.run_id or str(uuid.uuid4())
    init_index_progress(run_id, project_id)

    loader = GitHubClient(token=request.github_token) if request.github_token else github
    pipeline = IndexingPipeline(
        adapter,
        store,
        skip_existing=request.skip_existing,
        on_progress=progress_reporter(run_id),
    )

    try:
        result = await pipeline.index_repository(project.id, project.github_url, loader, ref=request.ref)
        return IndexResponse(**asdict(result), run_id=run_id)

    except LoadError as e:
        log(f"❌ Failed to load repository {project.github_url}: {e}")
        await send_progress(run_id, f"error:{e}")
        body = IndexResponse(
            success=False,
            errors=[f"Fatal error: {e}"],
            error_kind=e.kind.value,
            run_id=run_id,
        )
        return JSONResponse(status_code=LOAD_ERROR_STATUS[e.kind], content=body.model_dump())
    except Exception as e:
        log(f"❌ Indexing failed: {type(e).__name__}: {e}")
        await send_progress(run_id, f"error:{e}")
        raise HTTPException(status_code=500, detail=f"Indexing failed: {e}")
    finally:
        # Clean up progress tracking after a delay
        async def cleanup_later():
            await asyncio.sleep(5)
            cleanup_index_progress(run_id)
        asyncio.create_task(cleanup_later())


@app.get("/api/index/{run_id}/progress")
async def index_progress_stream(
    run_id: str,
    api_key: Optional[str] = Query(None)
):
    """SSE endpoint for indexing progress updates."""
    # Verify API key from query param (EventSource can't send custom headers)
    if API_SECRET_KEY != "change-me-in-production":
        if not api_key or api_key != API_SECRET_KEY:
            raise HTTPException(status_code=401, detail="Invalid or missing API key")

    async def event_generator():
        queue = asyncio.Queue()

        # Register this SSE client for progress updates
        if run_id not in index_progress:
            index_progress[run_id] = {"status": "waiting", "project_id": "", "queues": []}
        index_progress[run_id]["queues"].append(queue)

        log(f"📡 SSE client connected for run {run_id}")

        try:
            while True:
                try:
                    # Wait for progress update with 30s timeout
                    data = await asyncio.wait_for(queue.get(), timeout=30.0)

                    event_data = f"event: progress\ndata: {data['status']}\n\n"
                    yield event_data.encode('utf-8')

                    # Close connection once the run is complete or failed
                    if data['status'].startswith('complete:') or data['status'].startswith('error:'):
                        break

                except asyncio.TimeoutError:
                    # Send keepalive comment to prevent buffering
                    yield f": keepalive\n\n".encode('utf-8')
                    continue

        finally:
            log(f"📡 SSE client disconnected for run {run_id}")
            if run_id in index_progress:
                try:
                    index_progress[run_id]["queues"].remove(queue)
                except ValueError:
                    pass

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
            "Connection": "keep-alive",
        }
    )


@app.get("/api/projects/{project_id}/stats", response_model=IndexStats)
async def get_index_stats(
    project_id: str,
    store=Depends(get_vector_store),
    _: bool = Depends(verify_api_key)
):
    """Indexed file counts and summary statistics for a project."""
    try:
        return await store.stats(project_id)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/projects/{project_id}/files", response_model=IndexedFilePage)
async def list_indexed_files(
    project_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    store=Depends(get_vector_store),
    _: bool = Depends(verify_api_key)
):
    """Page through a project's indexed files by name."""
    try:
        return await store.list_files(project_id, limit=limit, offset=offset)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.delete("/api/projects/{project_id}/embeddings")
async def clear_embeddings(
    project_id: str,
    store=Depends(get_vector_store),
    _: bool = Depends(verify_api_key)
):
    """Delete every indexed file of a project."""
    try:
        deleted = await store.clear(project_id)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    log(f"🗑️  Cleared {deleted} indexed files for project {project_id}")
    return {"deleted_count": deleted, "success": True}


@app.post("/api/projects/{project_id}/query", response_model=QueryResponse)
async def query_project(
    project_id: str,
    request: QueryRequest,
    store=Depends(get_vector_store),
    questions=Depends(get_question_store),
    adapter=Depends(get_model_adapter),
    _: bool = Depends(verify_api_key)
):
    """Ask a question about a project's code."""
    pipeline = QueryPipeline(adapter, store, questions)
    try:
        result = await pipeline.answer(project_id, request.question, request.top_k)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return QueryResponse(**asdict(result))


@app.get("/api/projects/{project_id}/search", response_model=List[FileReference])
async def search_project(
    project_id: str,
    q: str,
    limit: int = 10,
    store=Depends(get_vector_store),
    questions=Depends(get_question_store),
    adapter=Depends(get_model_adapter),
    _: bool = Depends(verify_api_key)
):
    """Search a project's files by semantic similarity."""
    pipeline = QueryPipeline(adapter, store, questions)
    try:
        return await pipeline.search(project_id, q, limit)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log(f"❌ Search error: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail=f"Search failed: {e}")


@app.get("/api/projects/{project_id}/questions", response_model=List[QuestionInfo])
async def list_questions(
    project_id: str,
    questions=Depends(get_question_store),
    _: bool = Depends(verify_api_key)
):
    """Questions asked about a project, newest first."""
    return await questions.list(project_id)


@app.get("/api/projects/{project_id}/questions/{question_id}", response_model=QuestionInfo)
async def get_question(
    project_id: str,
    question_id: int,
    questions=Depends(get_question_store),
    _: bool = Depends(verify_api_key)
):
    """One question with the sources it was answered from."""
    question = await questions.get(project_id, question_id)
    if not question:
        raise HTTPException(status_code=404, detail="Question not found")
    return question


@app.delete("/api/projects/{project_id}/questions/{question_id}")
async def delete_question(
    project_id: str,
    question_id: int,
    questions=Depends(get_question_store),
    _: bool = Depends(verify_api_key)
):
    if not await questions.delete(project_id, question_id):
        raise HTTPException(status_code=404, detail="Question not found")
    log(f"🗑️  Deleted question {question_id}")
    return {"message": "Question deleted", "question_id": question_id}


@app.delete("/api/projects/{project_id}/questions")
async def clear_questions(
    project_id: str,
    questions=Depends(get_question_store),
    _: bool = Depends(verify_api_key)
):
    deleted = await questions.clear(project_id)
    return {"deleted_count": deleted, "success": True}


@app.post("/api/projects/{project_id}/commits/poll", response_model=PollResponse)
async def poll_project_commits(
    project_id: str,
    projects=Depends(get_project_store),
    commits=Depends(get_commit_store),
    adapter=Depends(get_model_adapter),
    github: GitHubClient = Depends(get_github_client),
    _: bool = Depends(verify_api_key)
):
    """Fetch and summarize a project's new commits."""
    summarizer = CommitSummarizer(adapter, github, commits, projects)
    try:
        result = await summarizer.poll(project_id)
    except LoadError as e:
        raise HTTPException(status_code=LOAD_ERROR_STATUS[e.kind], detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return PollResponse(
        processed=result.processed,
        total=result.total,
        commits=[CommitInfo(**asdict(c)) for c in result.commits],
    )


@app.get("/api/projects/{project_id}/commits", response_model=List[CommitInfo])
async def list_commits(
    project_id: str,
    commits=Depends(get_commit_store),
    _: bool = Depends(verify_api_key)
):
    """Stored commits of a project, newest first."""
    return [CommitInfo(**asdict(c)) for c in await commits.list(project_id)]


@app.post("/api/commits/poll-all")
async def poll_all_commits(
    projects=Depends(get_project_store),
    commits=Depends(get_commit_store),
    adapter=Depends(get_model_adapter),
    github: GitHubClient = Depends(get_github_client),
    _: bool = Depends(verify_api_key)
):
    """Poll commits for every registered project."""
    summarizer = CommitSummarizer(adapter, github, commits, projects)
    project_ids = [p.id for p in await projects.list()]
    return await summarizer.poll_many(project_ids)


@app.get("/")
async def root():
    """API root - redirect to documentation."""
    return {
        "name": "Codeask",
        "version": "1.0.0",
        "docs": "/docs",
    }
