"""
RAG question answering over indexed source files
"""
from typing import List

from core.config import CONTEXT_CODE_CHARS, DEFAULT_TOP_K, MAX_TOP_K
from core.errors import ValidationError
from models.documents import QueryResult
from models.schemas import FileReference
from services.generation import build_answer_prompt
from utils.logging import log, log_exception

APOLOGY = "I apologize, but I encountered an error while processing your question. Please try again."

EMPTY_CONTEXT_NOTICE = "(No indexed files matched this question. The project may not be indexed yet.)"

CONTEXT_DELIMITER = "\n\n---\n\n"


def validate_query(question: str, top_k: int):
    """Reject blank questions and out-of-range top_k before any model call."""
    if not question or not question.strip():
        raise ValidationError("Question cannot be empty")
    if not 1 <= top_k <= MAX_TOP_K:
        raise ValidationError(f"top_k must be between 1 and {MAX_TOP_K}")


def truncate_code(source_code: str, limit: int = CONTEXT_CODE_CHARS) -> str:
    if len(source_code) <= limit:
        return source_code
    return source_code[:limit] + "..."


def build_context(sources: List[FileReference], code_chars: int = CONTEXT_CODE_CHARS) -> str:
    """
    Concatenate retrieved files, highest similarity first.

    Args:
        sources: Retrieval results in top-k order
        code_chars: Source code characters shown per file

    Returns:
        Context string, or a no-match notice when sources is empty
    """
    if not sources:
        return EMPTY_CONTEXT_NOTICE

    return CONTEXT_DELIMITER.join(
        f"File: {source.file_name}\nSummary: {source.summary}\nCode:\n{truncate_code(source.source_code, code_chars)}"
        for source in sources
    )


class QueryPipeline:
    """
    Answers questions about a project from its nearest indexed files.

    Model and retrieval failures become an apologetic answer rather than an
    exception; a failure to store the Q&A never hides a generated answer.
    """

    def __init__(self, adapter, store, questions, code_chars: int = CONTEXT_CODE_CHARS):
        self.adapter = adapter
        self.store = store
        self.questions = questions
        self.code_chars = code_chars

    async def retrieve(self, project_id: str, question: str, top_k: int) -> List[FileReference]:
        query_vector = await self.adapter.embed(question)
        return await self.store.top_k(project_id, query_vector, top_k)

    async def answer(self, project_id: str, question: str, top_k: int = DEFAULT_TOP_K) -> QueryResult:
        """
        Answer a question with retrieval-augmented generation.

        Raises:
            ValidationError: blank question or top_k out of range
        """
        validate_query(question, top_k)
        log(f"🔍 RAG Query: \"{question}\"")

        try:
            sources = await self.retrieve(project_id, question, top_k)
            log(f"📋 Found {len(sources)} relevant documents")
            for i, source in enumerate(sources, 1):
                log(f"  {i}. {source.file_name} (similarity: {source.similarity:.3f})")

            context = build_context(sources, self.code_chars)
            answer = await self.adapter.generate(build_answer_prompt(question, context))
        except Exception as e:
            log_exception("RAG query failed", e)
            return QueryResult(answer=APOLOGY, sources=[], success=False)

        question_id = None
        try:
            # Frozen copy of the sources as they were at answer time
            question_id = await self.questions.save(project_id, question, answer, list(sources))
        except Exception as e:
            log(f"⚠️  Could not save question for project {project_id}: {type(e).__name__}: {e}")

        return QueryResult(answer=answer, sources=sources, success=True, question_id=question_id)

    async def search(self, project_id: str, query: str, limit: int = 10) -> List[FileReference]:
        """Retrieval only; source code shortened for display."""
        validate_query(query, limit)
        sources = await self.retrieve(project_id, query, limit)
        return [
            source.model_copy(update={"source_code": truncate_code(source.source_code, 500)})
            for source in sources
        ]
