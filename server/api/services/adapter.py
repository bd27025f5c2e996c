"""
Model adapter: summarize, embed and generate behind one injectable object
"""
import asyncio
import math
from functools import partial
from typing import List, Optional

from core.config import CLAUDE_MODEL, EMBEDDING_DIM, MODEL_CALL_TIMEOUT, SUMMARY_MAX_CHARS
from core.errors import AdapterUnavailable
from services import embeddings, generation
from utils.logging import log


class ModelAdapter:
    """
    Wraps the Claude client and the embedding model.

    Every call runs the blocking SDK in the default thread pool, is bounded by
    a timeout, and raises AdapterUnavailable on any failure. No method returns
    a placeholder value.
    """

    def __init__(
        self,
        claude_client=None,
        embedding_model=None,
        model: str = CLAUDE_MODEL,
        timeout: float = MODEL_CALL_TIMEOUT,
        dimension: Optional[int] = EMBEDDING_DIM,
        summary_max_chars: int = SUMMARY_MAX_CHARS,
    ):
        self.claude_client = claude_client
        self.embedding_model = embedding_model
        self.model = model
        self.timeout = timeout
        self.dimension = dimension
        self.summary_max_chars = summary_max_chars

    async def _run(self, label: str, func, *args, **kwargs):
        # Run the blocking call in a thread pool to avoid blocking event loop
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, partial(func, *args, **kwargs)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise AdapterUnavailable(f"{label} timed out after {self.timeout:g}s")
        except AdapterUnavailable:
            raise
        except Exception as e:
            raise AdapterUnavailable(f"{label} failed: {type(e).__name__}: {e}") from e

    async def _complete(self, label: str, prompt: str, max_tokens: int) -> str:
        if not self.claude_client:
            raise AdapterUnavailable("Claude API not configured")
        text = await self._run(label, generation.complete, self.claude_client, self.model, prompt, max_tokens)
        text = (text or "").strip()
        if not text:
            raise AdapterUnavailable(f"{label} returned no text")
        return text

    async def summarize(self, text: str, hint: Optional[str] = None) -> str:
        """
        Summarize text with Claude.

        With a hint (a file name) the text is summarized as a source file;
        without one it is treated as commit data.
        """
        if hint is not None:
            prompt = generation.build_document_summary_prompt(text, hint)
        else:
            prompt = generation.build_commit_summary_prompt(text)

        summary = await self._complete("summarize", prompt, max_tokens=1024)
        if len(summary) > self.summary_max_chars:
            return summary[:self.summary_max_chars - 3] + "..."
        return summary

    async def embed(self, text: str) -> List[float]:
        """Embed one text. Raises rather than returning an empty or mis-sized vector."""
        if self.embedding_model is None:
            raise AdapterUnavailable("Embedding model not initialized")

        vectors = await self._run("embed", embeddings.encode_texts, self.embedding_model, [text])
        if not vectors or not vectors[0]:
            raise AdapterUnavailable("embed returned no values")
        vector = vectors[0]
        if self.dimension is not None and len(vector) != self.dimension:
            raise AdapterUnavailable(f"embed returned {len(vector)} dimensions, expected {self.dimension}")
        if not any(vector) or any(math.isnan(x) for x in vector):
            raise AdapterUnavailable("embed returned a zero or NaN vector")
        return vector

    async def generate(self, prompt: str) -> str:
        return await self._complete("generate", prompt, max_tokens=4096)


# Process-wide adapter, built once from the initialized clients
_adapter: Optional[ModelAdapter] = None


def get_adapter() -> ModelAdapter:
    """Return the shared adapter, creating it from the global clients on first use."""
    global _adapter
    if _adapter is None:
        if generation.claude_client is None:
            log("⚠️  WARNING: Claude client not initialized - summaries fall back to pattern analysis")
        _adapter = ModelAdapter(
            claude_client=generation.claude_client,
            embedding_model=embeddings.embedding_model,
        )
    return _adapter


def reset_adapter():
    """Drop the shared adapter (tests, shutdown)."""
    global _adapter
    _adapter = None
