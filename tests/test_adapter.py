import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from core.errors import AdapterUnavailable
from services.adapter import ModelAdapter


def claude_returning(text):
    client = MagicMock()
    client.messages.create.return_value = SimpleNamespace(
        content=[SimpleNamespace(text=text)],
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )
    return client


class StubEncoder:
    def __init__(self, rows):
        self.rows = rows
        self.calls = []

    def encode(self, texts, show_progress_bar=False):
        self.calls.append(list(texts))
        return self.rows


@pytest.mark.asyncio
async def test_summarize_with_file_hint_uses_document_prompt():
    client = claude_returning("  Adds two numbers.  ")
    adapter = ModelAdapter(claude_client=client, model="test-model")

    summary = await adapter.summarize("export const add = (a, b) => a + b", hint="add.ts")

    assert summary == "Adds two numbers."
    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["model"] == "test-model"
    prompt = kwargs["messages"][0]["content"]
    assert "File: add.ts" in prompt
    assert "export const add" in prompt


@pytest.mark.asyncio
async def test_summarize_without_hint_uses_commit_prompt():
    client = claude_returning("Bug fix in parser.")
    adapter = ModelAdapter(claude_client=client)

    await adapter.summarize("COMMIT: abc1234\nMESSAGE: fix parser")

    prompt = client.messages.create.call_args.kwargs["messages"][0]["content"]
    assert "Commit data:" in prompt


@pytest.mark.asyncio
async def test_long_summaries_are_truncated():
    adapter = ModelAdapter(claude_client=claude_returning("x" * 800), summary_max_chars=500)

    summary = await adapter.summarize("content", hint="a.py")

    assert len(summary) == 500
    assert summary.endswith("...")


@pytest.mark.asyncio
async def test_missing_client_is_unavailable():
    adapter = ModelAdapter(claude_client=None)

    with pytest.raises(AdapterUnavailable):
        await adapter.generate("question")


@pytest.mark.asyncio
async def test_sdk_errors_become_unavailable():
    client = MagicMock()
    client.messages.create.side_effect = RuntimeError("overloaded")
    adapter = ModelAdapter(claude_client=client)

    with pytest.raises(AdapterUnavailable, match="overloaded"):
        await adapter.generate("question")


@pytest.mark.asyncio
async def test_blank_completion_is_unavailable():
    adapter = ModelAdapter(claude_client=claude_returning("   "))

    with pytest.raises(AdapterUnavailable):
        await adapter.summarize("content", hint="a.py")


@pytest.mark.asyncio
async def test_slow_call_times_out():
    client = MagicMock()
    client.messages.create.side_effect = lambda **kwargs: time.sleep(0.5)
    adapter = ModelAdapter(claude_client=client, timeout=0.05)

    with pytest.raises(AdapterUnavailable, match="timed out"):
        await adapter.generate("question")


@pytest.mark.asyncio
async def test_embed_returns_one_vector():
    encoder = StubEncoder([[0.25, 0.5, 0.25]])
    adapter = ModelAdapter(embedding_model=encoder, dimension=3)

    vector = await adapter.embed("adds two numbers")

    assert vector == [0.25, 0.5, 0.25]
    assert encoder.calls == [["adds two numbers"]]


@pytest.mark.asyncio
async def test_embed_never_returns_empty_vector():
    adapter = ModelAdapter(embedding_model=StubEncoder([[]]), dimension=None)

    with pytest.raises(AdapterUnavailable):
        await adapter.embed("text")


@pytest.mark.asyncio
async def test_embed_rejects_wrong_dimension():
    adapter = ModelAdapter(embedding_model=StubEncoder([[1.0, 0.0]]), dimension=3)

    with pytest.raises(AdapterUnavailable, match="dimensions"):
        await adapter.embed("text")


@pytest.mark.asyncio
@pytest.mark.parametrize("row", [[0.0, 0.0, 0.0], [1.0, float("nan"), 0.0]])
async def test_embed_rejects_degenerate_vectors(row):
    adapter = ModelAdapter(embedding_model=StubEncoder([row]), dimension=3)

    with pytest.raises(AdapterUnavailable, match="zero or NaN"):
        await adapter.embed("text")


@pytest.mark.asyncio
async def test_embed_without_model_is_unavailable():
    with pytest.raises(AdapterUnavailable):
        await ModelAdapter(embedding_model=None).embed("text")
