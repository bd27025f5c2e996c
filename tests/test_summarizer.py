import pytest

from services.summarizer import PatternSummarizer, summarize_document
from tests.conftest import FakeAdapter

pattern = PatternSummarizer()


def test_document_summary_for_typescript():
    content = "import x from 'y'\nexport function add(a, b) {\n  return a + b\n}"

    summary = pattern.summarize_document(content, "src/math.ts")

    assert summary.startswith("📄 math.ts (TS) - 4 lines. ")
    assert "Contains function definitions" in summary
    assert "Has dependencies" in summary
    assert "Exports functionality" in summary
    assert summary.endswith("(Basic analysis - AI unavailable)")


def test_document_summary_for_python_and_docs():
    assert "Defines classes" in pattern.summarize_document("class A:\n    pass", "a.py")
    assert "Documentation file" in pattern.summarize_document("# Title", "README.md")
    assert "(UNKNOWN)" in pattern.summarize_document("text", None)


@pytest.mark.parametrize("message,expected", [
    ("fix: null pointer in parser", "bug fix"),
    ("Feat: add dark mode", "New feature"),
    ("update dependencies", "updated or modified"),
    ("remove legacy endpoint", "removed"),
    ("refactor query layer", "refactored"),
    ("README tweaks", "Documentation"),
    ("more tests", "Tests have been"),
    ("Merge pull request #12", "Branch merge"),
    ("wip", "General improvements"),
])
def test_commit_keyword_mapping(message, expected):
    summary = pattern.summarize_commit(message)

    assert summary.startswith("📝 Code changes detected. ")
    assert expected in summary
    assert summary.endswith("(AI analysis failed - using pattern detection)")


def test_commit_keywords_checked_in_order():
    # "fix" wins over "add"
    assert "bug fix" in pattern.summarize_commit("add fix for login")


@pytest.mark.asyncio
async def test_summarize_document_uses_model():
    adapter = FakeAdapter(summary="adds two numbers")

    summary = await summarize_document(adapter, "export const add = (a, b) => a + b", "add.ts")

    assert summary == "adds two numbers"
    assert adapter.summarize_calls == [("export const add = (a, b) => a + b", "add.ts")]


@pytest.mark.asyncio
async def test_summarize_document_falls_back_to_patterns():
    adapter = FakeAdapter(fail_summarize=True)

    summary = await summarize_document(adapter, "def main():\n    pass", "main.py")

    assert summary.startswith("📄 main.py (PY)")
    assert "(Basic analysis - AI unavailable)" in summary
