"""
Summarization strategies: Claude first, deterministic pattern analysis on failure
"""
from pathlib import PurePosixPath
from typing import Optional

from core.errors import AdapterUnavailable
from utils.logging import log

JS_EXTENSIONS = {"ts", "tsx", "js", "jsx"}

# (keywords, sentence) checked in order against the lower-cased commit message
COMMIT_PATTERNS = [
    (("fix", "bug"), "🐛 This appears to be a bug fix or error correction."),
    (("feat", "add", "new"), "✨ New feature or functionality has been added."),
    (("update", "modify", "change"), "🔄 Existing code has been updated or modified."),
    (("remove", "delete"), "🗑️ Code or features have been removed."),
    (("refactor",), "♻️ Code has been refactored for better structure."),
    (("doc", "readme"), "📚 Documentation has been updated."),
    (("test",), "🧪 Tests have been added or updated."),
    (("merge",), "🔀 Branch merge containing multiple changes."),
]
COMMIT_DEFAULT = "⚡ General improvements and updates."


class PatternSummarizer:
    """Keyword-based summaries used when the model is unavailable."""

    def summarize_document(self, content: str, file_name: Optional[str] = None) -> str:
        name = PurePosixPath(file_name).name if file_name else ""
        extension = name.rsplit(".", 1)[-1].lower() if "." in name else "unknown"
        total_lines = len(content.split("\n"))

        summary = f"📄 {name or 'File'} ({extension.upper()}) - {total_lines} lines. "
        lower_content = content.lower()

        if extension in JS_EXTENSIONS:
            if "function" in lower_content or "=>" in lower_content:
                summary += "⚡ Contains function definitions. "
            if "class " in lower_content:
                summary += "🏗️ Defines classes. "
            if "import " in lower_content or "require(" in lower_content:
                summary += "📦 Has dependencies. "
            if "export " in lower_content:
                summary += "📤 Exports functionality. "
        elif extension == "py":
            if "def " in lower_content:
                summary += "⚡ Contains function definitions. "
            if "class " in lower_content:
                summary += "🏗️ Defines classes. "
            if "import " in lower_content:
                summary += "📦 Has dependencies. "
        elif extension == "md":
            summary += "📚 Documentation file. "
        elif extension == "json":
            summary += "⚙️ Configuration or data file. "
        elif extension == "css":
            summary += "🎨 Styling definitions. "

        return summary + "(Basic analysis - AI unavailable)"

    def summarize_commit(self, commit_message: str) -> str:
        message = commit_message.lower()
        detail = COMMIT_DEFAULT
        for keywords, sentence in COMMIT_PATTERNS:
            if any(keyword in message for keyword in keywords):
                detail = sentence
                break
        return f"📝 Code changes detected. {detail} (AI analysis failed - using pattern detection)"


class AISummarizer:
    """Model-backed summaries. Raises AdapterUnavailable; never falls back itself."""

    def __init__(self, adapter):
        self.adapter = adapter

    async def summarize_document(self, content: str, file_name: Optional[str] = None) -> str:
        return await self.adapter.summarize(content, hint=file_name or "Unknown file")

    async def summarize_commit(self, diff_text: str) -> str:
        return await self.adapter.summarize(diff_text)


pattern_summarizer = PatternSummarizer()


async def summarize_document(adapter, content: str, file_name: Optional[str] = None) -> str:
    """Summarize one file, switching to pattern analysis when the model call fails."""
    try:
        return await AISummarizer(adapter).summarize_document(content, file_name)
    except AdapterUnavailable as e:
        log(f"⚠️  Summary fallback for {file_name or 'unknown file'}: {e}")
        return pattern_summarizer.summarize_document(content, file_name)
