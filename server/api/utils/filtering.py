"""
Relevance filtering for loaded repository documents
"""
from pathlib import PurePosixPath
from typing import List

from core.config import MAX_DOCUMENT_CHARS
from models.documents import Document

# Text and code formats worth summarizing. Extension-less files are matched by name.
CODE_EXTENSIONS = {
    "ts", "tsx", "js", "jsx", "py", "java", "cpp", "c", "h", "hpp",
    "cs", "go", "rs", "php", "rb", "swift", "kt", "scala", "clj",
    "md", "txt", "json", "yml", "yaml", "xml", "css", "scss", "less",
    "html", "vue", "svelte", "sql", "sh", "bash", "dockerfile",
    "toml", "ini", "cfg",
}

SKIP_FILE_NAMES = {"package-lock.json", "yarn.lock", "pnpm-lock.yaml", ".gitignore"}
SKIP_DIRECTORIES = {"node_modules", "dist", "build", ".git", "vendor"}


def document_extension(path: str) -> str:
    """Lower-cased extension, or the whole lower-cased name when there is none."""
    name = PurePosixPath(path).name
    if "." in name.lstrip("."):
        return name.rsplit(".", 1)[-1].lower()
    return name.lower()


def matches_skip_pattern(path: str) -> bool:
    """True for lockfiles, env files and anything under vendored or build directories."""
    parts = PurePosixPath(path).parts
    if not parts:
        return False
    name = parts[-1].lower()
    if name in SKIP_FILE_NAMES:
        return True
    if name == ".env" or name.startswith(".env."):
        return True
    return any(part.lower() in SKIP_DIRECTORIES for part in parts[:-1])


def is_relevant(doc: Document, max_chars: int = MAX_DOCUMENT_CHARS) -> bool:
    """Apply the relevance rules in order; every rule must hold."""
    if not doc.content.strip():
        return False
    # Oversized files are skipped rather than truncated
    if len(doc.content) > max_chars:
        return False
    if document_extension(doc.path) not in CODE_EXTENSIONS:
        return False
    return not matches_skip_pattern(doc.path)


def filter_relevant_documents(docs: List[Document], max_chars: int = MAX_DOCUMENT_CHARS) -> List[Document]:
    """
    Narrow loaded documents to those worth indexing.

    Pure and order-preserving: filtering an already filtered list returns it unchanged.

    Args:
        docs: Documents in loader order
        max_chars: Content length ceiling

    Returns:
        The relevant documents, in input order
    """
    return [doc for doc in docs if is_relevant(doc, max_chars)]
