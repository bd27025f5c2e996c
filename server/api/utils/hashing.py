"""
Content hashing utilities
"""
import hashlib


def compute_content_hash(content: str) -> str:
    """Compute SHA-256 hash of a document's text content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
