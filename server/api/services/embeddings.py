"""
Embedding generation service using sentence-transformers
"""
from typing import List
from sentence_transformers import SentenceTransformer
from core.config import EMBEDDING_MODEL
from utils.logging import log

# Global embedding model instance
embedding_model = None


def init_embedding_model(model_name: str = EMBEDDING_MODEL):
    """Initialize sentence transformer model."""
    global embedding_model
    log(f"🧠 Loading embedding model: {model_name}...")
    embedding_model = SentenceTransformer(model_name)
    log(f"✅ Embedding model loaded")
    return embedding_model


def encode_texts(model, texts: List[str]) -> List[List[float]]:
    """
    Generate embeddings for a list of texts with the given model.

    Args:
        model: Loaded SentenceTransformer (or anything with a compatible encode())
        texts: List of text strings to embed

    Returns:
        List of embedding vectors (each is a list of floats)
    """
    if not texts:
        return []

    embeddings = model.encode(texts, show_progress_bar=False)
    return [[float(x) for x in row] for row in embeddings]
