"""
Embedding Service

Provides text embeddings for indexing and semantic search.
Uses fastembed by default for on-device embedding generation; the OpenAI
embeddings API is available as an alternative provider.

An unconfigured or unavailable provider is not an error: callers check
``is_available`` and degrade (indexing is skipped, semantic search returns
no results).
"""

import logging
from typing import List, Optional

import numpy as np

logger = logging.getLogger("atrium.common.embedding_service")

DISABLED_MODES = ("", "none", "off")


class EmbeddingUnavailableError(RuntimeError):
    """Raised when embeddings are requested from an unavailable provider."""


class EmbeddingService:
    """
    Embedding provider wrapper.

    Vectors are returned L2-normalized so a dot product equals cosine
    similarity.
    """

    def __init__(
        self,
        mode: str = "femb",
        model: str = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2",
        openai_api_key: Optional[str] = None,
    ):
        """
        Initialize embedding service.

        Args:
            mode: Provider mode (femb, openai, none)
            model: Model name for the provider
            openai_api_key: API key, required for the openai mode
        """
        self._mode = (mode or "").lower()
        self._model = model
        self._backend = None
        self._init_backend(openai_api_key)

    def _init_backend(self, openai_api_key: Optional[str]) -> None:
        """Initialize the underlying provider client"""
        if self._mode in DISABLED_MODES:
            logger.info("Embedding provider not configured; semantic features disabled")
            return

        if self._mode == "femb":
            try:
                from fastembed import TextEmbedding

                self._backend = TextEmbedding(model_name=self._model)
                logger.info("Embedding service ready (mode=femb, model=%s)", self._model)
            except ImportError as e:
                logger.warning("fastembed not installed: %s", e)
            except Exception as e:
                logger.warning("Failed to load fastembed model %s: %s", self._model, e)
            return

        if self._mode == "openai":
            if not openai_api_key:
                logger.info("OpenAI API key not provided, embedding provider unavailable")
                return
            try:
                from openai import OpenAI

                self._backend = OpenAI(api_key=openai_api_key)
                logger.info("Embedding service ready (mode=openai, model=%s)", self._model)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI embeddings: %s", e)
            return

        logger.warning("Unsupported embedding mode: %s", self._mode)

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._backend is not None

    @property
    def mode(self) -> str:
        return self._mode

    def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed

        Returns:
            List of embedding vectors (L2 normalized)

        Raises:
            EmbeddingUnavailableError: provider not configured or failed to load
        """
        if not self.is_available:
            raise EmbeddingUnavailableError(f"Embedding provider unavailable (mode={self._mode!r})")

        if not texts:
            return []

        if self._mode == "openai":
            response = self._backend.embeddings.create(model=self._model, input=texts)
            matrix = np.array([item.embedding for item in response.data], dtype=np.float32)
        else:
            matrix = np.array(list(self._backend.embed(texts)), dtype=np.float32)

        return normalize_rows(matrix).tolist()

    def embed_single(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: String to embed

        Returns:
            Embedding vector (L2 normalized)
        """
        if not text:
            raise ValueError("Cannot embed empty text")

        return self.embed([text])[0]


def normalize_rows(matrix: np.ndarray) -> np.ndarray:
    """L2-normalize each row, leaving zero rows untouched."""
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return matrix / norms


def batch_cosine_similarity(query_vec: List[float], vectors: List[List[float]]) -> List[float]:
    """Cosine similarity of one query against many vectors, clamped to [0, 1]."""
    if not vectors:
        return []

    query = normalize_rows(np.asarray(query_vec, dtype=np.float32))[0]
    matrix = normalize_rows(np.asarray(vectors, dtype=np.float32))

    if matrix.shape[1] != query.shape[0]:
        raise ValueError(f"Vector dimension mismatch: {matrix.shape[1]} vs {query.shape[0]}")

    similarities = np.clip(matrix @ query, 0.0, 1.0)
    return similarities.tolist()


# Module-level cache, one service per (mode, model)
_services = {}


def get_embedding_service(
    mode: str = "femb",
    model: str = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2",
    openai_api_key: Optional[str] = None,
) -> EmbeddingService:
    """
    Get a shared EmbeddingService instance.

    Loading a fastembed model is expensive, so services are cached by
    (mode, model).
    """
    key = ((mode or "").lower(), model)
    if key not in _services:
        _services[key] = EmbeddingService(mode=mode, model=model, openai_api_key=openai_api_key)
    return _services[key]
