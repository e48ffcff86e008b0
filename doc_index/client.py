"""Embedding provider clients."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

from langchain_community.embeddings import OllamaEmbeddings
from langchain_core.embeddings import Embeddings

from .config import Settings


logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """Raised when the provider cannot produce an embedding."""
    pass


class EmbeddingClient:
    """Turns a piece of text into a vector using a named model."""

    def embed(self, model: str, text: str) -> List[float]:
        """
        Return the embedding of ``text`` under ``model``.

        Subclasses implement this; it may be called from several threads
        at once. The result may also be an Ollama-style response mapping.
        """
        raise NotImplementedError


def _embed_with_retry(
    embeddings: Embeddings,
    text: str,
    max_retries: int = 2,
    delay: float = 0.5,
) -> List[float]:
    """Embed a single text with exponential backoff retry."""
    last_exc: Optional[BaseException] = None

    for attempt in range(max_retries + 1):
        try:
            vectors = embeddings.embed_documents([text])
            return vectors[0] if vectors else []
        except Exception as exc:
            last_exc = exc
            if attempt >= max_retries:
                break
            logger.debug("Embedding attempt %d failed: %s", attempt + 1, exc)
            time.sleep(delay)
            delay *= 2

    raise EmbeddingError(f"Embedding failed after retries: {last_exc}") from last_exc


class LangChainEmbeddingClient(EmbeddingClient):
    """
    Adapts LangChain ``Embeddings`` to the per-call model interface.

    One ``Embeddings`` instance is built per model name and reused.
    """

    def __init__(
        self,
        factory: Callable[[str], Embeddings],
        max_retries: int = 2,
        retry_delay: float = 0.5,
    ) -> None:
        self._factory = factory
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._instances: Dict[str, Embeddings] = {}
        self._lock = threading.Lock()

    def _embeddings_for(self, model: str) -> Embeddings:
        with self._lock:
            if model not in self._instances:
                self._instances[model] = self._factory(model)
            return self._instances[model]

    def embed(self, model: str, text: str) -> List[float]:
        return _embed_with_retry(
            self._embeddings_for(model),
            text,
            max_retries=self.max_retries,
            delay=self.retry_delay,
        )


class OllamaEmbeddingClient(LangChainEmbeddingClient):
    """Embedding client backed by a local Ollama server."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        max_retries: int = 2,
        retry_delay: float = 0.5,
    ) -> None:
        self.base_url = base_url
        super().__init__(self._build, max_retries=max_retries, retry_delay=retry_delay)

    @classmethod
    def from_settings(cls, settings: Settings) -> "OllamaEmbeddingClient":
        return cls(settings.ollama_base_url, max_retries=settings.embed_retries)

    def _build(self, model: str) -> Embeddings:
        # Raw text in, same as the query path
        return OllamaEmbeddings(
            model=model,
            base_url=self.base_url,
            embed_instruction="",
            query_instruction="",
        )


def extract_vector(response: Any) -> Optional[List[float]]:
    """
    Pull the vector out of a provider response.

    Accepts a bare sequence of floats or an Ollama-style mapping with
    ``embeddings`` (list of vectors) or ``embedding``.
    """
    if isinstance(response, Mapping):
        if "embeddings" in response:
            embeddings = response["embeddings"]
            if not embeddings:
                return None
            response = embeddings[0]
        elif "embedding" in response:
            response = response["embedding"]
        else:
            return None

    if response is None:
        return None
    try:
        vector = [float(value) for value in response]
    except (TypeError, ValueError):
        return None
    return vector or None
