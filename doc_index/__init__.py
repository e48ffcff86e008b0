"""Doc Index - Incremental embedding cache and vector search for package docs."""

from .builder import count_embeddings, delete_embeddings, embeddings_exist, generate_embeddings
from .client import EmbeddingClient, EmbeddingError, LangChainEmbeddingClient, OllamaEmbeddingClient
from .config import Settings, get_settings
from .logging_utils import configure_logging
from .progress import TqdmProgress
from .schemas import ChunkInput, GenerateResult, SearchResult
from .search import search
from .store import DimensionMismatchError, EmbeddingRecord, StoreError, VectorStore
from .version import compare, filter_latest_versions, find_latest

__version__ = "0.1.0"

__all__ = [
    "generate_embeddings",
    "embeddings_exist",
    "count_embeddings",
    "delete_embeddings",
    "search",
    "compare",
    "find_latest",
    "filter_latest_versions",
    "VectorStore",
    "EmbeddingRecord",
    "StoreError",
    "DimensionMismatchError",
    "EmbeddingClient",
    "EmbeddingError",
    "LangChainEmbeddingClient",
    "OllamaEmbeddingClient",
    "ChunkInput",
    "GenerateResult",
    "SearchResult",
    "Settings",
    "get_settings",
    "configure_logging",
    "TqdmProgress",
]
