"""Semantic search over stored embeddings."""

from __future__ import annotations

import logging
from typing import List, Optional

from .client import EmbeddingClient, extract_vector
from .progress import ProgressCallback, report
from .schemas import DEFAULT_MODEL, SearchMetadata, SearchResult
from .store import DimensionMismatchError, EmbeddingRecord, StoreError, VectorStore
from .version import filter_latest_versions


logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 3


def _to_result(record: EmbeddingRecord, distance: float) -> SearchResult:
    return SearchResult(
        score=distance,
        metadata=SearchMetadata(
            id=record.id,
            package=record.package,
            version=record.version,
            source_file=record.source_file,
            text_snippet=record.text_snippet,
            url=record.url,
            text=record.text,
        ),
    )


def search(
    store: VectorStore,
    client: EmbeddingClient,
    query: str,
    package: Optional[str] = None,
    version: Optional[str] = None,
    model: str = DEFAULT_MODEL,
    *,
    top_k: int = DEFAULT_TOP_K,
    all_versions: bool = False,
    progress_callback: Optional[ProgressCallback] = None,
) -> List[SearchResult]:
    """
    Find the chunks closest to a query.

    Args:
        store: Vector store to search
        client: Embedding provider client for the query vector
        query: Natural-language query
        package: Restrict to one package (None searches all packages)
        version: Restrict to one version
        model: Embedding model name; must match the model used for the chunks
        top_k: Maximum number of results
        all_versions: Search every stored version when no version is given
        progress_callback: Called with (processed, total, stage)

    Returns:
        Results ordered by ascending L2 distance (``score``); lower is closer.
        Without a version and without ``all_versions`` only each package's
        latest version is considered. Errors are logged and yield ``[]``.
    """
    top_k = max(top_k, 0)

    report(progress_callback, 0, 2, "generating")
    try:
        query_vector = extract_vector(client.embed(model, query))
    except Exception as exc:
        logger.error("Error generating query embedding: %s", exc)
        return []
    if query_vector is None:
        logger.error("Error generating query embedding: provider returned no vector")
        return []
    report(progress_callback, 1, 2, "generating")

    latest_only = version is None and not all_versions

    report(progress_callback, 0, 1, "searching")
    try:
        hits = store.nearest(
            query_vector,
            top_k=None if latest_only else top_k,
            package=package,
            version=version,
        )
    except (StoreError, DimensionMismatchError) as exc:
        logger.error("Error searching embeddings: %s", exc)
        return []
    report(progress_callback, 1, 1, "searching")

    results = [_to_result(record, distance) for record, distance in hits]
    if latest_only:
        results = filter_latest_versions(results)
        results.sort(key=lambda result: result.score)
    return results[:top_k]
