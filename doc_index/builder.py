"""Generate and persist chunk embeddings, reusing vectors for unchanged text."""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from pydantic import ValidationError

from .client import EmbeddingClient, extract_vector
from .progress import ProgressCallback, report
from .schemas import LATEST_VERSION, ChunkInput, GenerateResult
from .store import VectorStore, encode_vector
from .utils import iter_batches, read_chunk_file


logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_MAX_CONCURRENCY = 4
DEFAULT_CHUNK_TIMEOUT = 30.0
SAVE_REPORT_EVERY = 10
# How often to re-check queued chunks that have not started yet
POLL_INTERVAL = 0.05

ChunkSource = Union[ChunkInput, Mapping[str, Any], str, os.PathLike]


@dataclass
class _Candidate:
    """A chunk resolved to a vector, waiting to be persisted."""
    chunk: ChunkInput
    vector: bytes
    reused: bool


def _describe(item: Any) -> str:
    if isinstance(item, ChunkInput):
        return f"{item.source_file}@{item.start_byte}"
    if isinstance(item, Mapping):
        metadata = item.get("metadata")
        if isinstance(metadata, Mapping):
            return str(metadata.get("source_file") or "<chunk>")
        return str(item.get("source_file") or "<chunk>")
    return str(item)


def parse_chunk(item: ChunkSource) -> ChunkInput:
    """
    Turn a chunk source item into a ChunkInput.

    Raises:
        OSError: If a chunk file cannot be read
        ValueError: If the data is malformed (includes pydantic validation errors)
    """
    if isinstance(item, ChunkInput):
        return item
    if isinstance(item, Mapping):
        return ChunkInput.model_validate(item)
    if isinstance(item, (str, os.PathLike)):
        return ChunkInput.model_validate(read_chunk_file(item))
    raise ValueError(f"Unsupported chunk type: {type(item).__name__}")


def _parse_all(items: List[ChunkSource]) -> List[ChunkInput]:
    chunks: List[ChunkInput] = []
    for item in items:
        try:
            chunks.append(parse_chunk(item))
        except (OSError, ValueError, ValidationError) as exc:
            logger.error("Error processing %s: %s", _describe(item), exc)
    return chunks


def _process_chunk(
    chunk: ChunkInput,
    store: VectorStore,
    client: EmbeddingClient,
    package: str,
    version: str,
    model: str,
    force: bool,
) -> Optional[_Candidate]:
    """Resolve one chunk to a candidate record; provider failures yield None."""
    if not force:
        reusable = store.find_reusable_vector(package, version, chunk.content_hash)
        if reusable is not None:
            return _Candidate(chunk, reusable, reused=True)

    try:
        response = client.embed(model, chunk.text)
    except Exception as exc:
        logger.error("Error processing %s: embedding request failed: %s", _describe(chunk), exc)
        return None

    vector = extract_vector(response)
    if vector is None:
        logger.error("No embeddings in response for %s", _describe(chunk))
        return None

    return _Candidate(chunk, encode_vector(vector), reused=False)


def _timed(index: int, started: Dict[int, float], fn, *args) -> Any:
    started[index] = time.monotonic()
    return fn(*args)


def _collect_batch(
    batch: List[ChunkInput],
    futures: List[Future],
    started: Dict[int, float],
    timeout: float,
) -> List[_Candidate]:
    """
    Wait for a batch, giving each chunk ``timeout`` seconds from the moment
    a worker picks it up. Chunks still queued are not timed.
    """
    index_of = {future: idx for idx, future in enumerate(futures)}
    results: Dict[int, Optional[_Candidate]] = {}
    pending = set(futures)

    while pending:
        now = time.monotonic()
        deadlines = [started[index_of[f]] + timeout for f in pending if index_of[f] in started]
        wait_for = max(min(deadlines) - now, 0.0) if deadlines else POLL_INTERVAL
        done, pending = wait(pending, timeout=min(wait_for, timeout), return_when=FIRST_COMPLETED)

        for future in done:
            results[index_of[future]] = future.result()

        now = time.monotonic()
        for future in list(pending):
            begun = started.get(index_of[future])
            if begun is not None and now - begun >= timeout:
                pending.discard(future)
                future.cancel()
                logger.error(
                    "Error processing %s: timed out after %.1fs",
                    _describe(batch[index_of[future]]),
                    timeout,
                )

    return [results[idx] for idx in range(len(futures)) if results.get(idx) is not None]


def generate_embeddings(
    store: VectorStore,
    client: EmbeddingClient,
    package: str,
    version: Optional[str],
    model: str,
    chunks: Iterable[ChunkSource],
    *,
    force: bool = False,
    progress_callback: Optional[ProgressCallback] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    chunk_timeout: float = DEFAULT_CHUNK_TIMEOUT,
) -> GenerateResult:
    """
    Embed chunks for a package version and store them.

    Vectors are reused from any stored record with the same content hash in
    the package (same version first). Only chunks without a match are sent
    to the provider. Everything is written in one transaction at the end.

    Stored records of a source file that no longer match any of the file's
    chunks in this run are removed. A chunk that fails or times out still
    counts as part of its file, so its stored record is kept.

    Args:
        store: Target vector store
        client: Embedding provider client
        package: Package name
        version: Package version (None means "latest")
        model: Embedding model name
        chunks: ChunkInput objects, mappings or chunk file paths
        force: Re-embed every chunk instead of reusing stored vectors
        progress_callback: Called with (processed, total, stage)
        batch_size: Chunks dispatched per batch
        max_concurrency: Concurrent provider calls
        chunk_timeout: Seconds allowed per chunk once a worker starts it

    Returns:
        GenerateResult(total, new, reused)

    Raises:
        StoreError: If the store cannot be read or the write transaction fails
        DimensionMismatchError: If a vector does not fit the store
    """
    version = version or LATEST_VERSION
    items = list(chunks)
    total_chunks = len(items)
    if not items:
        logger.info("No chunks to embed for %s %s", package, version)
        return GenerateResult(0, 0, 0)

    logger.info("Generating embeddings for %d chunks of %s %s", total_chunks, package, version)

    parsed = _parse_all(items)
    hashes_by_file: Dict[str, Set[str]] = {}
    for chunk in parsed:
        hashes_by_file.setdefault(chunk.source_file, set()).add(chunk.content_hash)

    candidates: List[_Candidate] = []
    processed = total_chunks - len(parsed)

    executor = ThreadPoolExecutor(max_workers=max_concurrency, thread_name_prefix="embed")
    try:
        for batch in iter_batches(parsed, batch_size):
            started: Dict[int, float] = {}
            futures = [
                executor.submit(
                    _timed, idx, started, _process_chunk, chunk, store, client, package, version, model, force
                )
                for idx, chunk in enumerate(batch)
            ]
            candidates.extend(_collect_batch(batch, futures, started, chunk_timeout))

            processed += len(batch)
            report(progress_callback, processed, total_chunks, "processing")
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    if not parsed:
        report(progress_callback, total_chunks, total_chunks, "processing")

    new_count = sum(1 for candidate in candidates if not candidate.reused)
    reused_count = len(candidates) - new_count

    if candidates:
        _persist(store, package, version, candidates, hashes_by_file, progress_callback)

    dropped = total_chunks - len(candidates)
    if dropped:
        logger.warning("%d chunk(s) of %s %s skipped", dropped, package, version)
    logger.info(
        "Stored embeddings for %s %s: new=%d reused=%d",
        package,
        version,
        new_count,
        reused_count,
    )
    return GenerateResult(new_count + reused_count, new_count, reused_count)




def _persist(
    store: VectorStore,
    package: str,
    version: str,
    candidates: List[_Candidate],
    hashes_by_file: Dict[str, Set[str]],
    progress_callback: Optional[ProgressCallback],
) -> None:
    total = len(candidates)
    with store.transaction() as session:
        for idx, candidate in enumerate(candidates, start=1):
            store.upsert(session, package, version, candidate.chunk, candidate.vector)
            if idx % SAVE_REPORT_EVERY == 0 and idx != total:
                report(progress_callback, idx, total, "saving")

        removed = store.prune_superseded(session, package, version, hashes_by_file)
        if removed:
            logger.info("Removed %d superseded embedding(s) for %s %s", removed, package, version)

        report(progress_callback, total, total, "saving")


def embeddings_exist(store: VectorStore, package: Optional[str], version: Optional[str]) -> bool:
    """Check whether embeddings exist; a None package matches any package."""
    return store.exists(package, version or LATEST_VERSION)


def count_embeddings(store: VectorStore, package: Optional[str], version: Optional[str]) -> int:
    """Number of stored embeddings for a package version."""
    return store.count(package, version or LATEST_VERSION)


def delete_embeddings(store: VectorStore, package: Optional[str], version: Optional[str]) -> int:
    """
    Delete all embeddings of one package version.

    A None package deletes nothing and returns 0.
    """
    if package is None:
        logger.warning("Refusing to delete embeddings without a package")
        return 0
    version = version or LATEST_VERSION
    count = store.delete(package, version)
    logger.info("Deleted %d embedding(s) for %s %s", count, package, version)
    return count
