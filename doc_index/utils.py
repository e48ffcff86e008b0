"""Utility functions for chunk handling."""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union


SNIPPET_LENGTH = 100


def content_hash(text: str) -> str:
    """Calculate the SHA-256 hex digest of a chunk's text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def text_snippet(text: str, limit: int = SNIPPET_LENGTH) -> str:
    """Truncate text to limit with ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def iter_batches(items: List, batch_size: int) -> Iterable[List]:
    """Yield batches of items."""
    for start in range(0, len(items), batch_size):
        yield items[start : start + batch_size]


def load_chunk_files(chunks_dir: Union[str, Path]) -> List[str]:
    """
    List chunk files written by the chunker.

    Args:
        chunks_dir: Directory holding one ``*.json`` file per chunk

    Returns:
        Sorted list of chunk file paths (empty when the directory is missing)
    """
    if not os.path.isdir(chunks_dir):
        return []
    return sorted(str(path) for path in Path(chunks_dir).glob("*.json"))


def read_chunk_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a single chunk file.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not a JSON object
    """
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"Chunk file is not a JSON object: {path}")
    return data
