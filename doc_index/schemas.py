"""Data schemas for the embedding index."""

from __future__ import annotations

import re
from typing import Any, Mapping, NamedTuple, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .utils import content_hash as compute_content_hash


LATEST_VERSION = "latest"
DEFAULT_MODEL = "all-minilm"

_HASH_RE = re.compile(r"^[0-9a-f]{64}$")


class ChunkInput(BaseModel):
    """A chunk of documentation text with its provenance."""
    package: Optional[str] = None
    version: Optional[str] = None
    source_file: str = Field(min_length=1)
    source_type: Optional[str] = None
    text: str = Field(min_length=1)
    content_hash: str = ""
    start_byte: Optional[int] = None
    end_byte: Optional[int] = None
    url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_chunk_file(cls, data: Any) -> Any:
        # Chunk files nest provenance under "metadata"
        if isinstance(data, Mapping) and isinstance(data.get("metadata"), Mapping):
            flat = dict(data["metadata"])
            flat.update({key: value for key, value in data.items() if key != "metadata"})
            return flat
        return data

    @field_validator("content_hash")
    @classmethod
    def _check_hash(cls, value: str) -> str:
        value = value.lower()
        if value and not _HASH_RE.match(value):
            raise ValueError("content_hash must be 64 hex characters")
        return value

    @model_validator(mode="after")
    def _fill_hash(self) -> "ChunkInput":
        if not self.content_hash:
            self.content_hash = compute_content_hash(self.text)
        return self


class SearchMetadata(BaseModel):
    """Provenance of a search hit."""
    id: int
    package: str
    version: str
    source_file: str
    text_snippet: Optional[str] = None
    url: Optional[str] = None
    text: str


class SearchResult(BaseModel):
    """A single nearest-neighbour hit. Lower score means closer."""
    score: float
    metadata: SearchMetadata


class GenerateResult(NamedTuple):
    """Counts returned by an embedding run."""
    total: int
    new: int
    reused: int


def metadata_field(result: Any, name: str) -> Any:
    """Read a metadata field from a SearchResult or a plain mapping."""
    metadata = result["metadata"] if isinstance(result, Mapping) else result.metadata
    if isinstance(metadata, Mapping):
        return metadata.get(name)
    return getattr(metadata, name, None)
