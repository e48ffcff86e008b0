"""Tests for Doc Index schemas."""

import pytest
from pydantic import ValidationError

from doc_index.schemas import ChunkInput, GenerateResult, SearchMetadata, SearchResult, metadata_field
from doc_index.utils import content_hash


def test_chunk_input_creation():
    """Test creating ChunkInput computes the content hash."""
    chunk = ChunkInput(
        text="Sample text for embedding",
        source_file="docs/guide.md",
        source_type="markdown",
        start_byte=10,
        end_byte=35,
        url="https://example.org/guide",
    )

    assert chunk.content_hash == content_hash("Sample text for embedding")
    assert chunk.source_type == "markdown"
    assert chunk.end_byte == 35
    assert chunk.package is None


def test_chunk_input_keeps_given_hash():
    """Test a supplied hash is normalised to lowercase and kept."""
    given = content_hash("other").upper()
    chunk = ChunkInput(text="text", source_file="a.md", content_hash=given)
    assert chunk.content_hash == given.lower()


def test_chunk_input_flattens_metadata():
    """Test chunk file layout with nested metadata."""
    chunk = ChunkInput.model_validate(
        {
            "text": "Body",
            "metadata": {"source_file": "docs/a.md", "package": "requests", "version": "2.31.0"},
        }
    )

    assert chunk.source_file == "docs/a.md"
    assert chunk.package == "requests"
    assert chunk.version == "2.31.0"


@pytest.mark.parametrize(
    "data",
    [
        {"source_file": "a.md"},
        {"text": "", "source_file": "a.md"},
        {"text": "body"},
        {"text": "body", "source_file": "a.md", "content_hash": "not-a-hash"},
    ],
)
def test_chunk_input_invalid(data):
    """Test malformed chunks are rejected."""
    with pytest.raises(ValidationError):
        ChunkInput.model_validate(data)


def test_search_result():
    """Test SearchResult and metadata access."""
    result = SearchResult(
        score=0.42,
        metadata=SearchMetadata(id=7, package="requests", version="2.31.0", source_file="a.md", text="body"),
    )

    assert result.metadata.text_snippet is None
    assert metadata_field(result, "version") == "2.31.0"
    assert metadata_field({"metadata": {"version": "1.0.0"}}, "version") == "1.0.0"
    assert metadata_field({"metadata": {}}, "package") is None


def test_generate_result_unpacks():
    """Test GenerateResult behaves as a (total, new, reused) tuple."""
    total, new, reused = GenerateResult(5, 2, 3)
    assert (total, new, reused) == (5, 2, 3)
    assert GenerateResult(5, 2, 3).reused == 3
