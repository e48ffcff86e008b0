#!/usr/bin/env python3
"""Example: Embed the chunk files of a package version."""

import os
import sys

from doc_index import (
    OllamaEmbeddingClient,
    TqdmProgress,
    VectorStore,
    configure_logging,
    generate_embeddings,
    get_settings,
)
from doc_index.utils import load_chunk_files


def main():
    settings = get_settings()
    package = os.getenv("PACKAGE", "requests")
    version = os.getenv("VERSION", "latest")
    model = os.getenv("EMBED_MODEL", settings.default_embedding_model)
    force = os.getenv("FORCE", "").lower() in ("1", "true", "yes")

    configure_logging(settings.log_level, settings.log_dir if settings.log_to_file else None)

    chunks_dir = settings.chunks_dir(package)
    chunk_files = load_chunk_files(chunks_dir)
    if not chunk_files:
        print(f"Error: No chunk files found in {chunks_dir}")
        print("Set DOC_INDEX_DATA_PATH or PACKAGE to point at chunked documentation")
        sys.exit(1)

    print("=" * 60)
    print("Doc Index - Generate Embeddings")
    print("=" * 60)
    print(f"Package:          {package}")
    print(f"Version:          {version}")
    print(f"Chunk files:      {len(chunk_files)}")
    print(f"Embedding model:  {model}")
    print(f"Ollama base URL:  {settings.ollama_base_url}")
    print(f"Database:         {settings.resolved_database_url}")
    print(f"Force:            {force}")
    print("=" * 60)
    print()

    store = VectorStore.from_settings(settings)
    client = OllamaEmbeddingClient.from_settings(settings)

    try:
        with TqdmProgress() as progress:
            result = generate_embeddings(
                store,
                client,
                package,
                version,
                model,
                chunk_files,
                force=force,
                progress_callback=progress,
                batch_size=settings.batch_size,
                max_concurrency=settings.max_concurrency,
                chunk_timeout=settings.chunk_timeout,
            )

        print()
        print("=" * 60)
        print("Embedding completed successfully!")
        print("=" * 60)
        print(f"Total stored:  {result.total}")
        print(f"Newly embedded: {result.new}")
        print(f"Reused:        {result.reused}")
        skipped = len(chunk_files) - result.total
        if skipped:
            print(f"Skipped:       {skipped} (see log for details)")
        print("=" * 60)

    except Exception as e:
        print(f"\nError during embedding: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        store.close()


if __name__ == "__main__":
    main()
