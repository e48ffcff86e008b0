#!/usr/bin/env python3
"""Example: Query stored documentation embeddings."""

import os
import sys

from doc_index import (
    OllamaEmbeddingClient,
    VectorStore,
    configure_logging,
    count_embeddings,
    get_settings,
    search,
)


def main():
    settings = get_settings()
    package = os.getenv("PACKAGE") or None
    version = os.getenv("VERSION") or None
    model = os.getenv("EMBED_MODEL", settings.default_embedding_model)
    all_versions = os.getenv("ALL_VERSIONS", "").lower() in ("1", "true", "yes")
    top_k = int(os.getenv("TOP_K", str(settings.top_k)))

    configure_logging(settings.log_level, settings.log_dir if settings.log_to_file else None)

    store = VectorStore.from_settings(settings)
    client = OllamaEmbeddingClient.from_settings(settings)

    stored = store.count(package, version)
    if not stored:
        print(f"Error: No embeddings stored for {package or 'any package'} {version or ''}".rstrip())
        print("Run example_generate.py first or set PACKAGE/VERSION environment variables")
        sys.exit(1)

    print("=" * 60)
    print("Doc Index - Search")
    print("=" * 60)
    print(f"Package:         {package or '(all)'}")
    print(f"Version:         {version or ('(all)' if all_versions else '(latest per package)')}")
    print(f"Stored vectors:  {stored}")
    if package:
        print(f"Latest tag rows: {count_embeddings(store, package, None)}")
    print(f"Embedding model: {model}")
    print(f"Top k:           {top_k}")
    print()

    print("=" * 60)
    print("Enter queries (or 'quit' to exit)")
    print("=" * 60)
    print()

    while True:
        query = input("Query: ").strip()
        if not query or query.lower() in ("quit", "exit", "q"):
            break

        print()
        results = search(
            store,
            client,
            query,
            package=package,
            version=version,
            model=model,
            top_k=top_k,
            all_versions=all_versions,
        )
        if not results:
            print("No results.")
            print()
            continue

        print(f"Top {len(results)} results:")
        print()
        for rank, result in enumerate(results, start=1):
            meta = result.metadata
            print(f"[{rank}] Distance: {result.score:.4f}")
            print(f"    Package: {meta.package} {meta.version}")
            print(f"    File:    {meta.source_file}")
            if meta.url:
                print(f"    URL:     {meta.url}")
            print(f"    Text:    {meta.text_snippet or ''}")
            print()

    store.close()
    print("Goodbye!")


if __name__ == "__main__":
    main()
