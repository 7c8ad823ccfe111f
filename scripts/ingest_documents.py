#!/usr/bin/env python3
"""
Corpus Ingestion Script

Embeds documents from a JSON file and inserts them into the document store.

The file holds a JSON array of objects with at least `content`; optional keys
are `title`, `category` (or `type`), `college`, `prompt`, `source` and
`tags` (or `topics`).

Usage:
    python scripts/ingest_documents.py --file essays.json [--dry-run] [--batch-size 10]
"""

import sys
import json
import asyncio
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def to_document(raw: dict, index: int):
    from writing_agents.common.schemas import Document

    return Document(
        title=raw.get("title") or f"Essay {index + 1}",
        content=raw["content"],
        category=raw.get("category") or raw.get("type") or "personal_statement",
        college=raw.get("college"),
        prompt=raw.get("prompt"),
        source=raw.get("source"),
        tags=raw.get("tags") or raw.get("topics") or [],
    )


async def ingest(args) -> int:
    from writing_agents.common.config import load_config
    from writing_agents.common.document_store import SupabaseDocumentStore
    from writing_agents.common.embedding_service import EmbeddingService
    from writing_agents.common.errors import ModelNotReady

    config = load_config()

    records = json.loads(Path(args.file).read_text(encoding="utf-8"))
    if not isinstance(records, list):
        print("[Ingest] ERROR: expected a JSON array of documents")
        return 1

    documents = []
    errors = 0
    for i, raw in enumerate(records):
        try:
            documents.append(to_document(raw, i))
        except (AttributeError, KeyError, ValueError) as e:
            print(f"[Ingest] WARNING: Skipping record {i + 1}: {e}")
            errors += 1

    print(f"[Ingest] {len(documents)} valid documents in {args.file}")

    if args.dry_run:
        print("[Ingest] DRY RUN - no changes will be made")
        print(f"[Ingest] Batch size: {args.batch_size}")
        return 0

    print(f"[Ingest] Model: {config.embedding.model}")
    encoder = EmbeddingService(
        model_name=config.embedding.model,
        dimension=config.embedding.dimension,
        batch_size=args.batch_size,
        batch_delay=config.embedding.batch_delay,
    )
    try:
        await encoder.initialize()
    except ModelNotReady as e:
        print(f"[Ingest] ERROR: {e}")
        return 1

    store = SupabaseDocumentStore.from_credentials(
        config.supabase.url,
        config.supabase.key,
        table=config.supabase.table,
        match_function=config.supabase.match_function,
    )

    inserted = 0
    for start in range(0, len(documents), args.batch_size):
        batch = documents[start:start + args.batch_size]
        print(f"[Ingest] Embedding batch {start // args.batch_size + 1} ({len(batch)} documents)...")
        embeddings = await encoder.encode_batch([d.content for d in batch])

        for doc, embedding in zip(batch, embeddings):
            try:
                await store.insert(doc.model_copy(update={"embedding": embedding}))
                inserted += 1
            except Exception as e:
                print(f"[Ingest] WARNING: Failed to insert '{doc.title}': {e}")
                errors += 1

    print(f"[Ingest] Complete: {inserted} inserted, {errors} errors, {len(records)} total")
    return 0 if errors == 0 else 2


def main():
    parser = argparse.ArgumentParser(description="Embed and insert documents into the corpus")
    parser.add_argument("--file", required=True, help="JSON file with an array of documents")
    parser.add_argument("--dry-run", action="store_true", help="Validate input without embedding or inserting")
    parser.add_argument("--batch-size", type=int, default=10, help="Documents embedded per batch")
    args = parser.parse_args()

    sys.exit(asyncio.run(ingest(args)))


if __name__ == "__main__":
    main()
