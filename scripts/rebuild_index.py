"""Rebuild the FAISS index from the embedding records in the registry store."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from skill_registry.api.app import build_embedder
from skill_registry.config.settings import Settings
from skill_registry.registry.service import decode_document
from skill_registry.storage.blob_store import LocalBlobStore
from skill_registry.storage.sqlite_registry_store import SQLiteRegistryStore
from skill_registry.vectorstore.faiss_store import FAISSEmbeddingStore


async def main() -> None:
    settings = Settings()
    store = SQLiteRegistryStore(settings.sqlite_db_path)
    await store.initialize()
    blobs = LocalBlobStore(settings.blob_store_path)
    embedder = await build_embedder(settings)
    index = FAISSEmbeddingStore(dimensions=embedder.dimensions)

    cursor = None
    while True:
        page = await store.list_embeddings_page(cursor, 100)
        for embedding in page.items:
            item = await store.get_item(embedding.item_id)
            version = await store.get_version(embedding.version_id)
            if item is None or version is None:
                print(f"skip {embedding.embedding_id}: missing item or version")
                continue
            primary = version.primary_document()
            data = await blobs.get(primary.storage_id) if primary else None
            readme = decode_document(data) if data else ""
            text = "\n".join(p for p in (item.display_name, item.summary, readme) if p)
            vector = (await embedder.embed_texts([text[: settings.embedding_max_chars]]))[0]
            index.add(embedding.embedding_id, vector, embedding.visibility)
        if page.is_done:
            break
        cursor = page.cursor

    index.save(settings.faiss_index_path)
    print(f"FAISS index rebuilt: {index.size} vectors")


if __name__ == "__main__":
    asyncio.run(main())
