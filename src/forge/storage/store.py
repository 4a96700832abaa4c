"""Persistence boundary for memories, reflections and user documents."""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Collections used by the engines
MEMORIES = "memories"
AGENT_MEMORIES = "agent_memories"
USERS = "users"
PREFERENCES = "preferences"
KNOWLEDGE = "knowledge"


def _matches(record: dict, filters: dict[str, Any] | None) -> bool:
    if not filters:
        return True
    return all(record.get(key) == value for key, value in filters.items())


class MemoryStore(ABC):
    """Document store used by the memory and profile engines.

    Append-only collections are queried newest first. Key-value documents
    (users, preferences) are read with ``get`` and written with ``put``.
    """

    @abstractmethod
    async def append(self, collection: str, record: dict) -> None:
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        pass

    @abstractmethod
    async def get(self, collection: str, key: str) -> dict | None:
        pass

    @abstractmethod
    async def put(self, collection: str, key: str, value: dict) -> None:
        pass


class InMemoryStore(MemoryStore):
    """Process-local store. Collections keep at most ``max_entries`` records."""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self._records: dict[str, list[dict]] = {}
        self._documents: dict[str, dict[str, dict]] = {}

    async def append(self, collection: str, record: dict) -> None:
        records = self._records.setdefault(collection, [])
        records.insert(0, dict(record))
        del records[self.max_entries:]

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        matched = [dict(r) for r in self._records.get(collection, []) if _matches(r, filters)]
        return matched if limit is None else matched[:limit]

    async def get(self, collection: str, key: str) -> dict | None:
        value = self._documents.get(collection, {}).get(key)
        return dict(value) if value is not None else None

    async def put(self, collection: str, key: str, value: dict) -> None:
        self._documents.setdefault(collection, {})[key] = dict(value)


class JsonlFileStore(MemoryStore):
    """File-backed store.

    Append-only collections are ``<collection>.jsonl`` files, one JSON record
    per line, compacted to the newest ``max_entries`` records once they grow
    past that. Documents are ``<collection>/<key>.json``. File work runs in a
    worker thread.
    """

    def __init__(self, root: Path, max_entries: int = 1000):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.max_entries = max_entries
        self._lock = asyncio.Lock()
        self._counts: dict[str, int] = {}

    def _collection_file(self, collection: str) -> Path:
        return self.root / f"{collection}.jsonl"

    def _document_file(self, collection: str, key: str) -> Path:
        safe_key = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.root / collection / f"{safe_key}.json"

    async def append(self, collection: str, record: dict) -> None:
        async with self._lock:
            await asyncio.to_thread(self._append_sync, collection, record)

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        async with self._lock:
            records = await asyncio.to_thread(self._read_records, collection)

        matched = [r for r in reversed(records) if _matches(r, filters)]
        return matched if limit is None else matched[:limit]

    async def get(self, collection: str, key: str) -> dict | None:
        return await asyncio.to_thread(self._read_document, self._document_file(collection, key))

    async def put(self, collection: str, key: str, value: dict) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write_document, self._document_file(collection, key), value)

    def _append_sync(self, collection: str, record: dict) -> None:
        path = self._collection_file(collection)
        if collection not in self._counts:
            self._counts[collection] = len(self._read_records(collection))

        with open(path, "a") as f:
            f.write(json.dumps(record) + "\n")
        self._counts[collection] += 1

        if self._counts[collection] > self.max_entries:
            kept = self._read_records(collection)[-self.max_entries:]
            tmp = path.with_suffix(".jsonl.tmp")
            with open(tmp, "w") as f:
                f.writelines(json.dumps(r) + "\n" for r in kept)
            tmp.replace(path)
            self._counts[collection] = len(kept)
            logger.debug(f"Compacted {path.name} to {len(kept)} records")

    def _read_records(self, collection: str) -> list[dict]:
        path = self._collection_file(collection)
        if not path.exists():
            return []

        records = []
        with open(path, "r") as f:
            for line_no, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning(f"Skipping corrupt record {path.name}:{line_no}")
        return records

    @staticmethod
    def _read_document(path: Path) -> dict | None:
        if not path.exists():
            return None
        with open(path, "r") as f:
            return json.load(f)

    @staticmethod
    def _write_document(path: Path, value: dict) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(value, f, indent=2)


def create_store(memory_config) -> MemoryStore | None:
    """Build the store named by ``memory.store``. ``none`` disables persistence."""
    kind = memory_config.store
    if kind == "none":
        return None
    if kind == "memory":
        return InMemoryStore(max_entries=memory_config.max_entries * 10)
    if kind == "jsonl":
        from forge.config.schema import get_memory_dir

        root = Path(memory_config.path) if memory_config.path else get_memory_dir()
        return JsonlFileStore(root, max_entries=memory_config.max_entries * 10)
    raise ValueError(f"Unknown memory store: {kind}")
