"""Tests for memory stores"""
import asyncio
from unittest.mock import patch

import pytest

from forge.config.schema import MemoryConfig
from forge.storage.store import InMemoryStore, JsonlFileStore, create_store


@pytest.mark.asyncio
async def test_in_memory_query_newest_first_with_filters():
    store = InMemoryStore()
    await store.append("memories", {"n": 1, "user_id": "u1"})
    await store.append("memories", {"n": 2, "user_id": "u2"})
    await store.append("memories", {"n": 3, "user_id": "u1"})

    records = await store.query("memories", filters={"user_id": "u1"})

    assert [r["n"] for r in records] == [3, 1]
    assert [r["n"] for r in await store.query("memories", limit=1)] == [3]
    assert await store.query("missing") == []


@pytest.mark.asyncio
async def test_in_memory_caps_entries():
    store = InMemoryStore(max_entries=2)
    for n in range(5):
        await store.append("memories", {"n": n})

    assert [r["n"] for r in await store.query("memories")] == [4, 3]


@pytest.mark.asyncio
async def test_in_memory_documents_are_copies():
    store = InMemoryStore()
    doc = {"full_name": "Ada"}
    await store.put("users", "u1", doc)
    doc["full_name"] = "changed"

    assert await store.get("users", "u1") == {"full_name": "Ada"}
    assert await store.get("users", "nobody") is None


@pytest.mark.asyncio
async def test_jsonl_store_persists_across_instances(tmp_path):
    store = JsonlFileStore(tmp_path / "mem")
    await store.append("memories", {"n": 1, "session_id": "s"})
    await store.append("memories", {"n": 2, "session_id": "s"})
    await store.put("users", "u/1", {"full_name": "Ada"})

    reopened = JsonlFileStore(tmp_path / "mem")

    assert [r["n"] for r in await reopened.query("memories", filters={"session_id": "s"})] == [2, 1]
    assert await reopened.get("users", "u/1") == {"full_name": "Ada"}


@pytest.mark.asyncio
async def test_jsonl_store_skips_corrupt_lines(tmp_path):
    store = JsonlFileStore(tmp_path)
    await store.append("memories", {"n": 1})
    with open(tmp_path / "memories.jsonl", "a") as f:
        f.write("{not json\n\n")
    await store.append("memories", {"n": 2})

    assert [r["n"] for r in await store.query("memories")] == [2, 1]


def test_create_store(tmp_path):
    assert create_store(MemoryConfig(store="none")) is None
    assert isinstance(create_store(MemoryConfig()), InMemoryStore)
    jsonl = create_store(MemoryConfig(store="jsonl", path=str(tmp_path / "m")))
    assert isinstance(jsonl, JsonlFileStore)
    assert jsonl.root == tmp_path / "m"
    assert jsonl.max_entries == MemoryConfig().max_entries * 10

    with pytest.raises(ValueError):
        create_store(MemoryConfig(store="redis"))


@pytest.mark.asyncio
async def test_jsonl_store_compacts_to_max_entries(tmp_path):
    store = JsonlFileStore(tmp_path, max_entries=3)
    for n in range(5):
        await store.append("memories", {"n": n})

    assert [r["n"] for r in await store.query("memories")] == [4, 3, 2]
    assert len((tmp_path / "memories.jsonl").read_text().splitlines()) == 3
    assert [r["n"] for r in await JsonlFileStore(tmp_path, max_entries=3).query("memories")] == [4, 3, 2]


@pytest.mark.asyncio
async def test_jsonl_store_file_work_runs_in_thread(tmp_path):
    store = JsonlFileStore(tmp_path)

    with patch("forge.storage.store.asyncio.to_thread", wraps=asyncio.to_thread) as to_thread:
        await store.append("memories", {"n": 1})
        await store.put("users", "u1", {"full_name": "Ada"})
        assert await store.get("users", "u1") == {"full_name": "Ada"}
        assert await store.query("memories") == [{"n": 1}]

    assert to_thread.await_count == 4
