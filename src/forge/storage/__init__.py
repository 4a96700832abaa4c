"""Persistence store boundary."""
from forge.storage.store import InMemoryStore, JsonlFileStore, MemoryStore, create_store

__all__ = ["InMemoryStore", "JsonlFileStore", "MemoryStore", "create_store"]
