"""Persistence collaborator: abstract store contract with in-memory and Redis backends."""

from resilience_layer.persistence.store import BaseStore, InMemoryStore, RedisStore, record_matches

__all__ = ["BaseStore", "InMemoryStore", "RedisStore", "record_matches"]
