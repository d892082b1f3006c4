"""Database module."""

from db.cosmos_session import CosmosStore, get_store

__all__ = ["CosmosStore", "get_store"]
