"""Adapters for the remote table holding lead records."""

from .base import LeadStore, StoreConnectionError, StoreError  # noqa: F401
from .memory import InMemoryLeadStore  # noqa: F401
from .postgrest import PostgrestConfig, PostgrestLeadStore  # noqa: F401

__all__ = [
    "InMemoryLeadStore",
    "LeadStore",
    "PostgrestConfig",
    "PostgrestLeadStore",
    "StoreConnectionError",
    "StoreError",
]
