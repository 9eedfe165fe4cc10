"""Persistence for sessions, transcript chunks and user data."""

from .base import SessionStore, generate_session_id
from .memory import InMemorySessionStore
from .file_store import FileSessionStore
from .user_data import UserDataStore, StaticUserDataStore

__all__ = [
    "SessionStore",
    "generate_session_id",
    "InMemorySessionStore",
    "FileSessionStore",
    "UserDataStore",
    "StaticUserDataStore",
]
