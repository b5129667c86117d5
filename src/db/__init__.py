"""Persistence layer: async SQLAlchemy engine, sessions and models."""

from .database import async_session_scope, create_engine_for, create_session_factory, init_db

__all__ = [
    "async_session_scope",
    "create_engine_for",
    "create_session_factory",
    "init_db",
]
