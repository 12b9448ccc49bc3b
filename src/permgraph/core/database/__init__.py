"""Database layer - engine and session construction, base models, and mixins."""

from permgraph.core.database.base import Base, TimestampMixin, UUIDMixin
from permgraph.core.database.session import (
    create_engine,
    create_schema,
    create_session_factory,
    drop_schema,
)


__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "create_engine",
    "create_schema",
    "create_session_factory",
    "drop_schema",
]
