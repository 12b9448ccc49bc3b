"""Directory collaborators: the storage seam of the permission system."""

from permgraph.core.directory.base import Directory
from permgraph.core.directory.memory import InMemoryDirectory
from permgraph.core.directory.sql import SqlAlchemyDirectory


__all__ = [
    "Directory",
    "InMemoryDirectory",
    "SqlAlchemyDirectory",
]
