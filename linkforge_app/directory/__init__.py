"""
Link directory module: the authoritative code → link mapping.
Implements Strategy Pattern for flexible storage backends.
"""

from .strategies import LinkDirectory, SQLAlchemyLinkDirectory, InMemoryLinkDirectory
from .factory import DirectoryFactory, DirectoryBackend

__all__ = [
    "LinkDirectory",
    "SQLAlchemyLinkDirectory",
    "InMemoryLinkDirectory",
    "DirectoryFactory",
    "DirectoryBackend",
]
