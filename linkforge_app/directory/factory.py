"""
Factory for creating link directory instances.
Simple, clean factory with singleton caching.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum

from linkforge_app.config import settings

from .strategies import InMemoryLinkDirectory, LinkDirectory, SQLAlchemyLinkDirectory

logger = logging.getLogger(__name__)


class DirectoryBackend(Enum):
    """Available directory backends"""
    SQL = "sql"
    MEMORY = "memory"


class DirectoryFactory:
    """
    Simple factory for creating directory instances.

    Gets configuration from settings (not passed as parameters).
    """

    _instance: LinkDirectory = None  # Single cached instance

    @classmethod
    def create(cls, backend: DirectoryBackend) -> LinkDirectory:
        """
        Create or return cached directory instance.

        Args:
            backend: Type of directory backend (from enum)

        Returns:
            Singleton directory instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend == DirectoryBackend.SQL:
            from linkforge_app.database.connection import SessionLocal

            cls._instance = SQLAlchemyLinkDirectory(
                SessionLocal,
                request_executor=ThreadPoolExecutor(
                    max_workers=settings.directory_request_workers,
                    thread_name_prefix="directory-request",
                ),
                tracking_executor=ThreadPoolExecutor(
                    max_workers=settings.directory_tracking_workers,
                    thread_name_prefix="directory-tracking",
                ),
            )
            logger.info(
                "SQL link directory initialized (request threads=%d, tracking threads=%d)",
                settings.directory_request_workers, settings.directory_tracking_workers,
            )

        elif backend == DirectoryBackend.MEMORY:
            cls._instance = InMemoryLinkDirectory()
            logger.info("In-memory link directory initialized")

        else:
            raise ValueError(f"Unknown directory backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
