"""
DatabaseManager: entry point of the row-store engine.

The manager owns the quota throttle and wraps the caller's Grid Backend in a
:class:`~sheetstore.backends.throttled.ThrottledBackend`, so every request
any of its databases or tables issues draws from one budget. Managed
containers are recognised by a title prefix (``database_file_`` by default).

Examples:
    >>> from sheetstore.backends.memory import InMemoryGridBackend
    >>> manager = DatabaseManager(InMemoryGridBackend())
    >>> db = manager.create_database("inventory")
    >>> db.container.title
    'database_file_inventory'
    >>> manager.create_database("inventory") is None
    True

Tags:
    manager, database-lifecycle, quota, sheetstore
"""

from __future__ import annotations

from sheetstore.backends.throttled import ThrottledBackend
from sheetstore.core.logging import get_logger
from sheetstore.core.protocols import ContainerRef, GridBackend
from sheetstore.core.settings import SheetStoreSettings, get_settings
from sheetstore.engine.database import Database
from sheetstore.engine.quota import QuotaThrottle

logger = get_logger(__name__)


class DatabaseManager:
    """Create, find, list and drop managed databases."""

    def __init__(
        self,
        backend: GridBackend,
        *,
        settings: SheetStoreSettings | None = None,
        throttle: QuotaThrottle | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.throttle = throttle or QuotaThrottle.from_settings(self.settings)
        self.backend = ThrottledBackend(backend, self.throttle)

    @property
    def prefix(self) -> str:
        return self.settings.database_prefix

    def _wrap(self, container: ContainerRef) -> Database:
        return Database(
            self.backend,
            container,
            prefix=self.prefix,
            reserved_sheet_pattern=self.settings.reserved_sheet_pattern,
            max_columns=self.settings.max_columns,
        )

    def list_databases(self) -> list[Database]:
        """Every container whose title carries the managed prefix."""
        return [self._wrap(c) for c in self.backend.list_containers() if c.title.startswith(self.prefix)]

    def find_database(self, title: str) -> Database | None:
        full = self.prefix + title
        for container in self.backend.list_containers():
            if container.title == full:
                return self._wrap(container)
        return None

    def create_database(self, title: str) -> Database | None:
        """Create ``prefix + title``. Returns None if it already exists."""
        if self.find_database(title) is not None:
            logger.warning("database_exists", database=title)
            return None
        container = self.backend.create_container(self.prefix + title)
        logger.info("database_created", database=title, container_id=container.container_id)
        return self._wrap(container)

    def drop_database(self, title: str) -> bool:
        """Delete the container ``prefix + title``. False if missing or refused."""
        database = self.find_database(title)
        if database is None:
            logger.info("drop_database_missing", database=title)
            return False
        deleted = self.backend.delete_container(database.container_id)
        if deleted:
            logger.info("database_dropped", database=title)
        else:
            logger.error("backend_rejected", call="delete_container", database=title)
        return deleted


__all__ = ["DatabaseManager"]
