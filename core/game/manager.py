"""Registry of running tables."""

import asyncio
import logging
from typing import Any

from core.errors import PersistenceFailure
from core.game.engine import BlackjackTable
from core.game.settings import TableSettings
from core.game.state import StopReason
from core.profiles import ProfileStore

logger = logging.getLogger(__name__)


class TableManager:
    """
    Owns the tables of one process.

    Passed by reference to whoever needs it (the API keeps one in
    ``app.state``); there is no module-level registry.
    """

    def __init__(self, store: ProfileStore, default_settings: TableSettings | None = None) -> None:
        self.store = store
        self.default_settings = default_settings or TableSettings()
        self._tables: dict[str, BlackjackTable] = {}

    def create_table(
        self,
        table_id: str | None = None,
        settings: TableSettings | None = None,
        **kwargs: Any,
    ) -> BlackjackTable:
        """Create and register a table."""
        if table_id is not None and table_id in self._tables:
            raise ValueError(f"Table {table_id} already exists")
        table = BlackjackTable(
            table_id=table_id,
            settings=settings or self.default_settings,
            store=self.store,
            **kwargs,
        )
        self._tables[table.id] = table
        logger.info("Table created", extra={"table_id": table.id})
        return table

    def get(self, table_id: str) -> BlackjackTable | None:
        return self._tables.get(table_id)

    async def remove(self, table_id: str, reason: StopReason = StopReason.MANUAL) -> bool:
        """Stop a table and drop it from the registry."""
        table = self._tables.get(table_id)
        if table is None:
            return False
        await table.stop(reason)
        self._tables.pop(table_id, None)
        return True

    async def stop_all(self) -> None:
        """Stop every table; tables that fail to refund stay registered."""
        tables = list(self._tables.values())
        results = await asyncio.gather(
            *(table.stop(StopReason.MANUAL) for table in tables), return_exceptions=True
        )
        for table, result in zip(tables, results):
            if isinstance(result, PersistenceFailure):
                logger.error("Table failed to stop cleanly", extra={"table_id": table.id})
                continue
            if isinstance(result, BaseException):
                raise result
            self._tables.pop(table.id, None)

    @property
    def tables(self) -> list[BlackjackTable]:
        return list(self._tables.values())

    def __contains__(self, table_id: str) -> bool:
        return table_id in self._tables

    def __len__(self) -> int:
        return len(self._tables)
