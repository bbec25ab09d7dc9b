"""
Startup snapshot of the datastore schema.

The snapshot is taken once when the server starts and shared read-only
by every request. Tables created later are not visible to the model
until the process restarts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from nokode.tools.database import Datastore

logger = logging.getLogger(__name__)

SCHEMA_HEADER = "\n## DATABASE SCHEMA (Use these exact column names!)\n\n"


@dataclass(frozen=True)
class SchemaCache:
    """Immutable text block holding every table definition."""

    _text: str = ""

    @property
    def text(self) -> str:
        return self._text

    @classmethod
    async def build(cls, datastore: Datastore) -> "SchemaCache":
        """
        Read all table definitions from the datastore.

        A failing read does not abort startup: the cache is left empty and
        a degraded-startup warning is logged.
        """
        try:
            definitions = await datastore.table_definitions()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Degraded startup: failed to load database schema: %s", exc)
            return cls("")

        text = SCHEMA_HEADER + "".join(f"{sql};\n\n" for sql in definitions)
        logger.info("Database schema cached (%d tables)", len(definitions))
        return cls(text)
