"""
Read access to the operator-managed ``config`` table.
"""

import json

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.db.models import ConfigEntry

MISSING = object()


class ConfigRepository:
    """Key/value lookups; values stored as JSON strings are decoded."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_value(self, key: str, default=MISSING):
        """Return the decoded value for ``key``, or ``default`` if absent."""
        stmt = select(ConfigEntry.value).where(ConfigEntry.key == key)
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return default

        return _decode(row[0])

    async def get_by_prefix(self, prefix: str) -> dict:
        """All entries whose key starts with ``prefix``, values decoded."""
        stmt = (
            select(ConfigEntry.key, ConfigEntry.value)
            .where(ConfigEntry.key.startswith(prefix, autoescape=True))
            .order_by(ConfigEntry.key)
        )
        result = await self.session.execute(stmt)
        return {key: _decode(value) for key, value in result.all()}

    async def set_value(self, key: str, value) -> None:
        entry = await self.session.get(ConfigEntry, key)
        if entry is None:
            self.session.add(ConfigEntry(key=key, value=value))
        else:
            entry.value = value
        await self.session.flush()


def _decode(value):
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value
