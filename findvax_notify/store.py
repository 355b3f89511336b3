"""
SQLite subscription store.

Holds pending subscriptions keyed by (location_id, is_sent). Records are
deleted on retirement rather than flipped to sent, so every row in the table
with is_sent = 0 is still owed a notification.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone

import aiosqlite

from .errors import RetirementRaceNoOp
from .models import Subscription

PENDING = 0

_SCHEMA = """
CREATE TABLE IF NOT EXISTS subscriptions (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    location_id TEXT NOT NULL,
    is_sent     INTEGER NOT NULL DEFAULT 0,
    recipient   TEXT NOT NULL,
    lang        TEXT NOT NULL,
    created_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_subscriptions_location
    ON subscriptions(location_id, is_sent);
"""


class SubscriptionStore:
    """Async SQLite store for pending subscriptions."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def open(self) -> None:
        if self._db_path != ":memory:":
            os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(_SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def put(self, location_id: str, recipient: str, language: str) -> None:
        """Create a pending record. No uniqueness is enforced."""
        assert self._db
        now = datetime.now(timezone.utc).isoformat()
        await self._db.execute(
            """INSERT INTO subscriptions (location_id, is_sent, recipient, lang, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (location_id, PENDING, recipient, language, now),
        )
        await self._db.commit()

    async def query_pending(self, location_id: str) -> list[Subscription]:
        assert self._db
        cursor = await self._db.execute(
            """SELECT location_id, is_sent, recipient, lang FROM subscriptions
               WHERE location_id = ? AND is_sent = ? ORDER BY id""",
            (location_id, PENDING),
        )
        rows = await cursor.fetchall()
        return [
            Subscription(
                location_id=r["location_id"],
                recipient=r["recipient"],
                language=r["lang"],
                sent_flag=r["is_sent"],
            )
            for r in rows
        ]

    async def conditional_delete(self, location_id: str, expected_recipient: str) -> int:
        """
        Delete the pending record(s) for location_id held by expected_recipient.

        Raises RetirementRaceNoOp when no pending record for the location still
        belongs to that recipient. Returns the number of rows removed.
        """
        assert self._db
        cursor = await self._db.execute(
            "DELETE FROM subscriptions WHERE location_id = ? AND is_sent = ? AND recipient = ?",
            (location_id, PENDING, expected_recipient),
        )
        await self._db.commit()
        if cursor.rowcount < 1:
            raise RetirementRaceNoOp(location_id, expected_recipient)
        return cursor.rowcount

    async def count_pending(self, location_id: str | None = None) -> int:
        assert self._db
        if location_id is None:
            cursor = await self._db.execute(
                "SELECT COUNT(*) AS n FROM subscriptions WHERE is_sent = ?", (PENDING,)
            )
        else:
            cursor = await self._db.execute(
                "SELECT COUNT(*) AS n FROM subscriptions WHERE location_id = ? AND is_sent = ?",
                (location_id, PENDING),
            )
        row = await cursor.fetchone()
        return row["n"] if row else 0
