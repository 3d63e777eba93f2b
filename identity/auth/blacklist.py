"""Revoked-token store backed by SQLite runtime state, plus its expiry sweeper."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from pathlib import Path
from threading import Lock
from typing import Callable

from identity.core.migrations import apply_migrations

LOGGER = logging.getLogger(__name__)

SLOW_SWEEP_SECONDS = 5.0


class TokenBlacklist:
    """Set of revoked token ids, each kept until its token would expire anyway."""

    def __init__(
        self,
        *,
        database_path: Path,
        clock: Callable[[], float] = time.time,
    ) -> None:
        apply_migrations(database_path)
        self._connection = sqlite3.connect(str(database_path), check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = Lock()
        self._clock = clock

    def is_revoked(self, jti: str) -> bool:
        """Return whether a row exists for ``jti``, regardless of row age."""
        if not jti:
            return False
        with self._lock:
            row = self._connection.execute(
                "SELECT 1 FROM invalidated_tokens WHERE jti = ?",
                (jti,),
            ).fetchone()
        return row is not None

    def revoke(self, jti: str, expires_at: int) -> bool:
        """Record ``jti`` as revoked; True only for the call that added the row.

        Repeating a revocation keeps the later expiry and returns False, so a
        caller can treat the result as a single-winner claim on the token.
        """
        now = int(self._clock())
        with self._lock:
            cursor = self._connection.execute(
                """
                INSERT OR IGNORE INTO invalidated_tokens(jti, expires_at, revoked_at)
                VALUES (?, ?, ?)
                """,
                (jti, int(expires_at), now),
            )
            claimed = cursor.rowcount == 1
            if not claimed:
                self._connection.execute(
                    """
                    UPDATE invalidated_tokens
                    SET expires_at = MAX(expires_at, ?)
                    WHERE jti = ?
                    """,
                    (int(expires_at), jti),
                )
            self._connection.commit()
        if claimed:
            LOGGER.info("token_revoked", extra={"jti": jti})
        return claimed

    def count_expired(self, now: int | None = None) -> int:
        cutoff = int(self._clock()) if now is None else int(now)
        with self._lock:
            row = self._connection.execute(
                "SELECT COUNT(*) AS total FROM invalidated_tokens WHERE expires_at < ?",
                (cutoff,),
            ).fetchone()
        return int(row["total"])

    def purge_expired(self, now: int | None = None) -> int:
        """Delete rows whose token has already expired and return how many."""
        cutoff = int(self._clock()) if now is None else int(now)
        with self._lock:
            cursor = self._connection.execute(
                "DELETE FROM invalidated_tokens WHERE expires_at < ?",
                (cutoff,),
            )
            self._connection.commit()
        return int(cursor.rowcount or 0)

    def close(self) -> None:
        """Close SQLite resources."""
        with self._lock:
            self._connection.close()


class BlacklistSweeper:
    """Background loop that periodically reclaims expired blacklist rows."""

    def __init__(self, blacklist: TokenBlacklist, *, interval_seconds: float) -> None:
        self._blacklist = blacklist
        self._interval_seconds = max(1.0, float(interval_seconds))
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    def sweep_once(self) -> int:
        """Run one purge pass and log its outcome."""
        started = time.monotonic()
        try:
            removed = self._blacklist.purge_expired()
        except sqlite3.Error:
            LOGGER.exception("blacklist_sweep_failed")
            raise
        duration = time.monotonic() - started
        LOGGER.info(
            "blacklist_sweep_completed",
            extra={"count": removed, "duration_ms": int(duration * 1000)},
        )
        if duration > SLOW_SWEEP_SECONDS:
            LOGGER.warning(
                "blacklist_sweep_slow", extra={"duration_ms": int(duration * 1000)}
            )
        return removed

    async def start(self) -> None:
        """Start the sweep loop if not already running."""
        if self._task and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        """Stop the sweep loop gracefully."""
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._interval_seconds
                )
            except asyncio.TimeoutError:
                try:
                    await asyncio.to_thread(self.sweep_once)
                except sqlite3.Error:
                    # Already logged; the next interval retries.
                    continue
