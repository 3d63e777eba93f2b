from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path

import pytest

from identity.auth.blacklist import BlacklistSweeper, TokenBlacklist


def _blacklist(tmp_path: Path, clock) -> TokenBlacklist:
    return TokenBlacklist(database_path=tmp_path / "state.db", clock=clock)


def test_revoke_marks_token_revoked(tmp_path: Path, clock) -> None:
    blacklist = _blacklist(tmp_path, clock)

    blacklist.revoke("j1", int(clock()) + 60)

    assert blacklist.is_revoked("j1") is True
    assert blacklist.is_revoked("j2") is False
    assert blacklist.is_revoked("") is False
    blacklist.close()


def test_revoke_is_idempotent_and_keeps_latest_expiry(tmp_path: Path, clock) -> None:
    blacklist = _blacklist(tmp_path, clock)
    now = int(clock())

    assert blacklist.revoke("j1", now + 600) is True
    assert blacklist.revoke("j1", now + 10) is False

    assert blacklist.purge_expired(now + 100) == 0
    assert blacklist.is_revoked("j1") is True
    blacklist.close()


def test_purge_expired_removes_only_rows_before_cutoff(tmp_path: Path, clock) -> None:
    blacklist = _blacklist(tmp_path, clock)
    now = int(clock())
    blacklist.revoke("old", now - 1)
    blacklist.revoke("boundary", now)
    blacklist.revoke("live", now + 60)

    assert blacklist.count_expired() == 1
    removed = blacklist.purge_expired()

    assert removed == 1
    assert blacklist.is_revoked("old") is False
    assert blacklist.is_revoked("boundary") is True
    assert blacklist.is_revoked("live") is True
    blacklist.close()


def test_revocations_survive_reopen(tmp_path: Path, clock) -> None:
    first = _blacklist(tmp_path, clock)
    first.revoke("j1", int(clock()) + 60)
    first.close()

    second = _blacklist(tmp_path, clock)

    assert second.is_revoked("j1") is True
    second.close()


def test_sweep_once_reports_removed_rows(tmp_path: Path, clock) -> None:
    blacklist = _blacklist(tmp_path, clock)
    blacklist.revoke("a", int(clock()) - 10)
    blacklist.revoke("b", int(clock()) - 5)
    sweeper = BlacklistSweeper(blacklist, interval_seconds=3600)

    assert sweeper.sweep_once() == 2
    assert sweeper.sweep_once() == 0
    blacklist.close()


def test_sweep_once_propagates_storage_errors(tmp_path: Path, clock) -> None:
    blacklist = _blacklist(tmp_path, clock)
    blacklist.close()
    sweeper = BlacklistSweeper(blacklist, interval_seconds=3600)

    with pytest.raises(sqlite3.Error):
        sweeper.sweep_once()


def test_sweeper_start_and_stop(tmp_path: Path, clock) -> None:
    blacklist = _blacklist(tmp_path, clock)
    blacklist.revoke("old", int(clock()) - 1)
    sweeper = BlacklistSweeper(blacklist, interval_seconds=3600)

    async def scenario() -> None:
        await sweeper.start()
        await sweeper.start()
        await asyncio.sleep(0)
        await sweeper.stop()

    asyncio.run(scenario())

    # Stopped before the first interval elapsed.
    assert blacklist.is_revoked("old") is True
    blacklist.close()
