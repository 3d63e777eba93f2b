"""TTL key-value storage for pending one-time codes.

Two backends share one capability: ``set``/``get``/``delete`` plus an atomic
``consume`` that performs the whole read-check-delete of a verification in a
single step, so two concurrent verifications of the same code cannot both
succeed.
"""

from __future__ import annotations

import logging
import time
from enum import StrEnum
from threading import Lock
from typing import Callable

import redis

from identity.auth.models import OtpEntry, OtpPurpose
from identity.core.security import codes_match

LOGGER = logging.getLogger(__name__)

OTP_KEY_PREFIX = "otp:"


class OtpCheck(StrEnum):
    """Outcome of an atomic verification attempt."""

    MISSING = "missing"
    PURPOSE_MISMATCH = "purpose_mismatch"
    EXPIRED = "expired"
    CODE_MISMATCH = "code_mismatch"
    MATCHED = "matched"


def _key(email: str) -> str:
    return f"{OTP_KEY_PREFIX}{email.strip().lower()}"


class InMemoryOtpStore:
    """Single-process store; every operation holds one lock."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[str, tuple[OtpEntry, float]] = {}
        self._lock = Lock()
        self._clock = clock

    def set(self, entry: OtpEntry, ttl_seconds: int) -> None:
        """Store ``entry`` for its email, replacing any pending one."""
        with self._lock:
            self._entries[_key(entry.email)] = (entry, self._clock() + ttl_seconds)

    def get(self, email: str) -> OtpEntry | None:
        with self._lock:
            return self._live_entry(_key(email))

    def delete(self, email: str) -> bool:
        with self._lock:
            return self._entries.pop(_key(email), None) is not None

    def consume(
        self, email: str, code: str, purpose: OtpPurpose, now: float
    ) -> OtpCheck:
        key = _key(email)
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return OtpCheck.MISSING
            if entry.purpose != purpose:
                return OtpCheck.PURPOSE_MISMATCH
            if entry.expires_at < now:
                del self._entries[key]
                return OtpCheck.EXPIRED
            if not codes_match(entry.code, code):
                return OtpCheck.CODE_MISMATCH
            del self._entries[key]
            return OtpCheck.MATCHED

    def _live_entry(self, key: str) -> OtpEntry | None:
        stored = self._entries.get(key)
        if stored is None:
            return None
        entry, evict_at = stored
        if evict_at <= self._clock():
            del self._entries[key]
            return None
        return entry


class RedisOtpStore:
    """Shared store for multi-instance deployments; one hash per email."""

    # Mirrors InMemoryOtpStore.consume; runs atomically inside Redis.
    _CONSUME_SCRIPT = """
local fields = redis.call('HMGET', KEYS[1], 'code', 'purpose', 'expires_at')
if not fields[1] then
  return 'missing'
end
if fields[2] ~= ARGV[2] then
  return 'purpose_mismatch'
end
if tonumber(fields[3]) < tonumber(ARGV[3]) then
  redis.call('DEL', KEYS[1])
  return 'expired'
end
if fields[1] ~= ARGV[1] then
  return 'code_mismatch'
end
redis.call('DEL', KEYS[1])
return 'matched'
"""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client
        self._consume = client.register_script(self._CONSUME_SCRIPT)

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisOtpStore":
        client = redis.from_url(redis_url, decode_responses=True)
        client.ping()
        LOGGER.info("otp_store_redis_connected")
        return cls(client)

    def set(self, entry: OtpEntry, ttl_seconds: int) -> None:
        key = _key(entry.email)
        pipe = self._client.pipeline()
        pipe.delete(key)
        pipe.hset(key, mapping=entry.model_dump(mode="json"))
        pipe.expire(key, max(1, int(ttl_seconds)))
        pipe.execute()

    def get(self, email: str) -> OtpEntry | None:
        fields = self._client.hgetall(_key(email))
        if not fields:
            return None
        return OtpEntry.model_validate(fields)

    def delete(self, email: str) -> bool:
        return bool(self._client.delete(_key(email)))

    def consume(
        self, email: str, code: str, purpose: OtpPurpose, now: float
    ) -> OtpCheck:
        result = self._consume(
            keys=[_key(email)], args=[code, str(purpose), repr(float(now))]
        )
        if isinstance(result, bytes):
            result = result.decode("utf-8")
        return OtpCheck(result)


OtpStore = InMemoryOtpStore | RedisOtpStore


def build_otp_store(redis_url: str) -> OtpStore:
    """Use Redis when configured so pending codes are shared and survive restarts."""
    if redis_url:
        return RedisOtpStore.from_url(redis_url)
    LOGGER.warning("otp_store_in_memory")
    return InMemoryOtpStore()
