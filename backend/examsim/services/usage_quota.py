from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from examsim.core.config import settings
from examsim.core.redis_client import get_redis

log = logging.getLogger(__name__)

# Keys outlive their day so a late read of yesterday's key is harmless.
_KEY_TTL_SECONDS = 2 * 24 * 60 * 60


@dataclass(frozen=True)
class QuotaStatus:
    remaining: int
    quota: int
    day: str

    @property
    def exhausted(self) -> bool:
        return self.remaining <= 0


class UsageQuota:
    """Day-keyed count of live generation starts, stored in Redis.

    A new calendar day means a new key, which starts at the full quota. When
    Redis is unreachable the quota is reported as available.
    """

    def __init__(self, *, quota: int | None = None, today=None) -> None:
        self.quota = int(settings.daily_quota if quota is None else quota)
        self._today = today or date.today

    def _day(self) -> str:
        return self._today().isoformat()

    def _key(self, day: str) -> str:
        return f"quota:{day}"

    def status(self) -> QuotaStatus:
        day = self._day()
        try:
            r = get_redis()
            raw = r.get(self._key(day))
        except Exception as e:
            log.warning("quota store unavailable (read) err=%s: %s", type(e).__name__, e)
            return QuotaStatus(remaining=self.quota, quota=self.quota, day=day)
        used = 0 if raw is None else int(raw)
        return QuotaStatus(remaining=max(0, self.quota - used), quota=self.quota, day=day)

    def remaining(self) -> int:
        return self.status().remaining

    def _incr(self, amount: int) -> int | None:
        """Atomically add `amount` to today's used count; None when the store is down."""

        key = self._key(self._day())
        try:
            r = get_redis()
            used = int(r.incr(key, amount))
            if used == amount:
                r.expire(key, _KEY_TTL_SECONDS)
        except Exception as e:
            log.warning("quota store unavailable (write) err=%s: %s", type(e).__name__, e)
            return None
        return used

    def consume(self, amount: int = 1) -> int:
        used = self._incr(max(0, int(amount)))
        if used is None:
            return self.quota
        return max(0, self.quota - used)

    def acquire(self) -> bool:
        """Take one unit; False once today's quota was already used up."""

        used = self._incr(1)
        return used is None or used <= self.quota
