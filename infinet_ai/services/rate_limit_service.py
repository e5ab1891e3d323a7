"""Daily per-user limits for paid image generation."""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Optional, Sequence

from infinet_ai.logging_config import get_logger

logger = get_logger("rate_limit_service")

TEXT_TO_IMAGE = "text_to_image"
IMAGE_TO_IMAGE = "image_to_image"


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True)
class LimitCheck:
    allowed: bool
    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)


class DailyLimiter:
    """Counts successful generations per user and kind; counters reset each UTC day.

    Callers check before generating and record only after a delivered result,
    so failed generations never consume the allowance.
    """

    def __init__(self, limits: dict[str, int], today: Optional[Callable[[], date]] = None):
        self.limits = dict(limits)
        self._today = today or _utc_today
        self._counts: dict[tuple[str, str], tuple[date, int]] = {}
        self._swept_on: Optional[date] = None

    def _used(self, user_key: str, kind: str) -> int:
        entry = self._counts.get((user_key, kind))
        if entry is None:
            return 0
        day, count = entry
        if day != self._today():
            self._counts.pop((user_key, kind), None)
            return 0
        return count

    def check(self, user_key: str, kind: str) -> LimitCheck:
        limit = self.limits.get(kind)
        used = self._used(user_key, kind)
        if limit is None or limit <= 0:
            return LimitCheck(allowed=True, used=used, limit=limit or 0)
        allowed = used < limit
        if not allowed:
            logger.info("Daily limit reached", extra={"context": {"user": user_key, "kind": kind, "limit": limit}})
        return LimitCheck(allowed=allowed, used=used, limit=limit)

    def check_all(self, user_keys: Sequence[str], kind: str) -> LimitCheck:
        """Blocked if any identity the user is known by has hit the limit."""
        checks = [self.check(key, kind) for key in user_keys]
        return next((check for check in checks if not check.allowed), checks[0])

    def record(self, user_key: str, kind: str) -> int:
        today = self._today()
        if self._swept_on != today:
            self.cleanup()
            self._swept_on = today
        used = self._used(user_key, kind) + 1
        self._counts[(user_key, kind)] = (today, used)
        return used

    def record_all(self, user_keys: Sequence[str], kind: str) -> None:
        for key in user_keys:
            self.record(key, kind)

    def cleanup(self) -> int:
        """Drop counters from previous days; runs on the first record of each day."""
        today = self._today()
        stale = [key for key, (day, _) in self._counts.items() if day != today]
        for key in stale:
            del self._counts[key]
        if stale:
            logger.debug("Dropped stale rate limit counters", extra={"context": {"count": len(stale)}})
        return len(stale)
