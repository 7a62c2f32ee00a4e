import logging
import threading
from datetime import datetime, date, timezone
from typing import Callable, Dict, Optional

from .errors import QuotaExceeded

logger = logging.getLogger(__name__)


def _today() -> date:
    return datetime.now(timezone.utc).date()


class CallBudget:
    """Increment-and-check counter for oracle calls.

    consume() counts the attempt first and raises QuotaExceeded once the count
    passes the limit, so the call that would exceed the ceiling is never made.
    A daily budget resets itself when the UTC date changes. A budget with a
    parent also consumes from the parent (e.g. per-generation inside daily).
    """

    def __init__(self, limit: int, name: str = "api", daily: bool = False,
                 parent: Optional["CallBudget"] = None,
                 today: Callable[[], date] = _today):
        if limit < 0:
            raise ValueError("limit must be >= 0")
        self.limit = limit
        self.name = name
        self.daily = daily
        self.parent = parent
        self._today = today
        self._count = 0
        self._last_reset = today()
        self._lock = threading.Lock()

        # Warn when 10% of the budget remains, critical at 5%
        self.warning_threshold = 0.1
        self.critical_threshold = 0.05

    def _maybe_reset(self) -> None:
        if self.daily and self._today() != self._last_reset:
            logger.info(f"Daily '{self.name}' budget reset ({self._count}/{self.limit} used on {self._last_reset})")
            self._count = 0
            self._last_reset = self._today()

    def consume(self) -> int:
        """Count one call; raises QuotaExceeded when the ceiling is passed."""
        with self._lock:
            self._maybe_reset()
            self._count += 1
            count = self._count
        if count > self.limit:
            logger.warning(f"API call limit of {self.limit} reached for '{self.name}' budget")
            raise QuotaExceeded(self.limit, count, self.name)
        if self.parent is not None:
            try:
                self.parent.consume()
            except QuotaExceeded:
                # The call is never made, so it does not count here either
                with self._lock:
                    self._count -= 1
                raise
        logger.debug(f"API call #{count} on '{self.name}' budget ({count}/{self.limit})")
        warning = self.get_quota_warning()
        if warning:
            logger.warning(warning['message'])
        return count

    @property
    def count(self) -> int:
        with self._lock:
            self._maybe_reset()
            return self._count

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    @property
    def exhausted(self) -> bool:
        return self.count >= self.limit

    def child(self, limit: int, name: str) -> "CallBudget":
        """A fresh budget whose calls also count against this one."""
        return CallBudget(limit, name=name, parent=self, today=self._today)

    def reset(self) -> None:
        with self._lock:
            self._count = 0
            self._last_reset = self._today()

    def get_quota_warning(self) -> Optional[Dict[str, str]]:
        """Warning dict with level and message when the remaining share is low, else None."""
        if self.limit <= 0:
            return None
        remaining = self.remaining
        share = remaining / self.limit
        if share <= self.critical_threshold:
            return {
                "level": "error",
                "message": f"Critical: only {remaining} of {self.limit} '{self.name}' API calls remaining",
            }
        if share <= self.warning_threshold:
            return {
                "level": "warning",
                "message": f"Warning: {remaining} of {self.limit} '{self.name}' API calls remaining",
            }
        return None

    def status(self) -> Dict:
        count = self.count
        return {
            "name": self.name,
            "count": count,
            "limit": self.limit,
            "remaining": max(0, self.limit - count),
            "usage_percentage": round(count / self.limit * 100, 2) if self.limit else 100.0,
            "last_reset": self._last_reset.isoformat(),
            "warning": self.get_quota_warning(),
        }
