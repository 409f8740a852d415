"""Per (account, channel) send quotas.

Sliding-window log: a key may be granted at most ``max_per_window`` sends in
any ``window_duration_seconds`` interval. Each key has its own lock so the
check-and-record step is atomic for that key while different keys never
contend.
"""

import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from infrastructure.logging import get_module_logger
from modules.reminders.clock import Clock, utcnow
from modules.reminders.models import Channel, RateLimitPolicy

logger = get_module_logger()

RateKey = Tuple[str, Channel]


class RateLimitDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed: bool
    retry_after: Optional[datetime] = None


ALLOWED = RateLimitDecision(allowed=True)


class _Window:
    __slots__ = ("lock", "grants")

    def __init__(self):
        self.lock = threading.Lock()
        self.grants: Deque[datetime] = deque()


class RateLimiter:
    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or utcnow
        self._windows: Dict[RateKey, _Window] = {}
        self._registry_lock = threading.Lock()

    def _window(self, key: RateKey) -> _Window:
        with self._registry_lock:
            window = self._windows.get(key)
            if window is None:
                window = self._windows[key] = _Window()
            return window

    def try_acquire(
        self,
        account_id: str,
        channel: Channel,
        policy: Optional[RateLimitPolicy],
        now: Optional[datetime] = None,
    ) -> RateLimitDecision:
        """Grant one send or report when capacity frees up.

        Returns:
            ``allowed=True`` when the send was recorded, otherwise
            ``allowed=False`` with ``retry_after`` set to the instant the
            oldest grant leaves the window. No policy means always allowed.
        """
        if policy is None:
            return ALLOWED

        now = now or self._clock()
        span = timedelta(seconds=policy.window_duration_seconds)
        window = self._window((account_id, channel))

        with window.lock:
            grants = window.grants
            while grants and grants[0] <= now - span:
                grants.popleft()

            if len(grants) < policy.max_per_window:
                grants.append(now)
                return ALLOWED

            retry_after = grants[0] + span

        logger.info(
            "rate_limit_denied",
            account_id=account_id,
            channel=channel.value,
            max_per_window=policy.max_per_window,
            retry_after=retry_after.isoformat(),
        )
        return RateLimitDecision(allowed=False, retry_after=retry_after)

    def reset(self) -> None:
        with self._registry_lock:
            self._windows.clear()
