"""
Clock providers

The orchestrator reads the clock exactly once per event and threads that
instant through every ledger call.
"""

from datetime import datetime, timedelta
from typing import Protocol
import logging

from lifequest.utils.datetime_helpers import ensure_utc, now_utc

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time in UTC"""

    def now(self) -> datetime:
        return now_utc()


class FixedClock:
    """Manually driven clock for tests and replays"""

    def __init__(self, instant: datetime):
        self._instant = ensure_utc(instant)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = ensure_utc(instant)

    def advance(self, **kwargs) -> datetime:
        """Move forward by timedelta kwargs (hours=..., minutes=...)"""
        self._instant = self._instant + timedelta(**kwargs)
        logger.debug(f"FixedClock advanced to {self._instant.isoformat()}")
        return self._instant
