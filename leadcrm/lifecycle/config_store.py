"""
IntentionConfig cache — max idle days per intention level.

Read on every lifecycle computation, written rarely through the admin API.
Values are cached for CONFIG_CACHE_TTL seconds; invalidate() must be called
whenever a row is written. Readers may see a value up to one TTL old.

At most one thread refreshes at a time; other readers keep getting the
previous snapshot while a refresh is in flight.
"""
import logging
import threading
import time
from typing import Callable, Dict, Optional

from leadcrm.config import CONFIG_CACHE_TTL
from leadcrm.lifecycle.engine import threshold_for

logger = logging.getLogger('lifecycle.config_store')


def load_remind_config(session_factory=None) -> Dict[str, int]:
    """Read all followup_remind_config rows into {intention_level: interval_days}."""
    from leadcrm.models.remind_config import FollowupRemindConfig

    if session_factory is None:
        from leadcrm.database import get_session
        session_factory = get_session

    session = session_factory()
    try:
        rows = session.query(
            FollowupRemindConfig.intention_level,
            FollowupRemindConfig.interval_days,
        ).all()
        return {level: days for level, days in rows}
    finally:
        session.close()


class ConfigStore:
    """
    Time-stamped cache over the remind configuration.

    Usage:
        store = ConfigStore(loader=lambda: load_remind_config(Session))
        snapshot = store.snapshot()          # {'High': 3, ...}
        store.get_max_idle_days('Medium')    # falls back to the default
        store.invalidate()                   # after an admin update
    """

    def __init__(
        self,
        loader: Optional[Callable[[], Dict[str, int]]] = None,
        ttl: float = CONFIG_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader or load_remind_config
        self.ttl = ttl
        self._clock = clock
        self._values: Optional[Dict[str, int]] = None
        self._loaded_at: Optional[float] = None
        self._refresh_lock = threading.Lock()
        self._generation = 0

    def _is_fresh(self) -> bool:
        return (
            self._values is not None
            and self._loaded_at is not None
            and (self._clock() - self._loaded_at) < self.ttl
        )

    def snapshot(self) -> Dict[str, int]:
        """Return the current {level: max_idle_days} map, refreshing when stale."""
        if self._is_fresh():
            return dict(self._values)

        if not self._refresh_lock.acquire(blocking=self._values is None):
            # Another thread is refreshing; serve the stale copy meanwhile
            return dict(self._values)
        try:
            if self._is_fresh():
                return dict(self._values)
            generation = self._generation
            try:
                values = dict(self._loader())
            except Exception:
                if self._values is not None:
                    logger.error("Failed to reload remind config — serving stale cache", exc_info=True)
                    return dict(self._values)
                logger.error("Failed to load remind config — using default thresholds", exc_info=True)
                return {}
            if generation != self._generation:
                # Invalidated mid-load; the rows read may predate the write
                logger.info("Remind config invalidated during reload, not caching")
                return dict(values)
            self._values = values
            self._loaded_at = self._clock()
            logger.info("Remind config cached: %s", values)
            return dict(values)
        finally:
            self._refresh_lock.release()

    def get_max_idle_days(self, intention_level: str) -> int:
        return threshold_for(intention_level, self.snapshot())

    def invalidate(self):
        """Drop the cached values so the next read goes to the database."""
        self._generation += 1
        self._loaded_at = None
        logger.info("Remind config cache invalidated")
