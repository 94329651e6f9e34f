"""
Overdue sweep scheduler — runs the sweep at fixed wall-clock times each day.

One daemon thread inside the web process: run once at start-up, then sleep
until the next trigger instant, run, and repeat. Trigger instants are computed
ahead of time from the configured daily times ("09:00,11:30,...").

The scheduler is not reentrant: a trigger that fires while a sweep is still
running is skipped, not queued. This applies to the manual trigger endpoint as
well. Nothing raised by a sweep escapes the scheduler thread.
"""
import logging
import threading
from datetime import datetime, time, timedelta
from typing import Callable, List, Optional

from leadcrm.config import DEFAULT_SCHEDULE_TIMES

logger = logging.getLogger('scheduler')

IDLE = 'idle'
RUNNING = 'running'


def parse_schedule(value: Optional[str]) -> List[time]:
    """
    Parse "HH:MM,HH:MM,..." into sorted unique times.

    Invalid entries are logged and dropped; an empty result falls back to the
    default five daily slots.
    """
    times = set()
    for raw in (value or '').split(','):
        raw = raw.strip()
        if not raw:
            continue
        try:
            hour, minute = raw.split(':')
            times.add(time(int(hour), int(minute)))
        except ValueError:
            logger.warning("Ignoring invalid schedule time %r", raw)
    if not times:
        if value and value != DEFAULT_SCHEDULE_TIMES:
            logger.warning("No valid schedule times in %r — using defaults", value)
        return parse_schedule(DEFAULT_SCHEDULE_TIMES)
    return sorted(times)


def trigger_instants(after: datetime, times: List[time], days: int = 2) -> List[datetime]:
    """All trigger instants strictly after `after` over the next `days` days."""
    base = after.date()
    instants = [
        datetime.combine(base + timedelta(days=offset), t)
        for offset in range(days + 1)
        for t in times
    ]
    return sorted(i for i in instants if i > after)


class OverdueSweepScheduler:
    """
    Usage:
        scheduler = OverdueSweepScheduler(lambda: run_sweep(...), times=parse_schedule('09:00,14:00'))
        scheduler.start()
        scheduler.trigger()     # manual run; None when a sweep is already running
        scheduler.stop()
    """

    def __init__(
        self,
        sweep: Callable,
        times: Optional[List[time]] = None,
        run_on_start: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._sweep = sweep
        self.times = list(times) if times else parse_schedule(DEFAULT_SCHEDULE_TIMES)
        self.run_on_start = run_on_start
        self._clock = clock
        self._run_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_result = None
        self.last_started_at: Optional[datetime] = None
        self.last_finished_at: Optional[datetime] = None
        self.skipped = 0

    @property
    def state(self) -> str:
        return RUNNING if self._run_lock.locked() else IDLE

    @property
    def is_started(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_trigger_at(self, now: Optional[datetime] = None) -> datetime:
        return trigger_instants(now or self._clock(), self.times)[0]

    def trigger(self):
        """Run one sweep now unless one is already running. Returns its result or None."""
        if not self._run_lock.acquire(blocking=False):
            self.skipped += 1
            logger.info("Sweep already running — trigger skipped")
            return None
        try:
            self.last_started_at = self._clock()
            try:
                self.last_result = self._sweep()
            except Exception:
                self.last_result = None
                logger.error("Sweep raised out of its boundary", exc_info=True)
            self.last_finished_at = self._clock()
            return self.last_result
        finally:
            self._run_lock.release()

    def _loop(self):
        if self.run_on_start:
            self.trigger()
        while not self._stop.is_set():
            target = self.next_trigger_at()
            logger.info("Next overdue sweep at %s", target.strftime('%Y-%m-%d %H:%M'))
            # Timer wake-ups can land early; keep waiting until the instant has passed
            while True:
                delay = (target - self._clock()).total_seconds()
                if delay <= 0:
                    break
                if self._stop.wait(delay):
                    return
            self.trigger()

    def start(self):
        if self.is_started:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name='overdue-sweep', daemon=True)
        self._thread.start()
        logger.info("Overdue sweep scheduler started (%s)", ', '.join(t.strftime('%H:%M') for t in self.times))

    def stop(self, timeout: Optional[float] = 5.0):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def status(self) -> dict:
        return {
            'state': self.state,
            'started': self.is_started,
            'schedule': [t.strftime('%H:%M') for t in self.times],
            'next_run_at': self.next_trigger_at().isoformat(sep=' ', timespec='minutes'),
            'last_started_at': self.last_started_at.isoformat(sep=' ') if self.last_started_at else None,
            'last_finished_at': self.last_finished_at.isoformat(sep=' ') if self.last_finished_at else None,
            'skipped_triggers': self.skipped,
        }
