"""Observer-side countdown: clock-offset correction and the 1Hz ticker.

A viewer refreshes the authoritative snapshot rarely (once a minute) but
redraws every second. Its own wall clock can't be compared against
``timer_last_updated`` directly, so the offset to the server clock is
captured once per fetch and re-applied on every tick.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

from portal.errors import TimerStateCorrupted
from .countdown import TimerSnapshot, current_remaining, format_hms
from .working_hours import TzLike, as_aware, is_working_moment, parse_instant, utcnow


log = logging.getLogger(__name__)

LIVE = 'live'
PAUSED = 'paused'
OUTSIDE_HOURS = 'outside_hours'
CORRUPTED = 'corrupted'


def read_payload(payload: Dict[str, Any]) -> Tuple[TimerSnapshot, datetime]:
    """Split a scope payload (REST body or ``timer_state`` event) into a snapshot and its ``serverTime``."""
    server_time = payload.get('serverTime')
    if server_time is None:
        raise ValueError("payload has no serverTime")
    return TimerSnapshot.from_dict(payload), parse_instant(server_time)


class ClockOffsetAdapter:
    def __init__(self, local_clock: Optional[Callable[[], datetime]] = None, tz: TzLike = None):
        self._local_clock = local_clock or utcnow
        self._tz = tz
        self._offset = timedelta(0)
        self.snapshot: Optional[TimerSnapshot] = None

    @property
    def offset(self) -> timedelta:
        return self._offset

    def sync(self, snapshot: TimerSnapshot, server_time: datetime) -> None:
        local_now = as_aware(self._local_clock())
        self._offset = as_aware(server_time) - local_now
        self.snapshot = snapshot

    def adjusted_now(self) -> datetime:
        return as_aware(self._local_clock()) + self._offset

    def is_working_hours(self) -> bool:
        return is_working_moment(self.adjusted_now(), self._tz)

    def remaining(self) -> int:
        if self.snapshot is None:
            return 0
        return current_remaining(self.snapshot, self.adjusted_now(), self._tz)


@dataclass
class CountdownReading:
    remaining_seconds: int
    display: str
    is_running: bool
    is_working_hours: bool
    status: str


class CountdownTicker:
    """Recurring display task: refetch every ``poll_every`` ticks, redraw every tick."""

    def __init__(
        self,
        fetch: Callable[[], Tuple[TimerSnapshot, datetime]],
        adapter: Optional[ClockOffsetAdapter] = None,
        poll_every: int = 60,
        interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if poll_every < 1:
            raise ValueError("poll_every must be at least 1")
        self.fetch = fetch
        self.adapter = adapter or ClockOffsetAdapter()
        self.poll_every = poll_every
        self.interval = interval
        self._sleep = sleep
        self._stopped = threading.Event()
        self.ticks = 0

    def stop(self) -> None:
        self._stopped.set()

    def refresh(self) -> None:
        snapshot, server_time = self.fetch()
        self.adapter.sync(snapshot, server_time)

    def read(self) -> CountdownReading:
        snapshot = self.adapter.snapshot
        running = bool(snapshot and snapshot.is_timer_running)
        working = self.adapter.is_working_hours()
        try:
            remaining = self.adapter.remaining()
        except TimerStateCorrupted as exc:
            remaining = exc.remaining
            status = CORRUPTED
        else:
            if not working:
                status = OUTSIDE_HOURS
            elif not running:
                status = PAUSED
            else:
                status = LIVE
        return CountdownReading(
            remaining_seconds=remaining,
            display=format_hms(remaining),
            is_running=running,
            is_working_hours=working,
            status=status,
        )

    def tick(self) -> CountdownReading:
        if self.ticks % self.poll_every == 0:
            self.refresh()
        self.ticks += 1
        return self.read()

    def run(self, on_tick: Callable[[CountdownReading], None], max_ticks: Optional[int] = None) -> int:
        """Tick until stopped or ``max_ticks`` is reached. Returns ticks performed."""
        done = 0
        while not self._stopped.is_set():
            if max_ticks is not None and done >= max_ticks:
                break
            on_tick(self.tick())
            done += 1
            if max_ticks is not None and done >= max_ticks:
                break
            self._sleep(self.interval)
        log.debug(f"[ticker-stop] ticks={done}")
        return done
