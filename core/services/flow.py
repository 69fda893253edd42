"""
Simulated visitor flow for the current day.

The day is split into a fixed number of equally spaced buckets. A bucket gets its
final value once the clock has moved past it and then never changes for the rest
of the day; only the bucket containing "now" is re-drawn on each tick, and
future buckets read zero.
"""

import math
import random
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime

import structlog

from core.domain.errors import NotFoundError
from core.domain.models import Facility, FlowSeries, Wing
from core.services.simulation import SnapshotBoard

logger = structlog.get_logger(__name__)

MINUTES_PER_DAY = 24 * 60

# (peak hour, visitors per hour at peak, spread in hours)
DIURNAL_PEAKS: tuple[tuple[float, float, float], ...] = (
    (8.0, 18.0, 1.2),
    (12.5, 30.0, 1.0),
    (18.5, 24.0, 1.3),
)
BASELINE_VISITORS_PER_HOUR = 2.0


def visitors_per_hour(hour: float) -> float:
    """Smooth diurnal curve: a small baseline plus morning, lunch and evening peaks."""
    rate = BASELINE_VISITORS_PER_HOUR
    for peak_hour, height, spread in DIURNAL_PEAKS:
        rate += height * math.exp(-((hour - peak_hour) ** 2) / (2 * spread**2))
    return rate


@dataclass
class _FlowDay:
    day: date
    scale: dict[Wing, float]
    counts: dict[Wing, list[int]]
    frozen: int = 0


class FlowSimulator:
    """Per-wing visitor counts per time bucket, stable for elapsed buckets."""

    source_name = "flow"

    def __init__(
        self,
        bucket_count: int = 12,
        noise: int = 3,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if bucket_count < 1:
            raise ValueError("bucket_count must be positive")
        self.bucket_count = bucket_count
        self.noise = noise
        self.bucket_minutes = MINUTES_PER_DAY / bucket_count
        self.time_labels = [self._label(i) for i in range(bucket_count)]
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._board: SnapshotBoard[FlowSeries] = SnapshotBoard("flow")
        self._days: dict[str, _FlowDay] = {}
        self._lock = threading.Lock()
        self.logger = logger.bind(component="flow_simulator")

    def register(self, facility: Facility) -> None:
        with self._lock:
            self._days[facility.id] = self._new_day(self._clock().date())
            self._publish(facility.id)

    def advance(self, facility_id: str) -> None:
        with self._lock:
            if facility_id not in self._days:
                raise NotFoundError("Facility", facility_id)
            self._publish(facility_id)

    def current(self, facility_id: str) -> FlowSeries:
        return self._board.read(facility_id)

    def _publish(self, facility_id: str) -> None:
        now = self._clock()
        state = self._days[facility_id]
        if state.day != now.date():
            self.logger.info(
                "flow_day_rollover", facility_id=facility_id, day=now.date().isoformat()
            )
            state = self._days[facility_id] = self._new_day(now.date())

        minutes = now.hour * 60 + now.minute + now.second / 60
        current_index = min(int(minutes // self.bucket_minutes), self.bucket_count - 1)

        # Freeze every bucket the clock has left behind.
        while state.frozen < current_index:
            for wing in Wing:
                state.counts[wing][state.frozen] = self._draw(state, wing, state.frozen, 1.0)
            state.frozen += 1

        elapsed_fraction = (minutes - current_index * self.bucket_minutes) / self.bucket_minutes
        for wing in Wing:
            state.counts[wing][current_index] = self._draw(
                state, wing, current_index, elapsed_fraction
            )

        self._board.publish(
            facility_id,
            FlowSeries(
                time_labels=list(self.time_labels),
                male=list(state.counts[Wing.MALE]),
                female=list(state.counts[Wing.FEMALE]),
            ),
        )

    def _draw(self, state: _FlowDay, wing: Wing, index: int, fraction: float) -> int:
        mid_hour = (index + 0.5) * self.bucket_minutes / 60
        expected = visitors_per_hour(mid_hour) * (self.bucket_minutes / 60) * state.scale[wing]
        jitter = self._rng.randint(-self.noise, self.noise) if self.noise else 0
        return max(0, round(expected * max(0.0, min(1.0, fraction))) + jitter)

    def _new_day(self, day: date) -> _FlowDay:
        return _FlowDay(
            day=day,
            scale={wing: self._rng.uniform(0.8, 1.2) for wing in Wing},
            counts={wing: [0] * self.bucket_count for wing in Wing},
        )

    def _label(self, index: int) -> str:
        start = round(index * self.bucket_minutes)
        return f"{start // 60:02d}:{start % 60:02d}"
