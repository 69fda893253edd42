"""
Building blocks shared by the simulated sources.

- MetricBounds / bounded_drift: clamped random walk used by every simulator
- SnapshotBoard: per-facility immutable snapshots swapped atomically under a lock
- TickSource: protocol the ticker drives once per tick
"""

import random
import threading
from typing import Generic, Protocol, TypeVar

from pydantic import BaseModel, Field, model_validator

from core.domain.errors import NotFoundError
from core.domain.models import Facility

SnapshotT = TypeVar("SnapshotT")


class MetricBounds(BaseModel):
    """Range and per-tick step of one drifting metric."""

    minimum: float
    maximum: float
    max_step: float = Field(gt=0.0)
    initial_low: float
    initial_high: float

    @model_validator(mode="after")
    def ranges_are_ordered(self) -> "MetricBounds":
        if not self.minimum <= self.initial_low <= self.initial_high <= self.maximum:
            raise ValueError("expected minimum <= initial_low <= initial_high <= maximum")
        return self

    def initial(self, rng: random.Random) -> float:
        return rng.uniform(self.initial_low, self.initial_high)


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def bounded_drift(value: float, bounds: MetricBounds, rng: random.Random) -> float:
    """One random-walk step: clamp(value + uniform(-step, +step), min, max)."""
    step = rng.uniform(-bounds.max_step, bounds.max_step)
    return clamp(value + step, bounds.minimum, bounds.maximum)


class SnapshotBoard(Generic[SnapshotT]):
    """
    Latest snapshot per facility.

    Writers publish a whole new immutable record; readers get either the old or
    the new record, never a mix.
    """

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._snapshots: dict[str, SnapshotT] = {}
        self._lock = threading.Lock()

    def publish(self, facility_id: str, snapshot: SnapshotT) -> None:
        with self._lock:
            self._snapshots[facility_id] = snapshot

    def read(self, facility_id: str) -> SnapshotT:
        with self._lock:
            try:
                return self._snapshots[facility_id]
            except KeyError:
                raise NotFoundError("Facility", facility_id) from None

    def facility_ids(self) -> list[str]:
        with self._lock:
            return list(self._snapshots)

    def __contains__(self, facility_id: object) -> bool:
        with self._lock:
            return facility_id in self._snapshots


class TickSource(Protocol):
    """
    A source of simulated state that the ticker advances.

    register() publishes an initial snapshot so reads work before the first tick.
    advance() must either publish a complete new snapshot or raise, leaving the
    previous one in place.
    """

    source_name: str

    def register(self, facility: Facility) -> None: ...

    def advance(self, facility_id: str) -> None: ...
