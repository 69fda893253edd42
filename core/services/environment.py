"""
Simulated environmental sensors: temperature, humidity, PM2.5, NH3 and H2S.

Each tick every metric takes one clamped random-walk step. Alert flags are pure
threshold predicates of the published (rounded) values.
"""

import random

import structlog

from core.config import AlertThresholds
from core.domain.models import EnvironmentReading, Facility
from core.services.simulation import MetricBounds, SnapshotBoard, bounded_drift, clamp

logger = structlog.get_logger(__name__)

DEFAULT_ENVIRONMENT_BOUNDS: dict[str, MetricBounds] = {
    "temperature": MetricBounds(
        minimum=18.0, maximum=35.0, max_step=0.5, initial_low=20.0, initial_high=26.0
    ),
    "humidity": MetricBounds(
        minimum=30.0, maximum=90.0, max_step=2.0, initial_low=45.0, initial_high=65.0
    ),
    "pm25": MetricBounds(
        minimum=0.0, maximum=150.0, max_step=5.0, initial_low=10.0, initial_high=40.0
    ),
    "ammonia": MetricBounds(
        minimum=0.0, maximum=50.0, max_step=2.0, initial_low=5.0, initial_high=20.0
    ),
    "h2s": MetricBounds(
        minimum=0.0, maximum=20.0, max_step=0.5, initial_low=0.5, initial_high=4.0
    ),
}


class EnvironmentSimulator:
    """Drifting environmental readings, one live snapshot per facility."""

    source_name = "environment"

    def __init__(
        self,
        thresholds: AlertThresholds | None = None,
        rng: random.Random | None = None,
        bounds: dict[str, MetricBounds] | None = None,
    ) -> None:
        self.thresholds = thresholds or AlertThresholds()
        self.bounds = bounds or DEFAULT_ENVIRONMENT_BOUNDS
        self._rng = rng or random.Random()
        self._board: SnapshotBoard[EnvironmentReading] = SnapshotBoard("environment")
        self.logger = logger.bind(component="environment_simulator")

    def register(self, facility: Facility) -> None:
        values = {name: bounds.initial(self._rng) for name, bounds in self.bounds.items()}
        self._board.publish(facility.id, self.build_reading(values))
        self.logger.debug("environment_registered", facility_id=facility.id)

    def advance(self, facility_id: str) -> None:
        previous = self._board.read(facility_id)
        values = {
            name: bounded_drift(getattr(previous, name), bounds, self._rng)
            for name, bounds in self.bounds.items()
        }
        self._board.publish(facility_id, self.build_reading(values))

    def current(self, facility_id: str) -> EnvironmentReading:
        return self._board.read(facility_id)

    def set_reading(self, facility_id: str, **values: float) -> EnvironmentReading:
        """Overwrite selected metrics (clamped to bounds) and republish. Used by scenarios."""
        previous = self._board.read(facility_id)
        merged = {name: getattr(previous, name) for name in self.bounds}
        for name, value in values.items():
            if name not in self.bounds:
                raise ValueError(f"Unknown environment metric: {name}")
            merged[name] = clamp(value, self.bounds[name].minimum, self.bounds[name].maximum)
        reading = self.build_reading(merged)
        self._board.publish(facility_id, reading)
        return reading

    def build_reading(self, values: dict[str, float]) -> EnvironmentReading:
        rounded = {name: round(value, 1) for name, value in values.items()}
        return EnvironmentReading(
            **rounded,
            is_ammonia_alert=self.is_ammonia_alert(rounded["ammonia"]),
            is_h2s_alert=self.is_h2s_alert(rounded["h2s"]),
        )

    def is_ammonia_alert(self, ammonia: float) -> bool:
        return ammonia > self.thresholds.ammonia_ppm

    def is_h2s_alert(self, h2s: float) -> bool:
        return h2s > self.thresholds.h2s_ppm
