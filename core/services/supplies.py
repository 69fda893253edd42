"""
Simulated consumables (paper per stall, soap per sink) and daily utility counters.

Dispensers deplete a little every tick and are occasionally restocked. Water and
power usage only grow, and reset when the clock crosses midnight.
"""

import random
from collections.abc import Callable
from datetime import UTC, date, datetime

import structlog

from core.domain.models import Facility, SupplyState
from core.services.simulation import SnapshotBoard, clamp

logger = structlog.get_logger(__name__)


class SuppliesSimulator:
    """Downward-biased dispenser levels plus monotonically growing usage counters."""

    source_name = "supplies"

    def __init__(
        self,
        refill_probability: float = 0.02,
        refill_amount: float = 60.0,
        depletion_step: float = 1.5,
        water_step: float = 2.0,
        power_step: float = 0.05,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.refill_probability = refill_probability
        self.refill_amount = refill_amount
        self.depletion_step = depletion_step
        self.water_step = water_step
        self.power_step = power_step
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._board: SnapshotBoard[SupplyState] = SnapshotBoard("supplies")
        self._usage_day: dict[str, date] = {}
        self.logger = logger.bind(component="supplies_simulator")

    def register(self, facility: Facility) -> None:
        state = SupplyState(
            paper={stall_id: self._initial_level() for stall_id in facility.stalls.stall_ids()},
            soap={sink_id: self._initial_level() for sink_id in facility.sinks},
            water_usage=0.0,
            power_usage=0.0,
        )
        self._usage_day[facility.id] = self._clock().date()
        self._board.publish(facility.id, state)

    def advance(self, facility_id: str) -> None:
        previous = self._board.read(facility_id)
        today = self._clock().date()

        water, power = previous.water_usage, previous.power_usage
        if self._usage_day.get(facility_id) != today:
            self.logger.info("usage_counters_reset", facility_id=facility_id, day=today.isoformat())
            water, power = 0.0, 0.0
            self._usage_day[facility_id] = today

        state = SupplyState(
            paper={name: self._step_level(level) for name, level in previous.paper.items()},
            soap={name: self._step_level(level) for name, level in previous.soap.items()},
            water_usage=round(water + self._rng.uniform(0.0, self.water_step), 2),
            power_usage=round(power + self._rng.uniform(0.0, self.power_step), 3),
        )
        self._board.publish(facility_id, state)

    def current(self, facility_id: str) -> SupplyState:
        return self._board.read(facility_id)

    def set_levels(
        self,
        facility_id: str,
        paper: dict[str, float] | None = None,
        soap: dict[str, float] | None = None,
    ) -> SupplyState:
        """Overwrite selected dispenser levels and republish. Unknown dispensers are rejected."""
        previous = self._board.read(facility_id)
        new_paper, new_soap = dict(previous.paper), dict(previous.soap)
        for current, updates in ((new_paper, paper or {}), (new_soap, soap or {})):
            for name, level in updates.items():
                if name not in current:
                    raise ValueError(f"Unknown dispenser {name} in facility {facility_id}")
                current[name] = clamp(level, 0.0, 100.0)
        state = previous.model_copy(update={"paper": new_paper, "soap": new_soap})
        self._board.publish(facility_id, state)
        return state

    def _initial_level(self) -> float:
        return round(self._rng.uniform(40.0, 100.0), 1)

    def _step_level(self, level: float) -> float:
        level = clamp(level - self._rng.uniform(0.0, self.depletion_step), 0.0, 100.0)
        if self._rng.random() < self.refill_probability:
            level = min(100.0, level + self.refill_amount)
        return round(level, 1)
