"""Shared fixtures: a controllable clock and a deterministic engine."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from core.config import AppConfig, SimulationConfig, StorageConfig
from core.domain.models import Facility, Stall, StallRoster, StallStatus
from core.services.engine import MonitoringEngine
from core.services.records import RecordStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 13, 7, tzinfo=UTC))


@pytest.fixture
def scenario_facility() -> Facility:
    """Facility r1 with one dirty male stall and one clean female stall."""
    return Facility(
        id="r1",
        name="Scenario Restroom",
        location="Test site",
        stalls=StallRoster(
            male=[Stall(id="m1", status=StallStatus.NEEDS_CLEANING)],
            female=[Stall(id="f1", status=StallStatus.AVAILABLE)],
        ),
        sinks=["s1"],
    )


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        simulation=SimulationConfig(seed=7, occupancy_drift_enabled=False),
        storage=StorageConfig(persist=False),
    )


@pytest.fixture
def make_engine(
    app_config: AppConfig, clock: FakeClock
) -> Callable[..., MonitoringEngine]:
    def _make(
        facilities: list[Facility] | None = None,
        store: RecordStore | None = None,
        config: AppConfig | None = None,
    ) -> MonitoringEngine:
        return MonitoringEngine(
            config or app_config, facilities=facilities, store=store, clock=clock
        )

    return _make


@pytest.fixture
def quiet_engine(
    make_engine: Callable[..., MonitoringEngine], scenario_facility: Facility
) -> MonitoringEngine:
    """Engine on the scenario facility with every alert source pinned below threshold."""
    engine = make_engine([scenario_facility])
    engine.environment.set_reading("r1", temperature=22.0, ammonia=5.0, h2s=1.0)
    engine.supplies.set_levels("r1", paper={"m1": 80.0, "f1": 80.0}, soap={"s1": 80.0})
    return engine
