"""
Supervising component that owns all monitoring state.

The engine wires the simulators, the stall roster, the feedback queue and the
alert aggregator together, seeds the roster (from storage or the built-in
defaults), runs the background ticker and flushes the roster on shutdown.
Every read and mutation goes through its methods.
"""

import random
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import ValidationError

from core.config import AppConfig, get_config
from core.domain.errors import InvalidRequestError
from core.domain.models import (
    Alert,
    EnvironmentReading,
    Facility,
    FacilitySummary,
    FeedbackItem,
    FeedbackSubmission,
    FlowSeries,
    Stall,
    StallRoster,
    SupplyState,
)
from core.services.alerts import AlertAggregator, AlertIdAllocator
from core.services.environment import EnvironmentSimulator
from core.services.feedback import FeedbackQueue
from core.services.flow import FlowSimulator
from core.services.records import RecordStore
from core.services.seed import default_facilities
from core.services.supplies import SuppliesSimulator
from core.services.ticker import SimulationTicker, TickerConfig, TickReport
from core.services.toilets import OccupancySimulator, ToiletStatusStore

logger = structlog.get_logger(__name__)


class MonitoringEngine:
    """
    Process-wide monitoring state with an explicit start/stop lifecycle.

    Usage:
        with MonitoringEngine(config, store=store) as engine:
            engine.alerts_for("r1")
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        facilities: list[Facility] | None = None,
        store: RecordStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or get_config()
        self.logger = logger.bind(component="monitoring_engine")
        self._store = store
        self._clock = clock or (lambda: datetime.now(UTC))

        sim = self.config.simulation
        master = random.Random(sim.seed)

        self.toilets = ToiletStatusStore(self._seed_roster(facilities), store=store)
        self.environment = EnvironmentSimulator(
            thresholds=self.config.thresholds, rng=random.Random(master.random())
        )
        self.supplies = SuppliesSimulator(
            refill_probability=sim.supply_refill_probability,
            refill_amount=sim.supply_refill_amount,
            rng=random.Random(master.random()),
            clock=self._clock,
        )
        self.flow = FlowSimulator(
            bucket_count=sim.flow_bucket_count,
            noise=sim.flow_noise,
            rng=random.Random(master.random()),
            clock=self._clock,
        )
        self.feedback = FeedbackQueue(clock=self._clock)
        self.aggregator = AlertAggregator(
            environment=self.environment,
            supplies=self.supplies,
            toilets=self.toilets,
            feedback=self.feedback,
            thresholds=self.config.thresholds,
            ids=AlertIdAllocator(),
            clock=self._clock,
        )

        self.ticker = SimulationTicker(
            TickerConfig(tick_interval_seconds=sim.tick_interval_seconds),
            facility_ids=self.toilets.facility_ids,
        )
        self.ticker.add_source(self.environment)
        self.ticker.add_source(self.supplies)
        self.ticker.add_source(self.flow)
        if sim.occupancy_drift_enabled:
            self.ticker.add_source(
                OccupancySimulator(self.toilets, rng=random.Random(master.random()))
            )

        for facility_id in self.toilets.facility_ids():
            facility = self.toilets.facility(facility_id)
            for source in self.ticker.sources:
                source.register(facility)

        self.logger.info(
            "engine_initialized",
            facilities=len(self.toilets.facility_ids()),
            sources=[source.source_name for source in self.ticker.sources],
            seed=sim.seed,
        )

    def _seed_roster(self, facilities: list[Facility] | None) -> list[Facility]:
        if self._store is not None:
            records = self._store.list()
            if records:
                self.logger.info("roster_seeded_from_store", count=len(records))
                return [Facility.model_validate(record) for record in records]

        seeded = facilities if facilities is not None else default_facilities()
        if self._store is not None:
            for facility in seeded:
                self._store.create(facility.to_wire())
        self.logger.info("roster_seeded_from_defaults", count=len(seeded))
        return seeded

    # Lifecycle

    def start(self) -> None:
        self.ticker.start_in_background()
        self.logger.info("engine_started")

    def stop(self) -> None:
        self.ticker.stop()
        self.toilets.flush()
        self.logger.info("engine_stopped")

    def __enter__(self) -> "MonitoringEngine":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def tick(self) -> TickReport:
        """Advance every source once, synchronously."""
        return self.ticker.tick_once()

    # Reads

    def resolve_facility_id(self, facility_id: str | None) -> str:
        """Default to the first facility when no id is given; unknown ids raise."""
        if not facility_id:
            ids = self.toilets.facility_ids()
            if not ids:
                raise InvalidRequestError("No facilities configured")
            return ids[0]
        return self.toilets.facility(facility_id).id

    def list_facilities(self) -> list[FacilitySummary]:
        return self.toilets.list_facilities()

    def current_environment(self, facility_id: str | None = None) -> EnvironmentReading:
        return self.environment.current(self.resolve_facility_id(facility_id))

    def current_supplies(self, facility_id: str | None = None) -> SupplyState:
        return self.supplies.current(self.resolve_facility_id(facility_id))

    def current_flow(self, facility_id: str | None = None) -> FlowSeries:
        return self.flow.current(self.resolve_facility_id(facility_id))

    def toilet_status(self, facility_id: str) -> StallRoster:
        return self.toilets.get(facility_id)

    def alerts_for(self, facility_id: str) -> list[Alert]:
        return self.aggregator.alerts_for(facility_id)

    def list_feedback(self) -> list[FeedbackItem]:
        return self.feedback.list_items()

    # Mutations

    def mark_cleaned(self, facility_id: str, stall_id: str) -> Stall:
        return self.toilets.mark_cleaned(facility_id, stall_id)

    def submit_feedback(self, payload: FeedbackSubmission | dict[str, Any]) -> FeedbackItem:
        if not isinstance(payload, FeedbackSubmission):
            try:
                payload = FeedbackSubmission.model_validate(payload)
            except ValidationError as e:
                raise InvalidRequestError(f"Invalid feedback: {e.errors(include_url=False)}") from e
        if payload.facility_id is not None:
            self.toilets.facility(payload.facility_id)
        return self.feedback.append(payload)

    def status(self) -> dict[str, Any]:
        return {
            "running": self.ticker.is_running,
            "ticks": self.ticker.tick_count,
            "facilities": len(self.toilets.facility_ids()),
            "feedback": len(self.feedback),
        }
