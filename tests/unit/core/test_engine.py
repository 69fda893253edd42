"""
Tests for the monitoring engine: seeding, defaults, lifecycle and mutations.
"""

from collections.abc import Callable

import pytest

from core.config import AppConfig, SimulationConfig, StorageConfig
from core.domain.errors import InvalidRequestError, NotFoundError
from core.domain.models import Facility, FeedbackType, StallStatus
from core.services.engine import MonitoringEngine
from core.services.records import InMemoryRecordStore


class TestSeeding:
    def test_defaults_used_when_nothing_is_given(
        self, make_engine: Callable[..., MonitoringEngine]
    ) -> None:
        engine = make_engine()
        assert [summary.id for summary in engine.list_facilities()] == ["r1", "r2", "r3"]

    def test_empty_store_is_seeded_with_the_roster(
        self, make_engine: Callable[..., MonitoringEngine], scenario_facility: Facility
    ) -> None:
        records = InMemoryRecordStore("restrooms")

        make_engine([scenario_facility], store=records)

        assert records.get("r1")["stalls"]["male"] == [{"id": "m1", "status": "needs_cleaning"}]

    def test_roster_is_loaded_from_a_populated_store(
        self, make_engine: Callable[..., MonitoringEngine], scenario_facility: Facility
    ) -> None:
        records = InMemoryRecordStore("restrooms", [scenario_facility.to_wire()])

        engine = make_engine(store=records)

        assert [summary.id for summary in engine.list_facilities()] == ["r1"]
        assert engine.toilet_status("r1").male[0].status is StallStatus.NEEDS_CLEANING

    def test_cleaning_survives_a_restart(
        self, make_engine: Callable[..., MonitoringEngine], scenario_facility: Facility
    ) -> None:
        records = InMemoryRecordStore("restrooms")
        engine = make_engine([scenario_facility], store=records)
        engine.mark_cleaned("r1", "m1")
        engine.stop()

        restarted = make_engine(store=records)

        assert restarted.toilet_status("r1").male[0].status is StallStatus.AVAILABLE

    def test_same_seed_gives_same_readings(
        self, make_engine: Callable[..., MonitoringEngine]
    ) -> None:
        first, second = make_engine(), make_engine()
        for _ in range(5):
            first.tick()
            second.tick()

        assert first.current_environment("r2") == second.current_environment("r2")
        assert first.current_supplies("r3") == second.current_supplies("r3")


class TestReads:
    def test_reads_default_to_first_facility(self, quiet_engine: MonitoringEngine) -> None:
        assert quiet_engine.resolve_facility_id(None) == "r1"
        assert quiet_engine.current_environment() == quiet_engine.current_environment("r1")
        assert quiet_engine.current_flow().time_labels[0] == "00:00"

    def test_unknown_facility_reads_raise(self, quiet_engine: MonitoringEngine) -> None:
        for read in (
            quiet_engine.current_environment,
            quiet_engine.current_supplies,
            quiet_engine.current_flow,
            quiet_engine.toilet_status,
        ):
            with pytest.raises(NotFoundError):
                read("r9")

    def test_reads_available_before_first_tick(self, quiet_engine: MonitoringEngine) -> None:
        assert quiet_engine.ticker.tick_count == 0
        assert set(quiet_engine.current_supplies("r1").paper) == {"m1", "f1"}

    def test_tick_reports_every_source(self, quiet_engine: MonitoringEngine) -> None:
        report = quiet_engine.tick()

        assert report.ok
        # environment, supplies, flow; occupancy drift is off in the test config
        assert report.advanced == 3


class TestFeedback:
    def test_submit_dict_payload(self, quiet_engine: MonitoringEngine) -> None:
        item = quiet_engine.submit_feedback(
            {"type": "rating", "content": "Spotless", "rating": 5, "facilityId": "r1"}
        )

        assert item.type is FeedbackType.RATING
        assert item.facility_id == "r1"
        assert quiet_engine.list_feedback() == [item]

    @pytest.mark.parametrize(
        "payload",
        [{"type": "report"}, {"type": "report", "content": "  "}, {"content": "no type"}],
    )
    def test_invalid_payload_raises_invalid_request(
        self, quiet_engine: MonitoringEngine, payload: dict
    ) -> None:
        with pytest.raises(InvalidRequestError):
            quiet_engine.submit_feedback(payload)
        assert quiet_engine.list_feedback() == []

    def test_unknown_facility_is_not_found(self, quiet_engine: MonitoringEngine) -> None:
        with pytest.raises(NotFoundError):
            quiet_engine.submit_feedback({"type": "report", "content": "x", "facilityId": "r9"})
        assert quiet_engine.list_feedback() == []


class TestLifecycle:
    def test_background_ticking(self, scenario_facility: Facility) -> None:
        config = AppConfig(
            simulation=SimulationConfig(tick_interval_seconds=0.01, seed=1),
            storage=StorageConfig(persist=False),
        )

        with MonitoringEngine(config, facilities=[scenario_facility]) as engine:
            assert engine.status()["running"] is True
            engine.alerts_for("r1")

        status = engine.status()
        assert status["running"] is False
        assert status["facilities"] == 1

    def test_occupancy_source_only_when_enabled(self, scenario_facility: Facility) -> None:
        config = AppConfig(
            simulation=SimulationConfig(seed=1, occupancy_drift_enabled=True),
            storage=StorageConfig(persist=False),
        )
        engine = MonitoringEngine(config, facilities=[scenario_facility])

        assert "occupancy" in [source.source_name for source in engine.ticker.sources]
