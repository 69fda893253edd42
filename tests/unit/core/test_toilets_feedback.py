"""
Tests for the stall roster and the public feedback queue.

Covers:
- Cleaning a stall in either wing, unknown ids leave state untouched
- Concurrent cleaning requests from many threads
- Roster validation (duplicate facility or stall ids)
- Occupancy walk never leaves needs_cleaning on its own
- Write-through to a record store
- Feedback ordering, ids and facility scoping
"""

import random
import threading
from typing import Any

import pytest

from core.domain.errors import InternalInconsistencyError, NotFoundError
from core.domain.models import (
    Facility,
    FeedbackSubmission,
    FeedbackType,
    Stall,
    StallRoster,
    StallStatus,
)
from core.services.feedback import FeedbackQueue
from core.services.records import InMemoryRecordStore
from core.services.toilets import OccupancySimulator, ToiletStatusStore


def _facility(facility_id: str, male: list[str], female: list[str]) -> Facility:
    return Facility(
        id=facility_id,
        name=f"Restroom {facility_id}",
        stalls=StallRoster(
            male=[Stall(id=stall_id, status=StallStatus.NEEDS_CLEANING) for stall_id in male],
            female=[Stall(id=stall_id, status=StallStatus.OCCUPIED) for stall_id in female],
        ),
    )


class UnwritableRecordStore(InMemoryRecordStore):
    """Record store whose durable write can be switched to fail."""

    def __init__(self, collection: str, records: list[dict] | None = None) -> None:
        super().__init__(collection, records)
        self.fail_writes = False
        self.writes = 0

    def _after_mutation(self) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.writes += 1


class TestToiletStatusStore:
    @pytest.fixture
    def store(self) -> ToiletStatusStore:
        return ToiletStatusStore(
            [_facility("r1", ["m1", "m2"], ["f1"]), _facility("r2", ["x1"], ["y1"])]
        )

    def test_mark_cleaned_in_male_wing(self, store: ToiletStatusStore) -> None:
        stall = store.mark_cleaned("r1", "m2")

        assert stall == Stall(id="m2", status=StallStatus.AVAILABLE)
        roster = store.get("r1")
        assert [s.status for s in roster.male] == [
            StallStatus.NEEDS_CLEANING,
            StallStatus.AVAILABLE,
        ]

    def test_mark_cleaned_in_female_wing(self, store: ToiletStatusStore) -> None:
        store.mark_cleaned("r1", "f1")
        assert store.get("r1").female[0].status is StallStatus.AVAILABLE

    def test_mark_cleaned_is_idempotent(self, store: ToiletStatusStore) -> None:
        store.mark_cleaned("r1", "m1")
        store.mark_cleaned("r1", "m1")
        assert store.get("r1").male[0].status is StallStatus.AVAILABLE

    def test_unknown_stall_raises_and_leaves_roster_untouched(
        self, store: ToiletStatusStore
    ) -> None:
        before = store.get("r1")

        with pytest.raises(NotFoundError, match="Stall not found: m9"):
            store.mark_cleaned("r1", "m9")

        assert store.get("r1") == before

    def test_stall_of_another_facility_is_not_found(self, store: ToiletStatusStore) -> None:
        with pytest.raises(NotFoundError):
            store.mark_cleaned("r1", "x1")
        assert store.get("r2").male[0].status is StallStatus.NEEDS_CLEANING

    def test_unknown_facility_raises(self, store: ToiletStatusStore) -> None:
        with pytest.raises(NotFoundError, match="Facility not found: r9"):
            store.get("r9")
        with pytest.raises(NotFoundError):
            store.mark_cleaned("r9", "m1")

    def test_concurrent_cleaning_leaves_every_stall_available(self) -> None:
        stall_ids = [f"m{n}" for n in range(40)]
        store = ToiletStatusStore([_facility("r1", stall_ids, [])])
        barrier = threading.Barrier(8)
        errors: list[Exception] = []

        def worker(offset: int) -> None:
            barrier.wait()
            try:
                for stall_id in stall_ids[offset::4]:
                    store.mark_cleaned("r1", stall_id)
            except Exception as e:
                errors.append(e)

        # Two threads per slice so every stall is cleaned twice concurrently.
        threads = [threading.Thread(target=worker, args=(i % 4,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        roster = store.get("r1")
        assert [stall.id for stall in roster.male] == stall_ids
        assert all(stall.status is StallStatus.AVAILABLE for stall in roster.male)

    def test_duplicate_stall_across_facilities_is_rejected(self) -> None:
        with pytest.raises(InternalInconsistencyError, match="m1"):
            ToiletStatusStore([_facility("r1", ["m1"], []), _facility("r2", ["m1"], [])])

    def test_duplicate_facility_is_rejected(self) -> None:
        with pytest.raises(InternalInconsistencyError, match="r1"):
            ToiletStatusStore([_facility("r1", ["m1"], []), _facility("r1", ["m2"], [])])

    def test_list_facilities_returns_summaries(self, store: ToiletStatusStore) -> None:
        assert [summary.id for summary in store.list_facilities()] == ["r1", "r2"]


class TestOccupancy:
    def test_needs_cleaning_is_only_left_through_mark_cleaned(self) -> None:
        store = ToiletStatusStore([_facility("r1", ["m1", "m2", "m3"], ["f1", "f2"])])
        simulator = OccupancySimulator(store, rng=random.Random(4))

        for _ in range(200):
            simulator.advance("r1")
            assert all(
                stall.status is StallStatus.NEEDS_CLEANING for stall in store.get("r1").male
            )

    def test_available_stalls_get_used(self) -> None:
        facility = Facility(
            id="r1", name="Lobby", stalls=StallRoster(male=[Stall(id="m1"), Stall(id="m2")])
        )
        store = ToiletStatusStore([facility])
        simulator = OccupancySimulator(store, rng=random.Random(8))

        seen: set[StallStatus] = set()
        for _ in range(300):
            simulator.advance("r1")
            seen.update(stall.status for stall in store.get("r1").male)

        assert StallStatus.OCCUPIED in seen

    def test_register_rejects_unknown_facility(self) -> None:
        simulator = OccupancySimulator(ToiletStatusStore([]))
        with pytest.raises(NotFoundError):
            simulator.register(Facility(id="r1", name="Lobby"))


class TestWriteThrough:
    def test_mutation_updates_the_record_store(self) -> None:
        records = InMemoryRecordStore("restrooms")
        store = ToiletStatusStore([_facility("r1", ["m1"], [])], store=records)

        store.mark_cleaned("r1", "m1")

        record = records.get("r1")
        assert record["stalls"]["male"] == [{"id": "m1", "status": "available"}]

    def test_flush_writes_every_facility(self) -> None:
        records = InMemoryRecordStore("restrooms")
        store = ToiletStatusStore(
            [_facility("r1", ["m1"], []), _facility("r2", ["x1"], [])], store=records
        )

        store.flush()

        assert {record["id"] for record in records.list()} == {"r1", "r2"}

    def test_failed_write_leaves_roster_and_record_untouched(self) -> None:
        facility = _facility("r1", ["m1"], [])
        records = UnwritableRecordStore("restrooms", [facility.to_wire()])
        store = ToiletStatusStore([facility], store=records)
        records.fail_writes = True

        with pytest.raises(OSError, match="disk full"):
            store.mark_cleaned("r1", "m1")

        assert store.get("r1").male[0].status is StallStatus.NEEDS_CLEANING
        assert records.get("r1")["stalls"]["male"] == [{"id": "m1", "status": "needs_cleaning"}]

    def test_occupancy_drift_is_kept_in_memory_until_flush(self) -> None:
        facility = Facility(id="r1", name="Lobby", stalls=StallRoster(male=[Stall(id="m1")]))
        records = UnwritableRecordStore("restrooms", [facility.to_wire()])
        store = ToiletStatusStore([facility], store=records)
        records.fail_writes = True
        simulator = OccupancySimulator(store, rng=random.Random(8))

        for _ in range(50):
            simulator.advance("r1")

        assert records.writes == 0
        assert records.get("r1") == facility.to_wire()

        records.fail_writes = False
        store.flush()
        assert records.get("r1") == store.facility("r1").to_wire()


class TestFeedbackQueue:
    @pytest.fixture
    def queue(self, clock: Any) -> FeedbackQueue:
        return FeedbackQueue(clock=clock)

    def test_newest_first_with_increasing_ids(self, queue: FeedbackQueue, clock: Any) -> None:
        first = queue.append(FeedbackSubmission(type=FeedbackType.REPORT, content="soap out"))
        clock.advance(minutes=1)
        second = queue.append(
            FeedbackSubmission(type=FeedbackType.RATING, content="clean", rating=4.5)
        )

        assert second.id > first.id
        assert second.time > first.time
        assert queue.list_items() == [second, first]
        assert len(queue) == 2

    def test_filter_by_type(self, queue: FeedbackQueue) -> None:
        queue.append(FeedbackSubmission(type=FeedbackType.REPORT, content="soap out"))
        queue.append(FeedbackSubmission(type=FeedbackType.RATING, content="ok", rating=3))

        reports = queue.filter_by_type(FeedbackType.REPORT)

        assert [item.content for item in reports] == ["soap out"]

    def test_reports_for_includes_unscoped_items(self, queue: FeedbackQueue) -> None:
        queue.append(FeedbackSubmission(type=FeedbackType.REPORT, content="all"))
        queue.append(
            FeedbackSubmission(type=FeedbackType.REPORT, content="r2 only", facility_id="r2")
        )

        assert [item.content for item in queue.reports_for("r1")] == ["all"]
        assert [item.content for item in queue.reports_for("r2")] == ["r2 only", "all"]

    def test_seeded_items_continue_id_sequence(self, queue: FeedbackQueue, clock: Any) -> None:
        first = queue.append(FeedbackSubmission(type=FeedbackType.REPORT, content="a"))
        second = queue.append(FeedbackSubmission(type=FeedbackType.REPORT, content="b"))

        resumed = FeedbackQueue(items=[first, second], clock=clock)
        third = resumed.append(FeedbackSubmission(type=FeedbackType.REPORT, content="c"))

        assert third.id == second.id + 1
        assert resumed.list_items() == [third, second, first]

    def test_concurrent_appends_get_unique_ids(self, queue: FeedbackQueue) -> None:
        def worker() -> None:
            for n in range(100):
                queue.append(FeedbackSubmission(type=FeedbackType.REPORT, content=f"r{n}"))

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        ids = [item.id for item in queue.list_items()]
        assert len(ids) == 500
        assert len(set(ids)) == 500
        assert ids == sorted(ids, reverse=True)
