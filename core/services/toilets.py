"""
Authoritative stall status per facility.

This is the only state in the core mutated by external requests, so every
mutation of a facility happens under that facility's lock. Facilities are
immutable models; a mutation publishes a new Facility with one stall replaced.
"""

import random
import threading
from collections.abc import Iterable

import structlog

from core.domain.errors import InternalInconsistencyError, NotFoundError
from core.domain.models import Facility, FacilitySummary, Stall, StallRoster, StallStatus, Wing
from core.services.records import RecordStore

logger = structlog.get_logger(__name__)


class ToiletStatusStore:
    """Facility roster with per-facility serialized stall mutations."""

    def __init__(self, facilities: Iterable[Facility], store: RecordStore | None = None) -> None:
        self._facilities: dict[str, Facility] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._store = store
        self.logger = logger.bind(component="toilet_status_store")

        owners: dict[str, str] = {}
        for facility in facilities:
            if facility.id in self._facilities:
                raise InternalInconsistencyError(f"Duplicate facility id: {facility.id}")
            for stall_id in facility.stalls.stall_ids():
                if stall_id in owners:
                    raise InternalInconsistencyError(
                        f"Stall {stall_id} appears in {owners[stall_id]} and {facility.id}"
                    )
                owners[stall_id] = facility.id
            self._facilities[facility.id] = facility
            self._locks[facility.id] = threading.Lock()

        self.logger.info("roster_loaded", facilities=len(self._facilities), stalls=len(owners))

    def facility_ids(self) -> list[str]:
        return list(self._facilities)

    def list_facilities(self) -> list[FacilitySummary]:
        return [facility.summary() for facility in self._facilities.values()]

    def facility(self, facility_id: str) -> Facility:
        try:
            return self._facilities[facility_id]
        except KeyError:
            raise NotFoundError("Facility", facility_id) from None

    def get(self, facility_id: str) -> StallRoster:
        return self.facility(facility_id).stalls

    def mark_cleaned(self, facility_id: str, stall_id: str) -> Stall:
        """Set one stall (matched across both wings) to available."""
        stall = self.set_status(facility_id, stall_id, StallStatus.AVAILABLE)
        self.logger.info("stall_marked_cleaned", facility_id=facility_id, stall_id=stall_id)
        return stall

    def set_status(self, facility_id: str, stall_id: str, status: StallStatus) -> Stall:
        """Replace one stall's status. The record store is written before memory is updated."""
        lock = self._lock_for(facility_id)
        with lock:
            facility = self._facilities[facility_id]
            updated, stall = self._replace_stall(facility, stall_id, status)
            self._write_through(updated)
            self._facilities[facility_id] = updated
            return stall

    def advance_occupancy(self, facility_id: str, rng: random.Random) -> None:
        """
        One step of the occupancy simulation.

        available -> occupied, occupied -> needs_cleaning or back to available.
        needs_cleaning only leaves through mark_cleaned(). Drift is held in memory
        and reaches the record store on the next external mutation or flush().
        """
        lock = self._lock_for(facility_id)
        with lock:
            facility = self._facilities[facility_id]
            wings = {
                wing: [self._next_status(stall, rng) for stall in facility.stalls.wing(wing)]
                for wing in Wing
            }
            roster = StallRoster(male=wings[Wing.MALE], female=wings[Wing.FEMALE])
            if roster != facility.stalls:
                self._facilities[facility_id] = facility.model_copy(update={"stalls": roster})

    def flush(self) -> None:
        """Write every facility to the record store."""
        if self._store is None:
            return
        for facility_id in self.facility_ids():
            with self._locks[facility_id]:
                self._write_through(self._facilities[facility_id])
        self.logger.info("roster_flushed", facilities=len(self._facilities))

    def _lock_for(self, facility_id: str) -> threading.Lock:
        try:
            return self._locks[facility_id]
        except KeyError:
            raise NotFoundError("Facility", facility_id) from None

    def _replace_stall(
        self, facility: Facility, stall_id: str, status: StallStatus
    ) -> tuple[Facility, Stall]:
        matches = [
            (wing, index)
            for wing in Wing
            for index, stall in enumerate(facility.stalls.wing(wing))
            if stall.id == stall_id
        ]
        if not matches:
            raise NotFoundError("Stall", stall_id)
        if len(matches) > 1:
            raise InternalInconsistencyError(
                f"Stall {stall_id} is listed {len(matches)} times in facility {facility.id}"
            )

        wing, index = matches[0]
        stall = Stall(id=stall_id, status=status)
        stalls = list(facility.stalls.wing(wing))
        stalls[index] = stall
        roster = facility.stalls.model_copy(update={wing.value: stalls})
        return facility.model_copy(update={"stalls": roster}), stall

    def _write_through(self, facility: Facility) -> None:
        if self._store is None:
            return
        record = facility.to_wire()
        try:
            self._store.update(facility.id, record)
        except NotFoundError:
            self._store.create(record)

    @staticmethod
    def _next_status(stall: Stall, rng: random.Random) -> Stall:
        roll = rng.random()
        if stall.status is StallStatus.AVAILABLE:
            if roll < 0.15:
                return stall.model_copy(update={"status": StallStatus.OCCUPIED})
            return stall
        if stall.status is StallStatus.OCCUPIED:
            if roll < 0.05:
                return stall.model_copy(update={"status": StallStatus.NEEDS_CLEANING})
            if roll < 0.40:
                return stall.model_copy(update={"status": StallStatus.AVAILABLE})
            return stall
        if stall.status is StallStatus.NEEDS_CLEANING:
            return stall
        raise InternalInconsistencyError(f"Unknown stall status: {stall.status}")


class OccupancySimulator:
    """Tick source that walks stall statuses through the occupancy cycle."""

    source_name = "occupancy"

    def __init__(self, store: ToiletStatusStore, rng: random.Random | None = None) -> None:
        self.store = store
        self._rng = rng or random.Random()

    def register(self, facility: Facility) -> None:
        # Roster lives in the store already.
        self.store.facility(facility.id)

    def advance(self, facility_id: str) -> None:
        self.store.advance_occupancy(facility_id, self._rng)
