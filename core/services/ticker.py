"""
Periodic simulation ticks on their own scheduling lane.

Key patterns:
- Protocol-based tick sources (environment, supplies, flow, occupancy)
- Result type for per-source outcomes instead of exceptions escaping the loop
- Async context manager for the ticking lifecycle
- Fault isolation: one failing (source, facility) pair keeps its last good
  snapshot and never stops the loop
"""

import asyncio
import threading
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Generic, TypeVar

import structlog
from pydantic import BaseModel, Field

from core.services.simulation import TickSource

logger = structlog.get_logger(__name__)

# Generic Result type for explicit error handling
ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    Used for tick outcomes: a failed advance is data to report, not a crash.
    """

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: ErrorT | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


class TickerConfig(BaseModel):
    """Configuration with validation and smart defaults."""

    tick_interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        description="Interval between simulation ticks in seconds.",
    )


class TickFailure(BaseModel):
    source: str
    facility_id: str
    error: str


class TickReport(BaseModel):
    """Outcome of one tick across every source and facility."""

    tick: int
    advanced: int = 0
    failures: list[TickFailure] = Field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failures


class SimulationTicker:
    """
    Advances every tick source for every facility on a fixed interval.

    Design principles:
    - Readers never wait on a tick: sources publish whole snapshots
    - Graceful degradation: partial failures are logged and reported
    - Observable: one structured log line per tick
    """

    def __init__(self, config: TickerConfig, facility_ids: Callable[[], list[str]]) -> None:
        self.config = config
        self.sources: list[TickSource] = []
        self._facility_ids = facility_ids
        self._tick_count = 0
        self._tick_lock = threading.Lock()
        self._is_running = False
        self._thread: threading.Thread | None = None
        self.logger = logger.bind(component="simulation_ticker")

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def is_running(self) -> bool:
        return self._is_running

    def add_source(self, source: TickSource) -> None:
        """Add a tick source. Validates source implements protocol correctly."""
        if not hasattr(source, "advance") or not hasattr(source, "register"):
            raise TypeError(f"Source {source} must implement TickSource protocol")
        self.sources.append(source)
        self.logger.info("source_added", source=source.source_name)

    def remove_source(self, source: TickSource) -> None:
        self.sources.remove(source)
        self.logger.info("source_removed", source=source.source_name)

    def tick_once(self) -> TickReport:
        """Advance every (source, facility) pair once; failures are isolated."""
        with self._tick_lock:
            start_time = time.perf_counter()
            self._tick_count += 1
            report = TickReport(tick=self._tick_count)

            for facility_id in self._facility_ids():
                for source in self.sources:
                    result = self._advance(source, facility_id)
                    if result.is_ok():
                        report.advanced += 1
                    else:
                        error = result.unwrap_err()
                        self.logger.error(
                            "source_advance_failed",
                            source=source.source_name,
                            facility_id=facility_id,
                            error=str(error),
                            exc_info=error,
                        )
                        report.failures.append(
                            TickFailure(
                                source=source.source_name,
                                facility_id=facility_id,
                                error=str(error),
                            )
                        )

            report.duration_seconds = round(time.perf_counter() - start_time, 6)
            self.logger.debug(
                "tick_completed",
                tick=report.tick,
                advanced=report.advanced,
                failed=len(report.failures),
                duration_seconds=report.duration_seconds,
            )
            return report

    @staticmethod
    def _advance(source: TickSource, facility_id: str) -> Result[str, Exception]:
        try:
            source.advance(facility_id)
        except Exception as e:
            return Result.err(e)
        return Result.ok(facility_id)

    @asynccontextmanager
    async def ticking_session(self) -> AsyncIterator["SimulationTicker"]:
        """Marks the ticker running for the duration of the block."""
        self.logger.info("ticking_session_started")
        self._is_running = True
        try:
            yield self
        finally:
            self._is_running = False
            self.logger.info("ticking_session_ended")

    async def run_continuously(self) -> AsyncIterator[TickReport]:
        """Tick on the configured interval while running, yielding each report."""
        self.logger.info(
            "ticking_started", interval_seconds=self.config.tick_interval_seconds
        )

        while self._is_running:
            tick_start_time = time.perf_counter()

            try:
                yield self.tick_once()
            except Exception as e:
                self.logger.exception("unexpected_tick_error", error=str(e))

            elapsed_time = time.perf_counter() - tick_start_time
            sleep_time = max(0, self.config.tick_interval_seconds - elapsed_time)

            if sleep_time > 0:
                await asyncio.sleep(sleep_time)
            else:
                self.logger.warning(
                    "tick_slower_than_interval",
                    elapsed_seconds=round(elapsed_time, 3),
                    interval_seconds=self.config.tick_interval_seconds,
                )

    def start_in_background(self) -> None:
        """Run the tick loop on a daemon thread with its own event loop."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Ticker already running")
        self._is_running = True
        self._thread = threading.Thread(
            target=lambda: asyncio.run(self._run_until_stopped()),
            name="simulation-ticker",
            daemon=True,
        )
        self._thread.start()

    async def _run_until_stopped(self) -> None:
        async for _report in self.run_continuously():
            pass

    def stop(self, timeout: float | None = None) -> None:
        """Stop the background loop and wait for the current tick to finish."""
        self._is_running = False
        if self._thread is not None:
            self._thread.join(timeout or self.config.tick_interval_seconds * 2 + 1)
            self._thread = None
        self.logger.info("ticker_stopped", ticks=self._tick_count)
