"""
Alert aggregation across the four facility data sources.

Each call reads one snapshot per source, evaluates the rules in a fixed order
(environment, supplies, toilets, feedback) and returns freshly built alerts.
Nothing is persisted and nothing is deduplicated across calls.

Batching policy:
- environment: at most one alert per rule
- supplies: one alert per violated category, listing every low dispenser
- toilets: one alert listing every stall that needs cleaning
- feedback: one alert per report item
"""

import itertools
import threading
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from core.config import AlertThresholds
from core.domain.models import (
    Alert,
    AlertSeverity,
    AlertSource,
    EnvironmentReading,
    FeedbackItem,
    StallRoster,
    StallStatus,
    SupplyState,
)
from core.services.environment import EnvironmentSimulator
from core.services.feedback import FeedbackQueue
from core.services.supplies import SuppliesSimulator
from core.services.toilets import ToiletStatusStore

logger = structlog.get_logger(__name__)

SEVERITY_RANK: dict[AlertSeverity, int] = {
    AlertSeverity.CRITICAL: 0,
    AlertSeverity.WARNING: 1,
}


class AlertIdAllocator:
    """Process-wide unique alert ids, safe to call from any thread."""

    def __init__(self, prefix: str = "alert") -> None:
        self.prefix = prefix
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            return f"{self.prefix}-{next(self._counter)}"


def severity_rank(alert: Alert) -> int:
    return SEVERITY_RANK[alert.severity]


def sorted_by_severity(alerts: list[Alert]) -> list[Alert]:
    """Critical first; rule order is kept within a severity (sort is stable)."""
    return sorted(alerts, key=severity_rank)


class AlertAggregator:
    """Builds the merged alert list for one facility on demand."""

    def __init__(
        self,
        environment: EnvironmentSimulator,
        supplies: SuppliesSimulator,
        toilets: ToiletStatusStore,
        feedback: FeedbackQueue,
        thresholds: AlertThresholds | None = None,
        ids: AlertIdAllocator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.environment = environment
        self.supplies = supplies
        self.toilets = toilets
        self.feedback = feedback
        self.thresholds = thresholds or AlertThresholds()
        self.ids = ids or AlertIdAllocator()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.logger = logger.bind(component="alert_aggregator")

    def alerts_for(self, facility_id: str) -> list[Alert]:
        """Raises NotFoundError for an unknown facility."""
        roster = self.toilets.get(facility_id)
        reading = self.environment.current(facility_id)
        supplies = self.supplies.current(facility_id)
        reports = self.feedback.reports_for(facility_id)
        now = self._clock()

        alerts = [
            *self.environment_alerts(reading, now),
            *self.supply_alerts(supplies, now),
            *self.toilet_alerts(roster, now),
            *self.feedback_alerts(reports, now),
        ]

        self.logger.debug(
            "alerts_aggregated",
            facility_id=facility_id,
            total=len(alerts),
            critical=sum(1 for alert in alerts if alert.severity is AlertSeverity.CRITICAL),
        )
        return alerts

    def environment_alerts(self, reading: EnvironmentReading, now: datetime) -> list[Alert]:
        alerts = []
        if reading.is_ammonia_alert:
            alerts.append(
                self._alert(
                    f"Ammonia concentration critically high ({reading.ammonia} ppm), "
                    "ventilate immediately.",
                    AlertSeverity.CRITICAL,
                    AlertSource.ENVIRONMENT,
                    now,
                )
            )
        if reading.is_h2s_alert:
            alerts.append(
                self._alert(
                    f"Hydrogen sulfide above safe level ({reading.h2s} ppm), possible hazard.",
                    AlertSeverity.CRITICAL,
                    AlertSource.ENVIRONMENT,
                    now,
                )
            )
        if reading.temperature > self.thresholds.temperature_c:
            alerts.append(
                self._alert(
                    f"Indoor temperature too high ({reading.temperature}°C), "
                    "check the air conditioning.",
                    AlertSeverity.WARNING,
                    AlertSource.ENVIRONMENT,
                    now,
                )
            )
        return alerts

    def supply_alerts(self, supplies: SupplyState, now: datetime) -> list[Alert]:
        alerts = []
        low_paper = [
            name for name, level in supplies.paper.items() if level < self.thresholds.paper_percent
        ]
        if low_paper:
            alerts.append(
                self._alert(
                    f"Toilet paper low in stalls [{', '.join(low_paper)}], please restock.",
                    AlertSeverity.WARNING,
                    AlertSource.SUPPLIES,
                    now,
                )
            )
        low_soap = [
            name for name, level in supplies.soap.items() if level < self.thresholds.soap_percent
        ]
        if low_soap:
            alerts.append(
                self._alert(
                    f"Hand soap low at sinks [{', '.join(low_soap)}], please restock.",
                    AlertSeverity.WARNING,
                    AlertSource.SUPPLIES,
                    now,
                )
            )
        return alerts

    def toilet_alerts(self, roster: StallRoster, now: datetime) -> list[Alert]:
        dirty = [
            stall.id for stall in roster.all_stalls() if stall.status is StallStatus.NEEDS_CLEANING
        ]
        if not dirty:
            return []
        return [
            self._alert(
                f"Stalls [{', '.join(dirty)}] need cleaning.",
                AlertSeverity.WARNING,
                AlertSource.TOILETS,
                now,
            )
        ]

    def feedback_alerts(self, reports: list[FeedbackItem], now: datetime) -> list[Alert]:
        return [
            self._alert(
                f'Public report: "{item.content}"',
                AlertSeverity.WARNING,
                AlertSource.FEEDBACK,
                now,
            )
            for item in reports
        ]

    def _alert(
        self, message: str, severity: AlertSeverity, source: AlertSource, now: datetime
    ) -> Alert:
        return Alert(
            id=self.ids.next_id(),
            message=message,
            severity=severity,
            timestamp=now,
            source=source,
        )
