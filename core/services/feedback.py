"""
Public feedback channel: append-only, newest first.
"""

import itertools
import threading
from collections import deque
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

import structlog

from core.domain.models import FeedbackItem, FeedbackSubmission, FeedbackType

logger = structlog.get_logger(__name__)


class FeedbackQueue:
    """Serialized append, lock-free-for-callers reads of immutable items."""

    def __init__(
        self,
        items: Iterable[FeedbackItem] = (),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        seeded = sorted(items, key=lambda item: item.id, reverse=True)
        self._items: deque[FeedbackItem] = deque(seeded)
        self._ids = itertools.count(max((item.id for item in seeded), default=0) + 1)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()
        self.logger = logger.bind(component="feedback_queue")

    def append(self, submission: FeedbackSubmission) -> FeedbackItem:
        with self._lock:
            item = FeedbackItem(
                id=next(self._ids),
                type=submission.type,
                content=submission.content,
                rating=submission.rating,
                facility_id=submission.facility_id,
                time=self._clock(),
            )
            self._items.appendleft(item)

        self.logger.info(
            "feedback_received",
            feedback_id=item.id,
            feedback_type=item.type.value,
            facility_id=item.facility_id,
        )
        return item

    def list_items(self) -> list[FeedbackItem]:
        with self._lock:
            return list(self._items)

    def filter_by_type(self, feedback_type: FeedbackType) -> list[FeedbackItem]:
        return [item for item in self.list_items() if item.type is feedback_type]

    def reports_for(self, facility_id: str) -> list[FeedbackItem]:
        """Report items scoped to this facility, plus unscoped ones."""
        return [
            item
            for item in self.filter_by_type(FeedbackType.REPORT)
            if item.facility_id in (None, facility_id)
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
