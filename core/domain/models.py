"""
Domain models for restroom facility monitoring.

These models represent the core business concepts and are framework-agnostic.
Snapshots are frozen so a published reading is never observed half-written.
Wire names are camelCase to match what the dashboard consumes.
"""

from collections.abc import Iterator
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class StallStatus(str, Enum):
    """Occupancy/cleanliness state of a single stall."""

    AVAILABLE = "available"
    OCCUPIED = "occupied"
    NEEDS_CLEANING = "needs_cleaning"


class Wing(str, Enum):
    """The two stall wings of a facility."""

    MALE = "male"
    FEMALE = "female"


class AlertSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class AlertSource(str, Enum):
    """Which data source produced an alert; drives icon rendering in the UI."""

    ENVIRONMENT = "environment"
    SUPPLIES = "supplies"
    TOILETS = "toilets"
    FEEDBACK = "feedback"


class FeedbackType(str, Enum):
    REPORT = "report"
    RATING = "rating"


class WireModel(BaseModel):
    """Base for every model that crosses the HTTP boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Stall(WireModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    status: StallStatus = StallStatus.AVAILABLE


class StallRoster(WireModel):
    """Stalls of one facility, split by wing."""

    model_config = ConfigDict(frozen=True)

    male: list[Stall] = Field(default_factory=list)
    female: list[Stall] = Field(default_factory=list)

    def wing(self, wing: Wing) -> list[Stall]:
        if wing is Wing.MALE:
            return self.male
        if wing is Wing.FEMALE:
            return self.female
        raise ValueError(f"Unknown wing: {wing}")

    def all_stalls(self) -> Iterator[Stall]:
        yield from self.male
        yield from self.female

    def stall_ids(self) -> list[str]:
        return [stall.id for stall in self.all_stalls()]


class Facility(WireModel):
    """A single restroom location. Owns its stalls exclusively."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    location: str = ""
    stalls: StallRoster = Field(default_factory=StallRoster)
    sinks: list[str] = Field(default_factory=lambda: ["sink1"])

    def summary(self) -> "FacilitySummary":
        return FacilitySummary(id=self.id, name=self.name, location=self.location)


class FacilitySummary(WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    location: str


class EnvironmentReading(WireModel):
    """Live environmental snapshot of one facility."""

    model_config = ConfigDict(frozen=True)

    temperature: float = Field(description="Degrees Celsius")
    humidity: float = Field(description="Relative humidity, percent")
    pm25: float = Field(description="PM2.5 in ug/m3")
    ammonia: float = Field(description="NH3 in ppm")
    h2s: float = Field(description="H2S in ppm")
    is_ammonia_alert: bool
    is_h2s_alert: bool


class SupplyState(WireModel):
    """Consumable levels and daily utility counters of one facility."""

    model_config = ConfigDict(frozen=True)

    paper: dict[str, float] = Field(default_factory=dict, description="Stall id -> percent")
    soap: dict[str, float] = Field(default_factory=dict, description="Sink id -> percent")
    water_usage: float = Field(default=0.0, ge=0.0, description="Litres today")
    power_usage: float = Field(default=0.0, ge=0.0, description="kWh today")

    @model_validator(mode="after")
    def levels_are_percentages(self) -> "SupplyState":
        for name, level in [*self.paper.items(), *self.soap.items()]:
            if not 0.0 <= level <= 100.0:
                raise ValueError(f"Dispenser {name} level {level} outside 0..100")
        return self


class FlowSeries(WireModel):
    """Per-gender visitor counts for today, index-aligned with the labels."""

    model_config = ConfigDict(frozen=True)

    time_labels: list[str]
    male: list[int]
    female: list[int]

    @model_validator(mode="after")
    def series_are_aligned(self) -> "FlowSeries":
        if not len(self.time_labels) == len(self.male) == len(self.female):
            raise ValueError("time_labels, male and female must have the same length")
        if any(count < 0 for count in [*self.male, *self.female]):
            raise ValueError("flow counts must be non-negative")
        return self


class Alert(WireModel):
    """Transient notification derived from current snapshots. Never persisted."""

    model_config = ConfigDict(frozen=True)

    id: str
    message: str
    severity: AlertSeverity
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    source: AlertSource


class FeedbackSubmission(WireModel):
    """Body of a public feedback post."""

    type: FeedbackType
    content: str = Field(min_length=1, max_length=1000)
    rating: float | None = Field(default=None, ge=0.0, le=5.0)
    facility_id: str | None = None

    @model_validator(mode="after")
    def content_not_blank(self) -> "FeedbackSubmission":
        if not self.content.strip():
            raise ValueError("content must not be blank")
        return self


class FeedbackItem(WireModel):
    model_config = ConfigDict(frozen=True)

    id: int
    type: FeedbackType
    content: str
    rating: float | None = None
    facility_id: str | None = None
    time: datetime = Field(default_factory=lambda: datetime.now(UTC))
