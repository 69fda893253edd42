"""Built-in facility roster used when the record store is empty."""

from core.domain.models import Facility, Stall, StallRoster, StallStatus


def _wing(prefix: str, count: int, dirty: tuple[int, ...] = ()) -> list[Stall]:
    return [
        Stall(
            id=f"{prefix}{n}",
            status=StallStatus.NEEDS_CLEANING if n in dirty else StallStatus.AVAILABLE,
        )
        for n in range(1, count + 1)
    ]


def default_facilities() -> list[Facility]:
    return [
        Facility(
            id="r1",
            name="Central Plaza Restroom",
            location="Central Plaza, north entrance",
            stalls=StallRoster(male=_wing("r1-m", 4), female=_wing("r1-f", 5, dirty=(2,))),
            sinks=["r1-sink1", "r1-sink2"],
        ),
        Facility(
            id="r2",
            name="Riverside Park Restroom",
            location="Riverside Park, east gate",
            stalls=StallRoster(male=_wing("r2-m", 3), female=_wing("r2-f", 3)),
            sinks=["r2-sink1"],
        ),
        Facility(
            id="r3",
            name="Transit Hub Restroom",
            location="Bus terminal, level 1",
            stalls=StallRoster(male=_wing("r3-m", 6, dirty=(1, 4)), female=_wing("r3-f", 6)),
            sinks=["r3-sink1", "r3-sink2", "r3-sink3"],
        ),
    ]
