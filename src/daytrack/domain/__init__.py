"""Domain types."""

from daytrack.domain.errors import (
    InvalidOrderingError,
    NegativeDurationError,
    PersistenceError,
    SlotNotFoundError,
    TimelineError,
)
from daytrack.domain.timeline_types import (
    CATEGORIES,
    Category,
    DurationUnitStyle,
    Location,
    SmartGuess,
    TimelineItem,
    TimelineResult,
    TimeSlot,
)

__all__ = [
    "CATEGORIES",
    "Category",
    "DurationUnitStyle",
    "InvalidOrderingError",
    "Location",
    "NegativeDurationError",
    "PersistenceError",
    "SlotNotFoundError",
    "SmartGuess",
    "TimeSlot",
    "TimelineError",
    "TimelineItem",
    "TimelineResult",
]
