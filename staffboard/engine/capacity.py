import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from staffboard.models.entities import CapacitySnapshot

logger = logging.getLogger(__name__)

AVAILABLE_NOW_TEXT = "Today"
UNKNOWN_DATE_TEXT = "N/A"

HIGH_BAND_THRESHOLD = 80
MEDIUM_BAND_THRESHOLD = 50

DateLike = Union[date, datetime, str, None]


class DivisionUndefined(ArithmeticError):
    """Utilization requested against a non-positive capacity ceiling."""


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_utilization(total_allocated: float, max_capacity: float) -> int:
    """Percentage of the ceiling already committed. Not clamped: may exceed 100."""
    if max_capacity is None or max_capacity <= 0:
        raise DivisionUndefined(f"max_capacity must be positive, got {max_capacity!r}")
    return _round_half_up(total_allocated / max_capacity * 100)


def utilization_or_default(total_allocated: float, max_capacity: float, default: int = 0) -> int:
    try:
        return compute_utilization(total_allocated, max_capacity)
    except DivisionUndefined:
        logger.warning(f"Cannot compute utilization with max_capacity={max_capacity!r}, using {default}")
        return default


def clamp_for_display(pct: float) -> int:
    return int(min(max(pct, 0), 100))


def utilization_band(pct: float) -> str:
    if pct > HIGH_BAND_THRESHOLD:
        return "high"
    if pct > MEDIUM_BAND_THRESHOLD:
        return "medium"
    return "low"


@dataclass(frozen=True)
class UtilizationReading:
    raw_pct: int
    display_pct: int
    overallocated: bool
    band: str

    @classmethod
    def from_pct(cls, raw_pct: int) -> "UtilizationReading":
        display = clamp_for_display(raw_pct)
        return cls(
            raw_pct=raw_pct,
            display_pct=display,
            overallocated=raw_pct > 100,
            band=utilization_band(display),
        )

    @classmethod
    def measure(cls, total_allocated: float, max_capacity: float) -> "UtilizationReading":
        return cls.from_pct(utilization_or_default(total_allocated, max_capacity))


def _coerce_date(value: DateLike) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        # Backend sends ISO timestamps, often with a trailing Z
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
    except (ValueError, AttributeError):
        logger.warning(f"Unparsable availability date {value!r}")
        return None


def format_calendar_date(value: date) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def availability_text(utilization_pct: float, next_available_date: DateLike) -> str:
    """Available now below 100% utilization, otherwise the next free date."""
    if utilization_pct < 100:
        return AVAILABLE_NOW_TEXT
    available_on = _coerce_date(next_available_date)
    if available_on is None:
        return UNKNOWN_DATE_TEXT
    return format_calendar_date(available_on)


def zero_capacity(engineer_id: str, max_capacity: float = 100) -> CapacitySnapshot:
    return CapacitySnapshot(
        engineer_id=engineer_id,
        total_allocated=0.0,
        available_capacity=0.0,
        max_capacity=max_capacity,
    )
