"""
Location summaries over a time window.

aggregate() is the single routine behind both the daily and the monthly
email. A SummaryConfig decides the window length, which geocoding fields make
a record count as "geocoded", and whether the per-day breakdown is built.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from validation.validator import parse_iso8601

logger = logging.getLogger(__name__)

UNKNOWN_PLACE = "Unknown"


class Grouping(str, Enum):
    PLACE = "place"
    DAY = "day"


@dataclass(frozen=True)
class SummaryConfig:
    """Parameters of one summary variant."""
    variant: str
    window: timedelta
    grouping: Grouping
    inclusion_fields: Tuple[str, ...]
    subject_prefix: str
    utc_offset_hours: int = -8

    @property
    def tz(self) -> timezone:
        return timezone(timedelta(hours=self.utc_offset_hours))

    def with_offset(self, utc_offset_hours: int) -> "SummaryConfig":
        return replace(self, utc_offset_hours=utc_offset_hours)


DAILY = SummaryConfig(
    variant="daily",
    window=timedelta(hours=24),
    grouping=Grouping.PLACE,
    inclusion_fields=("country", "city"),
    subject_prefix="Daily Location Summary",
)

# Monthly counts a record as geocoded on country or state, daily on country or city
MONTHLY = SummaryConfig(
    variant="monthly",
    window=timedelta(days=30),
    grouping=Grouping.DAY,
    inclusion_fields=("country", "state"),
    subject_prefix="Monthly Location Summary",
)

SUMMARY_CONFIGS: Dict[str, SummaryConfig] = {
    DAILY.variant: DAILY,
    MONTHLY.variant: MONTHLY,
}


@dataclass
class PlaceVisit:
    name: str
    visit_count: int
    first_seen: datetime
    last_seen: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "visit_count": self.visit_count,
            "first_seen": self.first_seen.isoformat(),
            "last_seen": self.last_seen.isoformat(),
        }


@dataclass
class DailyActivity:
    day: date
    count: int
    places: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "count": self.count,
            "places": list(self.places),
        }


@dataclass
class LocationSummary:
    config: SummaryConfig
    start_time: datetime
    end_time: datetime
    total_locations: int
    geocoded_locations: int
    places: List[PlaceVisit] = field(default_factory=list)
    primary_location: Optional[PlaceVisit] = None
    days: List[DailyActivity] = field(default_factory=list)

    @property
    def variant(self) -> str:
        return self.config.variant

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant": self.variant,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "total_locations": self.total_locations,
            "geocoded_locations": self.geocoded_locations,
            "places": [p.to_dict() for p in self.places],
            "primary_location": self.primary_location.to_dict() if self.primary_location else None,
            "days": [d.to_dict() for d in self.days],
        }


def _is_geocoded(record: Mapping[str, Any], fields: Iterable[str]) -> bool:
    return any(record.get(f) for f in fields)


def place_key(record: Mapping[str, Any]) -> str:
    """Group key, e.g. "California, United States"; missing parts become Unknown."""
    return f"{record.get('state') or UNKNOWN_PLACE}, {record.get('country') or UNKNOWN_PLACE}"


def place_label(record: Mapping[str, Any]) -> str:
    """Short label for the per-day list: "State, Country" (country defaults to Unknown) or just the country."""
    state = record.get("state")
    if state:
        return f"{state}, {record.get('country') or UNKNOWN_PLACE}"
    return record.get("country") or ""


def _group_by_place(geocoded: List[Tuple[datetime, Mapping[str, Any]]]) -> List[PlaceVisit]:
    groups: Dict[str, PlaceVisit] = {}
    for ts, record in geocoded:
        key = place_key(record)
        visit = groups.get(key)
        if visit is None:
            groups[key] = PlaceVisit(name=key, visit_count=1, first_seen=ts, last_seen=ts)
            continue
        visit.visit_count += 1
        visit.first_seen = min(visit.first_seen, ts)
        visit.last_seen = max(visit.last_seen, ts)

    # sorted() is stable, so equal counts keep first-appearance order
    return sorted(groups.values(), key=lambda v: -v.visit_count)


def _group_by_day(
    geocoded: List[Tuple[datetime, Mapping[str, Any]]],
    tz: timezone,
) -> List[DailyActivity]:
    counts: Dict[date, int] = {}
    labels: Dict[date, set] = {}
    for ts, record in geocoded:
        day = ts.astimezone(tz).date()
        counts[day] = counts.get(day, 0) + 1
        label = place_label(record)
        if label:
            labels.setdefault(day, set()).add(label)

    return [
        DailyActivity(day=day, count=counts[day], places=sorted(labels.get(day, ())))
        for day in sorted(counts, reverse=True)
    ]


def aggregate(
    records: Iterable[Mapping[str, Any]],
    config: SummaryConfig,
    start: datetime,
    end: datetime,
) -> LocationSummary:
    """
    Summarise stored location documents for one window.

    Args:
        records: Stored documents as returned by LocationStore.query_range
        config: The summary variant
        start: Window start, in the variant's civil zone
        end: Window end, in the variant's civil zone

    Returns:
        LocationSummary; total_locations counts every record passed in
    """
    records = list(records)
    geocoded: List[Tuple[datetime, Mapping[str, Any]]] = []
    for record in records:
        if not _is_geocoded(record, config.inclusion_fields):
            continue
        try:
            ts = parse_iso8601(record.get("timestamp"))
        except ValueError:
            logger.warning("Skipping stored location with unreadable timestamp", extra={
                "extra_data": {"location_id": record.get("locationId")}
            })
            continue
        geocoded.append((ts, record))

    places = _group_by_place(geocoded)
    days = _group_by_day(geocoded, config.tz) if config.grouping == Grouping.DAY else []

    return LocationSummary(
        config=config,
        start_time=start,
        end_time=end,
        total_locations=len(records),
        geocoded_locations=len(geocoded),
        places=places,
        primary_location=places[0] if places else None,
        days=days,
    )
