"""Data schemas for itineraries, scheduling and coherence reports."""

from __future__ import annotations

import re
import datetime as dt
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    PositiveInt,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from itinero.geomath import coerce_minutes, format_time, intervals_overlap, normalise_interval

ClockTime = Annotated[
    int,
    BeforeValidator(coerce_minutes),
    PlainSerializer(format_time, return_type=str),
]
"""Minutes since midnight, read from ``HH:MM`` and written back the same way."""

_MODEL_CONFIG = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class TripStructureError(ValueError):
    """Raised when a caller references trip structure that does not exist."""


class ItemCategory(str, Enum):
    ACTIVITY = "activity"
    RESTAURANT = "restaurant"
    HOTEL = "hotel"
    TRANSPORT = "transport"
    FLIGHT = "flight"
    PARKING = "parking"
    CHECKIN = "checkin"
    CHECKOUT = "checkout"
    LUGGAGE = "luggage"

    @property
    def is_logistics(self) -> bool:
        return self in _LOGISTICS

    @property
    def is_fixed_by_default(self) -> bool:
        """Logistics and hotel blocks are pinned to their given times."""

        return self.is_logistics or self is ItemCategory.HOTEL


_LOGISTICS = frozenset(
    {
        ItemCategory.FLIGHT,
        ItemCategory.TRANSPORT,
        ItemCategory.CHECKIN,
        ItemCategory.CHECKOUT,
        ItemCategory.PARKING,
        ItemCategory.LUGGAGE,
    }
)


class LegKind(str, Enum):
    """Role of a transport item: long-distance leg or local transfer."""

    MAIN = "main"
    TRANSFER = "transfer"


class DataReliability(str, Enum):
    VERIFIED = "verified"
    ESTIMATED = "estimated"
    GENERATED = "generated"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class IssueCategory(str, Enum):
    COHERENCE = "coherence"
    GEOGRAPHY = "geography"
    SCHEDULE = "schedule"


class TransportMode(str, Enum):
    PLANE = "plane"
    TRAIN = "train"
    BUS = "bus"
    CAR = "car"
    FERRY = "ferry"


def _slugify(value: str) -> str:
    """Generate a deterministic identifier from a title."""

    value = value.strip().lower()
    value = re.sub(r"[^a-z0-9]+", "-", value)
    value = re.sub(r"-+", "-", value)
    return value.strip("-")


def _category_of(raw: object) -> Optional[ItemCategory]:
    if isinstance(raw, ItemCategory):
        return raw
    if isinstance(raw, str) and raw in ItemCategory._value2member_map_:
        return ItemCategory(raw)
    return None


class _ItemBase(BaseModel):
    """Fields shared by every itinerary item, placed or not."""

    id: str = ""
    title: str
    category: ItemCategory = Field(
        default=ItemCategory.ACTIVITY,
        validation_alias=AliasChoices("category", "type"),
    )
    latitude: float = 0.0
    longitude: float = 0.0
    estimated_cost: Optional[float] = None
    data_reliability: Optional[DataReliability] = None
    location_name: Optional[str] = None

    model_config = _MODEL_CONFIG

    @model_validator(mode="before")
    @classmethod
    def _fill_identity(cls, data: object) -> object:
        """Derive a missing id from the title and default missing coordinates."""

        if not isinstance(data, dict):
            return data

        payload = dict(data)
        if not payload.get("id") and isinstance(payload.get("title"), str):
            payload["id"] = _slugify(payload["title"]) or "item"
        for key in ("latitude", "longitude"):
            if key in payload and payload[key] is None:
                payload[key] = 0.0
        return payload

    @property
    def coordinates(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


class ItemSpec(_ItemBase):
    """A flexible event waiting to be placed by the scheduler."""

    duration: int = Field(ge=0)
    travel_time: int = Field(default=0, ge=0)
    min_start_time: Optional[ClockTime] = None


class FixedItem(_ItemBase):
    """An immutable event such as a flight or a hotel check-in."""

    category: ItemCategory = Field(
        default=ItemCategory.TRANSPORT,
        validation_alias=AliasChoices("category", "type"),
    )
    start_time: ClockTime
    end_time: ClockTime
    leg: Optional[LegKind] = None

    @model_validator(mode="after")
    def _wrap_midnight(self) -> "FixedItem":
        self.start_time, self.end_time = normalise_interval(self.start_time, self.end_time)
        return self


class PlacedItem(_ItemBase):
    """An item bound to a concrete ``[start_time, end_time)`` interval."""

    start_time: ClockTime
    end_time: ClockTime
    fixed: bool = False
    travel_time: int = Field(default=0, ge=0)
    min_start_time: Optional[ClockTime] = None
    leg: Optional[LegKind] = None

    @model_validator(mode="before")
    @classmethod
    def _default_fixed(cls, data: object) -> object:
        """Pin logistics items unless the payload states otherwise."""

        if not isinstance(data, dict) or "fixed" in data:
            return data
        category = _category_of(data.get("category", data.get("type")))
        if category is None:
            return data
        payload = dict(data)
        payload["fixed"] = category.is_fixed_by_default
        return payload

    @model_validator(mode="after")
    def _wrap_midnight(self) -> "PlacedItem":
        self.start_time, self.end_time = normalise_interval(self.start_time, self.end_time)
        return self

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time

    def overlaps(self, other: "PlacedItem") -> bool:
        return intervals_overlap(self.start_time, self.end_time, other.start_time, other.end_time)

    @classmethod
    def from_spec(cls, spec: ItemSpec, start_time: int) -> "PlacedItem":
        """Place a flexible spec at ``start_time``."""

        return cls(
            id=spec.id,
            title=spec.title,
            category=spec.category,
            start_time=start_time,
            end_time=start_time + spec.duration,
            fixed=False,
            travel_time=spec.travel_time,
            min_start_time=spec.min_start_time,
            latitude=spec.latitude,
            longitude=spec.longitude,
            estimated_cost=spec.estimated_cost,
            data_reliability=spec.data_reliability,
            location_name=spec.location_name,
        )

    @classmethod
    def from_fixed(cls, item: FixedItem) -> "PlacedItem":
        return cls(
            id=item.id,
            title=item.title,
            category=item.category,
            start_time=item.start_time,
            end_time=item.end_time,
            fixed=True,
            leg=item.leg,
            latitude=item.latitude,
            longitude=item.longitude,
            estimated_cost=item.estimated_cost,
            data_reliability=item.data_reliability,
            location_name=item.location_name,
        )

    def to_spec(self, *, pinned: bool = False) -> ItemSpec:
        """Turn the item back into a spec so it can be scheduled again.

        With ``pinned`` the current start becomes the earliest allowed start.
        """

        min_start = self.min_start_time
        if pinned:
            min_start = self.start_time if min_start is None else max(min_start, self.start_time)
        return ItemSpec(
            id=self.id,
            title=self.title,
            category=self.category,
            duration=self.duration,
            travel_time=self.travel_time,
            min_start_time=min_start,
            latitude=self.latitude,
            longitude=self.longitude,
            estimated_cost=self.estimated_cost,
            data_reliability=self.data_reliability,
            location_name=self.location_name,
        )


def _coerce_date(value: object) -> object:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        return date.fromisoformat(candidate[:10])
    return value


class TripDay(BaseModel):
    """One calendar day of a trip with its placed items."""

    day_number: PositiveInt
    date: Optional[dt.date] = None
    items: List[PlacedItem] = Field(default_factory=list)
    theme: Optional[str] = None
    is_day_trip: bool = False
    day_trip_destination: Optional[str] = None
    day_start: Optional[ClockTime] = None
    day_end: Optional[ClockTime] = None

    model_config = _MODEL_CONFIG

    @field_validator("date", mode="before")
    @classmethod
    def _normalise_date(cls, value: object) -> object:
        return _coerce_date(value)

    def sorted_items(self) -> List[PlacedItem]:
        return sorted(self.items, key=lambda item: (item.start_time, item.end_time))


class Accommodation(BaseModel):
    name: str
    address: Optional[str] = None
    latitude: float = 0.0
    longitude: float = 0.0
    check_in_time: Optional[ClockTime] = None
    check_out_time: Optional[ClockTime] = None
    price_per_night: Optional[float] = None
    data_reliability: Optional[DataReliability] = None

    model_config = _MODEL_CONFIG


class Flight(BaseModel):
    flight_number: Optional[str] = None
    departure_airport: Optional[str] = None
    arrival_airport: Optional[str] = None
    departure_time: Optional[ClockTime] = None
    arrival_time: Optional[ClockTime] = None
    latitude: float = 0.0
    longitude: float = 0.0
    price: Optional[float] = None
    data_reliability: Optional[DataReliability] = None

    model_config = _MODEL_CONFIG


class TripPreferences(BaseModel):
    """Read-only trip context supplied by the caller."""

    origin: Optional[str] = None
    destination: str = ""
    duration_days: Optional[PositiveInt] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    model_config = _MODEL_CONFIG

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _normalise_dates(cls, value: object) -> object:
        return _coerce_date(value)


class Trip(BaseModel):
    """A multi-day itinerary together with its trip-level entities."""

    id: str = "trip"
    preferences: TripPreferences = Field(default_factory=TripPreferences)
    days: List[TripDay] = Field(default_factory=list)
    accommodation: Optional[Accommodation] = None
    outbound_flight: Optional[Flight] = None
    return_flight: Optional[Flight] = None

    model_config = _MODEL_CONFIG

    @model_validator(mode="before")
    @classmethod
    def _unwrap_common_wrappers(cls, data: object) -> object:
        """Accept payloads nested under ``trip`` or ``itinerary``."""

        if not isinstance(data, dict):
            return data

        candidate = data
        for key in ("trip", "itinerary"):
            while isinstance(candidate, dict):
                nested = candidate.get(key)
                if not isinstance(nested, dict):
                    break
                candidate = nested
        return candidate

    @field_validator("days")
    @classmethod
    def _unique_day_numbers(cls, days: List[TripDay]) -> List[TripDay]:
        seen: set[int] = set()
        for day in days:
            if day.day_number in seen:
                raise ValueError(f"Duplicate day number {day.day_number}")
            seen.add(day.day_number)
        return days

    def get_day(self, day_number: int) -> TripDay:
        for day in self.days:
            if day.day_number == day_number:
                return day
        raise TripStructureError(f"Trip {self.id!r} has no day {day_number}")

    def all_items(self) -> Iterable[Tuple[TripDay, PlacedItem]]:
        for day in self.days:
            for item in day.items:
                yield day, item


DetailValue = Union[float, int, str, bool]


class Issue(BaseModel):
    """One coherence, geography or schedule problem found in a trip."""

    code: str
    severity: Severity
    category: IssueCategory
    message: str
    day_number: Optional[int] = None
    item_title: Optional[str] = None
    item_ids: List[str] = Field(default_factory=list)
    details: Dict[str, DetailValue] = Field(default_factory=dict)

    model_config = _MODEL_CONFIG

    @property
    def kind(self) -> str:
        return self.code

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.CRITICAL


Violation = Issue


class CoherenceReport(BaseModel):
    valid: bool
    errors: List[Issue] = Field(default_factory=list)
    warnings: List[Issue] = Field(default_factory=list)

    model_config = _MODEL_CONFIG

    @property
    def violations(self) -> List[Issue]:
        return [*self.errors, *self.warnings]

    def codes(self) -> List[str]:
        return [issue.code for issue in self.violations]


class TripStats(BaseModel):
    days: int = 0
    items: int = 0
    activities: int = 0
    restaurants: int = 0
    average_items_per_day: float = 0.0
    total_estimated_cost: float = 0.0

    model_config = _MODEL_CONFIG


class TripReport(BaseModel):
    """Aggregated quality report for one trip."""

    trip_id: str
    score: float = Field(ge=0.0, le=100.0)
    critical: int = 0
    warnings: int = 0
    info: int = 0
    issues: List[Issue] = Field(default_factory=list)
    stats: TripStats = Field(default_factory=TripStats)

    model_config = _MODEL_CONFIG


class ScheduleConflict(BaseModel):
    first_id: str
    first_title: str
    second_id: str
    second_title: str
    overlap_minutes: int

    model_config = _MODEL_CONFIG


class ScheduleValidation(BaseModel):
    valid: bool
    conflicts: List[ScheduleConflict] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class FeasibilityResult(BaseModel):
    mode: TransportMode
    feasible: bool
    reason: Optional[str] = None
    requires_ferry: bool = False
    warning_distance: bool = False

    model_config = _MODEL_CONFIG


__all__ = [
    "Accommodation",
    "ClockTime",
    "CoherenceReport",
    "DataReliability",
    "FeasibilityResult",
    "FixedItem",
    "Flight",
    "Issue",
    "IssueCategory",
    "ItemCategory",
    "ItemSpec",
    "LegKind",
    "PlacedItem",
    "ScheduleConflict",
    "ScheduleValidation",
    "Severity",
    "TransportMode",
    "Trip",
    "TripDay",
    "TripPreferences",
    "TripReport",
    "TripStats",
    "TripStructureError",
    "Violation",
]
