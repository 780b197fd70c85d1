"""Temporal and logical plausibility checks for an assembled trip."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from itinero.geomath import MINUTES_PER_DAY, format_time, normalise_name, normalise_title
from itinero.schemas import (
    CoherenceReport,
    Issue,
    IssueCategory,
    ItemCategory,
    LegKind,
    PlacedItem,
    Severity,
    Trip,
    TripDay,
)

_LOGGER = logging.getLogger(__name__)

OVERLAP = "OVERLAP"
ACTIVITY_BEFORE_ARRIVAL = "ACTIVITY_BEFORE_ARRIVAL"
ACTIVITY_BEFORE_HOTEL_CHECKIN = "ACTIVITY_BEFORE_HOTEL_CHECKIN"
ACTIVITY_AFTER_HOTEL_CHECKOUT = "ACTIVITY_AFTER_HOTEL_CHECKOUT"
ILLOGICAL_SEQUENCE = "ILLOGICAL_SEQUENCE"
MEAL_WRONG_ORDER = "MEAL_WRONG_ORDER"
DUPLICATE_ATTRACTION = "DUPLICATE_ATTRACTION"
CHECKOUT_AFTER_TRANSFER = "CHECKOUT_AFTER_TRANSFER"
ACTIVITY_IMPOSSIBLE_HOUR = "ACTIVITY_IMPOSSIBLE_HOUR"
GENERIC_ACTIVITY = "GENERIC_ACTIVITY"

EARLIEST_REALISTIC_START = 7 * 60
# Activities must be over this long before a departure leg leaves.
DEPARTURE_MARGIN_MINUTES = 30

# Brand and mode words; a bare one only makes a main leg when the title names
# a route (arrow) or one of the trip's endpoints.
_MAIN_LEG_KEYWORDS = ("train", "tgv", "ouigo", "sncf", "eurostar", "flixbus", "blablacar", "ferry")
_ROAD_KEYWORDS = ("bus", "coach", "car", "drive", "voiture")
_ROUTE_ARROWS = ("→", "->")
_STATION_KEYWORDS = ("airport", "aeroport", "gare", "station")

# Filler titles a planner emits when it has nothing concrete to suggest.
_GENERIC_ACTIVITY_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"^pause caf",
        r"^shopping local",
        r"^quartier historique",
        r"^point de vue",
        r"^promenade digestive",
        r"^glace artisanale",
        r"^parc et jardins?",
        r"^marche de",
        r"^place centrale",
        r"^galerie d.art locale",
        r"^librairie.cafe",
        r"^aperitif local",
        r"^promenade nocturne",
        r"^bar a ",
        r"^rooftop bar",
        r"^jazz club",
        r"^coffee break",
        r"^local shopping",
        r"^historic (quarter|district|centre|center)",
        r"^scenic viewpoint",
        r"^local market",
        r"^main square",
        r"^local art gallery",
        r"^evening stroll",
    )
)

BREAKFAST = "breakfast"
LUNCH = "lunch"
DINNER = "dinner"
MEAL_ORDER = (BREAKFAST, LUNCH, DINNER)
_MEAL_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (BREAKFAST, ("breakfast", "petit-dejeuner", "petit dejeuner", "brunch")),
    (LUNCH, ("lunch", "dejeuner")),
    (DINNER, ("dinner", "diner", "supper")),
)
# Allowed start window per meal, minutes since midnight.
MEAL_BANDS: Dict[str, Tuple[int, int]] = {
    BREAKFAST: (0, 12 * 60),
    LUNCH: (11 * 60, 16 * 60),
    DINNER: (15 * 60, MINUTES_PER_DAY + 3 * 60),
}
# Start times used when meals have to be moved back into their band.
MEAL_DEFAULT_STARTS: Dict[str, int] = {
    BREAKFAST: 8 * 60,
    LUNCH: 12 * 60 + 30,
    DINNER: 19 * 60 + 30,
}

Rule = Callable[[Trip], Iterable[Issue]]


def trip_places(trip: Trip) -> Tuple[str, ...]:
    """Normalised names of the trip's origin and destination."""

    places = []
    for value in (trip.preferences.origin, trip.preferences.destination):
        if value:
            name = normalise_name(value.split(",")[0])
            if name:
                places.append(name)
    return tuple(places)


def _mentions(title: str, place: str) -> bool:
    return re.search(rf"\b{re.escape(place)}\b", title) is not None


def is_main_leg(item: PlacedItem, places: Sequence[str] = ()) -> bool:
    """Whether ``item`` is a flight or a long-distance leg between cities.

    Without an explicit ``leg``, a train or coach title only counts when it
    shows a route arrow or names one of ``places``; "Train to Versailles" is
    a local excursion.
    """

    if item.category is ItemCategory.FLIGHT:
        return True
    if item.category is not ItemCategory.TRANSPORT:
        return False
    if item.leg is not None:
        return item.leg is LegKind.MAIN
    title = normalise_name(item.title)
    has_arrow = any(arrow in title for arrow in _ROUTE_ARROWS)
    names_endpoint = any(_mentions(title, place) for place in places)
    if any(keyword in title for keyword in _MAIN_LEG_KEYWORDS):
        return has_arrow or names_endpoint
    return has_arrow and any(keyword in title.split() for keyword in _ROAD_KEYWORDS)


def is_transfer(item: PlacedItem, places: Sequence[str] = ()) -> bool:
    return item.category is ItemCategory.TRANSPORT and not is_main_leg(item, places)


def is_station_transfer(item: PlacedItem, places: Sequence[str] = ()) -> bool:
    """A local transfer heading to an airport or a railway station."""

    if not is_transfer(item, places):
        return False
    title = normalise_name(item.title)
    return any(keyword in title for keyword in _STATION_KEYWORDS)


def is_generic_activity(item: PlacedItem) -> bool:
    if item.category is not ItemCategory.ACTIVITY:
        return False
    title = normalise_name(item.title)
    return any(pattern.match(title) for pattern in _GENERIC_ACTIVITY_PATTERNS)


def meal_kind(item: PlacedItem) -> Optional[str]:
    """Classify a restaurant item as breakfast, lunch or dinner from its title."""

    if item.category is not ItemCategory.RESTAURANT:
        return None
    title = normalise_name(item.title)
    for kind, keywords in _MEAL_KEYWORDS:
        if any(keyword in title for keyword in keywords):
            return kind
    return None


def _is_leisure(item: PlacedItem) -> bool:
    return item.category in (ItemCategory.ACTIVITY, ItemCategory.RESTAURANT)


@dataclass(frozen=True)
class InboundBlock:
    """Arrival leg, optional local transfer and optional hotel check-in."""

    arrival: PlacedItem
    transfer: Optional[PlacedItem] = None
    checkin: Optional[PlacedItem] = None

    @property
    def end(self) -> int:
        return max(item.end_time for item in self.items)

    @property
    def items(self) -> List[PlacedItem]:
        return [item for item in (self.arrival, self.transfer, self.checkin) if item is not None]


def find_inbound_block(items: Sequence[PlacedItem], places: Sequence[str] = ()) -> Optional[InboundBlock]:
    """Locate the arrival block among a day's items, if there is one."""

    ordered = sorted(items, key=lambda item: item.start_time)
    arrival = next((item for item in ordered if is_main_leg(item, places)), None)
    if arrival is None:
        return None
    later = [item for item in ordered if item is not arrival and item.start_time >= arrival.start_time]
    transfer = next((item for item in later if is_transfer(item, places)), None)
    # Airport check-ins come before the flight, so only later ones are the hotel.
    checkin = next(
        (item for item in later if item.category in (ItemCategory.HOTEL, ItemCategory.CHECKIN)),
        None,
    )
    return InboundBlock(arrival=arrival, transfer=transfer, checkin=checkin)


def arrival_day_number(trip: Trip) -> Optional[int]:
    """The first day of the trip is the one the traveller arrives on."""

    if not trip.days:
        return None
    return min(day.day_number for day in trip.days)


def last_day(trip: Trip) -> Optional[TripDay]:
    if not trip.days:
        return None
    return max(trip.days, key=lambda day: day.day_number)


def inbound_block_for(trip: Trip, day: TripDay) -> Optional[InboundBlock]:
    if day.day_number != arrival_day_number(trip):
        return None
    return find_inbound_block(day.items, trip_places(trip))


def _inbound_ids(trip: Trip, day: TripDay) -> set[int]:
    block = inbound_block_for(trip, day)
    return {id(item) for item in block.items} if block else set()


def departure_leg(trip: Trip, day: TripDay) -> Optional[PlacedItem]:
    """The main leg leaving the destination, found on the last day only."""

    final = last_day(trip)
    if final is None or final.day_number != day.day_number:
        return None
    places = trip_places(trip)
    block = inbound_block_for(trip, day)
    inbound = {id(item) for item in block.items} if block else set()
    for item in day.sorted_items():
        if id(item) in inbound or not is_main_leg(item, places):
            continue
        if block is None or item.start_time >= block.end:
            return item
    return None


def _checkout(day: TripDay) -> Optional[PlacedItem]:
    return next((item for item in day.sorted_items() if item.category is ItemCategory.CHECKOUT), None)


def activity_deadline(trip: Trip, day: TripDay) -> Optional[int]:
    """Latest end for sightseeing on the last day, if anything bounds it."""

    final = last_day(trip)
    if final is None or final.day_number != day.day_number:
        return None
    limits = []
    checkout = _checkout(day)
    if checkout is not None:
        limits.append(checkout.start_time)
    departure = departure_leg(trip, day)
    if departure is not None:
        limits.append(departure.start_time - DEPARTURE_MARGIN_MINUTES)
    return min(limits) if limits else None


def _issue(
    code: str,
    severity: Severity,
    message: str,
    day: Optional[TripDay],
    items: Sequence[PlacedItem],
    **details: object,
) -> Issue:
    return Issue(
        code=code,
        severity=severity,
        category=IssueCategory.COHERENCE,
        message=message,
        day_number=day.day_number if day else None,
        item_title=items[-1].title if items else None,
        item_ids=[item.id for item in items],
        details=details,
    )


def check_overlaps(trip: Trip) -> Iterable[Issue]:
    for day in trip.days:
        ordered = day.sorted_items()
        for index, first in enumerate(ordered):
            for second in ordered[index + 1 :]:
                if first.overlaps(second):
                    yield _issue(
                        OVERLAP,
                        Severity.CRITICAL,
                        f'"{first.title}" ({format_time(first.start_time)}-{format_time(first.end_time)}) '
                        f'overlaps "{second.title}" ({format_time(second.start_time)}-'
                        f"{format_time(second.end_time)})",
                        day,
                        (first, second),
                        overlapMinutes=min(first.end_time, second.end_time) - second.start_time,
                    )


def check_arrival_sequence(trip: Trip) -> Iterable[Issue]:
    for day in trip.days:
        block = inbound_block_for(trip, day)
        if block is None:
            continue
        arrival = block.arrival

        if block.transfer is not None and block.transfer.start_time < arrival.end_time:
            yield _issue(
                ILLOGICAL_SEQUENCE,
                Severity.CRITICAL,
                f'Transfer "{block.transfer.title}" starts at {format_time(block.transfer.start_time)}, '
                f"before the arrival at {format_time(arrival.end_time)}",
                day,
                (arrival, block.transfer),
            )
        if block.checkin is not None:
            previous = block.transfer or arrival
            if block.checkin.start_time < previous.end_time:
                yield _issue(
                    ILLOGICAL_SEQUENCE,
                    Severity.CRITICAL,
                    f'Hotel check-in "{block.checkin.title}" starts at '
                    f"{format_time(block.checkin.start_time)}, before \"{previous.title}\" ends at "
                    f"{format_time(previous.end_time)}",
                    day,
                    (previous, block.checkin),
                )

        for item in day.sorted_items():
            if not _is_leisure(item):
                continue
            if item.start_time < arrival.end_time:
                yield _issue(
                    ACTIVITY_BEFORE_ARRIVAL,
                    Severity.CRITICAL,
                    f'"{item.title}" starts at {format_time(item.start_time)}, before the arrival '
                    f"at {format_time(arrival.end_time)}",
                    day,
                    (arrival, item),
                )
            elif block.checkin is not None and item.start_time < block.checkin.end_time:
                yield _issue(
                    ACTIVITY_BEFORE_HOTEL_CHECKIN,
                    Severity.CRITICAL,
                    f'"{item.title}" starts at {format_time(item.start_time)}, before the hotel '
                    f"check-in ends at {format_time(block.checkin.end_time)}",
                    day,
                    (block.checkin, item),
                )


def check_meal_order(trip: Trip) -> Iterable[Issue]:
    for day in trip.days:
        meals = [(meal_kind(item), item) for item in day.sorted_items()]
        classified = [(kind, item) for kind, item in meals if kind is not None]
        if len(classified) < 2:
            continue

        for index, (kind, item) in enumerate(classified):
            for other_kind, other in classified[index + 1 :]:
                if MEAL_ORDER.index(kind) > MEAL_ORDER.index(other_kind):
                    yield _issue(
                        MEAL_WRONG_ORDER,
                        Severity.WARNING,
                        f'{kind.capitalize()} "{item.title}" at {format_time(item.start_time)} comes '
                        f'before {other_kind} "{other.title}" at {format_time(other.start_time)}',
                        day,
                        (item, other),
                    )

        for kind, item in classified:
            band_start, band_end = MEAL_BANDS[kind]
            if not band_start <= item.start_time < band_end:
                yield _issue(
                    MEAL_WRONG_ORDER,
                    Severity.WARNING,
                    f'{kind.capitalize()} "{item.title}" is scheduled at {format_time(item.start_time)}',
                    day,
                    (item,),
                    expectedFrom=format_time(band_start),
                )


def check_duplicate_attractions(trip: Trip) -> Iterable[Issue]:
    seen: Dict[str, Tuple[TripDay, PlacedItem]] = {}
    for day in trip.days:
        for item in day.sorted_items():
            if item.category is not ItemCategory.ACTIVITY:
                continue
            key = normalise_title(item.title)
            if not key:
                continue
            if key not in seen:
                seen[key] = (day, item)
                continue
            first_day, first_item = seen[key]
            same_day = first_day.day_number == day.day_number
            yield _issue(
                DUPLICATE_ATTRACTION,
                Severity.WARNING if same_day else Severity.CRITICAL,
                f'"{item.title}" appears on day {first_day.day_number} and again on day {day.day_number}',
                day,
                (first_item, item),
                firstDayNumber=first_day.day_number,
            )


def _is_departure_logistics(item: PlacedItem, places: Sequence[str]) -> bool:
    return is_main_leg(item, places) or is_station_transfer(item, places)


def check_checkout_departure(trip: Trip) -> Iterable[Issue]:
    places = trip_places(trip)
    for day in trip.days:
        checkout = _checkout(day)
        if checkout is None:
            continue
        inbound = _inbound_ids(trip, day)
        for item in day.sorted_items():
            if id(item) in inbound or not _is_departure_logistics(item, places):
                continue
            if item.start_time < checkout.end_time:
                yield _issue(
                    CHECKOUT_AFTER_TRANSFER,
                    Severity.CRITICAL,
                    f'Departure "{item.title}" starts at {format_time(item.start_time)}, before '
                    f"check-out ends at {format_time(checkout.end_time)}",
                    day,
                    (checkout, item),
                )


def check_departure_sequence(trip: Trip) -> Iterable[Issue]:
    """The last day's transfer to the airport or station must end before the leg leaves."""

    day = last_day(trip)
    if day is None:
        return
    departure = departure_leg(trip, day)
    if departure is None:
        return
    places = trip_places(trip)
    inbound = _inbound_ids(trip, day)
    transfer = next(
        (
            item
            for item in day.sorted_items()
            if id(item) not in inbound and is_station_transfer(item, places)
        ),
        None,
    )
    if transfer is not None and departure.start_time < transfer.end_time:
        yield _issue(
            ILLOGICAL_SEQUENCE,
            Severity.CRITICAL,
            f'"{departure.title}" leaves at {format_time(departure.start_time)}, before transfer '
            f'"{transfer.title}" arrives at {format_time(transfer.end_time)}',
            day,
            (transfer, departure),
        )


def check_activities_after_checkout(trip: Trip) -> Iterable[Issue]:
    day = last_day(trip)
    if day is None:
        return
    checkout = _checkout(day)
    departure = departure_leg(trip, day)
    for item in day.sorted_items():
        if item.category is not ItemCategory.ACTIVITY:
            continue
        if checkout is not None and item.end_time > checkout.start_time:
            yield _issue(
                ACTIVITY_AFTER_HOTEL_CHECKOUT,
                Severity.CRITICAL,
                f'"{item.title}" ends at {format_time(item.end_time)}, after check-out starts '
                f"at {format_time(checkout.start_time)}",
                day,
                (checkout, item),
            )
        elif departure is not None and item.end_time > departure.start_time - DEPARTURE_MARGIN_MINUTES:
            yield _issue(
                ACTIVITY_AFTER_HOTEL_CHECKOUT,
                Severity.WARNING,
                f'"{item.title}" ends at {format_time(item.end_time)}, less than '
                f'{DEPARTURE_MARGIN_MINUTES} min before "{departure.title}" leaves at '
                f"{format_time(departure.start_time)}",
                day,
                (departure, item),
                marginMinutes=departure.start_time - item.end_time,
            )


def check_generic_activities(trip: Trip) -> Iterable[Issue]:
    for day in trip.days:
        for item in day.sorted_items():
            if is_generic_activity(item):
                yield _issue(
                    GENERIC_ACTIVITY,
                    Severity.CRITICAL,
                    f'"{item.title}" is a placeholder, not a concrete activity',
                    day,
                    (item,),
                )


def check_realistic_hours(trip: Trip) -> Iterable[Issue]:
    for day in trip.days:
        for item in day.sorted_items():
            if item.category.is_fixed_by_default:
                continue
            if item.start_time % MINUTES_PER_DAY < EARLIEST_REALISTIC_START:
                yield _issue(
                    ACTIVITY_IMPOSSIBLE_HOUR,
                    Severity.CRITICAL,
                    f'"{item.title}" is scheduled at {format_time(item.start_time)}, '
                    "too early for sightseeing",
                    day,
                    (item,),
                )


DEFAULT_RULES: Tuple[Rule, ...] = (
    check_overlaps,
    check_arrival_sequence,
    check_meal_order,
    check_duplicate_attractions,
    check_checkout_departure,
    check_departure_sequence,
    check_activities_after_checkout,
    check_realistic_hours,
    check_generic_activities,
)


class CoherenceValidator:
    """Run every coherence rule over a trip and split errors from warnings."""

    def __init__(self, rules: Optional[Sequence[Rule]] = None) -> None:
        self.rules: Tuple[Rule, ...] = tuple(rules) if rules is not None else DEFAULT_RULES

    def validate(self, trip: Trip) -> CoherenceReport:
        errors: List[Issue] = []
        warnings: List[Issue] = []
        for rule in self.rules:
            for issue in rule(trip):
                (errors if issue.is_error else warnings).append(issue)

        _LOGGER.debug(
            "Coherence check for trip %s: %d error(s), %d warning(s)",
            trip.id,
            len(errors),
            len(warnings),
        )
        return CoherenceReport(valid=not errors, errors=errors, warnings=warnings)


def validate_trip_coherence(trip: Trip) -> CoherenceReport:
    return CoherenceValidator().validate(trip)


__all__ = [
    "ACTIVITY_AFTER_HOTEL_CHECKOUT",
    "ACTIVITY_BEFORE_ARRIVAL",
    "ACTIVITY_BEFORE_HOTEL_CHECKIN",
    "ACTIVITY_IMPOSSIBLE_HOUR",
    "CHECKOUT_AFTER_TRANSFER",
    "CoherenceValidator",
    "DEFAULT_RULES",
    "DEPARTURE_MARGIN_MINUTES",
    "DUPLICATE_ATTRACTION",
    "GENERIC_ACTIVITY",
    "ILLOGICAL_SEQUENCE",
    "InboundBlock",
    "MEAL_BANDS",
    "MEAL_DEFAULT_STARTS",
    "MEAL_ORDER",
    "MEAL_WRONG_ORDER",
    "OVERLAP",
    "activity_deadline",
    "arrival_day_number",
    "check_activities_after_checkout",
    "check_arrival_sequence",
    "check_checkout_departure",
    "check_departure_sequence",
    "check_duplicate_attractions",
    "check_generic_activities",
    "check_meal_order",
    "check_overlaps",
    "check_realistic_hours",
    "departure_leg",
    "find_inbound_block",
    "inbound_block_for",
    "is_generic_activity",
    "is_main_leg",
    "is_station_transfer",
    "is_transfer",
    "last_day",
    "meal_kind",
    "trip_places",
    "validate_trip_coherence",
]
