from __future__ import annotations

from typing import List

from itinero.core.coherence import (
    ACTIVITY_AFTER_HOTEL_CHECKOUT,
    ACTIVITY_BEFORE_ARRIVAL,
    ACTIVITY_BEFORE_HOTEL_CHECKIN,
    ACTIVITY_IMPOSSIBLE_HOUR,
    CHECKOUT_AFTER_TRANSFER,
    DUPLICATE_ATTRACTION,
    GENERIC_ACTIVITY,
    ILLOGICAL_SEQUENCE,
    MEAL_WRONG_ORDER,
    OVERLAP,
    CoherenceValidator,
    check_overlaps,
    find_inbound_block,
    is_generic_activity,
    is_main_leg,
    meal_kind,
    validate_trip_coherence,
)
from itinero.schemas import LegKind, PlacedItem, Severity, Trip, TripDay, TripPreferences


def _item(title: str, category: str, start: str, end: str, **extra: object) -> PlacedItem:
    return PlacedItem(title=title, category=category, start_time=start, end_time=end, **extra)


def _build_trip(*days: List[PlacedItem]) -> Trip:
    return Trip(
        id="paris-weekend",
        days=[TripDay(day_number=index, items=items) for index, items in enumerate(days, start=1)],
    )


def _build_clean_trip() -> Trip:
    return _build_trip(
        [
            _item("Flight AF1234", "flight", "08:00", "10:00"),
            _item("Taxi to hotel", "transport", "10:15", "10:45"),
            _item("Check-in Hotel Lutetia", "hotel", "11:00", "11:30"),
            _item("Louvre Museum", "activity", "12:00", "14:00"),
            _item("Lunch at Chez Janou", "restaurant", "14:15", "15:15"),
            _item("Dinner at Le Comptoir", "restaurant", "19:30", "21:00"),
        ],
        [
            _item("Breakfast at Cafe Kitsune", "restaurant", "08:30", "09:15"),
            _item("Musee d'Orsay", "activity", "10:00", "12:00"),
            _item("Hotel check-out", "checkout", "12:30", "13:00"),
            _item("Return flight", "flight", "15:00", "17:00"),
        ],
    )


def test_clean_trip_is_valid() -> None:
    report = validate_trip_coherence(_build_clean_trip())

    assert report.valid
    assert report.violations == []


def test_overlap_is_critical_with_overlap_minutes() -> None:
    trip = _build_trip(
        [
            _item("Louvre Museum", "activity", "10:00", "12:00"),
            _item("Tuileries walk", "activity", "11:30", "12:30"),
        ]
    )

    report = validate_trip_coherence(trip)

    assert not report.valid
    overlap = next(issue for issue in report.errors if issue.code == OVERLAP)
    assert overlap.details["overlapMinutes"] == 30
    assert overlap.item_ids == ["louvre-museum", "tuileries-walk"]


def test_activity_before_arrival_is_flagged() -> None:
    trip = _build_trip(
        [
            _item("Louvre Museum", "activity", "08:00", "09:00"),
            _item("Flight AF1234", "flight", "10:00", "12:00"),
        ]
    )

    report = validate_trip_coherence(trip)

    assert not report.valid
    issue = next(issue for issue in report.errors if issue.code == ACTIVITY_BEFORE_ARRIVAL)
    assert issue.severity is Severity.CRITICAL
    assert issue.day_number == 1
    assert issue.item_title == "Louvre Museum"


def test_activity_before_hotel_checkin_is_flagged() -> None:
    trip = _build_trip(
        [
            _item("Flight AF1234", "flight", "08:00", "10:00"),
            _item("Notre-Dame", "activity", "11:00", "13:00"),
            _item("Hotel check-in", "hotel", "14:00", "14:30"),
        ]
    )

    report = validate_trip_coherence(trip)

    assert report.codes() == [ACTIVITY_BEFORE_HOTEL_CHECKIN]


def test_transfer_before_arrival_is_an_illogical_sequence() -> None:
    trip = _build_trip(
        [
            _item("Flight AF1234", "flight", "10:00", "12:00"),
            _item("Taxi to hotel", "transport", "11:00", "11:30"),
        ]
    )

    report = validate_trip_coherence(trip)

    assert ILLOGICAL_SEQUENCE in report.codes()


def test_checkin_before_transfer_ends_is_an_illogical_sequence() -> None:
    trip = _build_trip(
        [
            _item("Flight AF1234", "flight", "08:00", "10:00"),
            _item("Shuttle to hotel", "transport", "10:00", "11:00"),
            _item("Hotel check-in", "hotel", "10:30", "11:30"),
        ]
    )

    report = validate_trip_coherence(trip)

    assert ILLOGICAL_SEQUENCE in report.codes()


def test_departure_on_last_day_is_not_treated_as_arrival() -> None:
    trip = _build_trip(
        [_item("Montmartre", "activity", "10:00", "12:00")],
        [
            _item("Sainte-Chapelle", "activity", "08:00", "09:00"),
            _item("Flight home", "flight", "12:00", "14:00"),
        ],
    )

    assert validate_trip_coherence(trip).valid


def test_meals_out_of_order_are_warnings() -> None:
    trip = _build_trip(
        [
            _item("Dinner at Bouillon Chartier", "restaurant", "12:00", "13:00"),
            _item("Lunch at Le Petit Cler", "restaurant", "19:00", "20:00"),
        ]
    )

    report = validate_trip_coherence(trip)

    assert report.valid
    assert report.codes() == [MEAL_WRONG_ORDER] * 3
    assert all(issue.severity is Severity.WARNING for issue in report.warnings)


def test_single_meal_is_never_reordered() -> None:
    trip = _build_trip([_item("Dinner at Septime", "restaurant", "12:00", "13:00")])

    assert validate_trip_coherence(trip).violations == []


def test_cross_day_duplicate_is_reported_once() -> None:
    trip = _build_trip(
        [_item("Louvre Museum", "activity", "10:00", "12:00")],
        [_item("louvre  museum", "activity", "10:00", "12:00")],
    )

    report = validate_trip_coherence(trip)

    assert len(report.errors) == 1
    issue = report.errors[0]
    assert issue.code == DUPLICATE_ATTRACTION
    assert issue.day_number == 2
    assert issue.details["firstDayNumber"] == 1


def test_same_day_duplicate_is_a_warning() -> None:
    trip = _build_trip(
        [
            _item("Eiffel Tower", "activity", "10:00", "11:00"),
            _item("Eiffel Tower", "activity", "15:00", "16:00"),
        ]
    )

    report = validate_trip_coherence(trip)

    assert report.valid
    assert report.codes() == [DUPLICATE_ATTRACTION]


def test_transfer_before_checkout_ends_is_flagged() -> None:
    trip = _build_trip(
        [_item("Montmartre", "activity", "10:00", "12:00")],
        [
            _item("Taxi to station", "transport", "10:45", "11:00"),
            _item("Hotel check-out", "checkout", "11:00", "11:30"),
        ],
    )

    report = validate_trip_coherence(trip)

    assert report.codes() == [CHECKOUT_AFTER_TRANSFER]


def test_sightseeing_before_seven_is_impossible() -> None:
    trip = _build_trip(
        [_item("Montmartre", "activity", "10:00", "12:00")],
        [
            _item("Sunrise hike", "activity", "05:30", "07:00"),
            _item("Flight home", "flight", "09:00", "11:00"),
        ],
    )

    report = validate_trip_coherence(trip)

    assert report.codes() == [ACTIVITY_IMPOSSIBLE_HOUR]
    assert report.errors[0].item_title == "Sunrise hike"


def test_validation_is_idempotent_and_read_only() -> None:
    trip = _build_trip(
        [
            _item("Louvre Museum", "activity", "09:00", "11:00"),
            _item("Flight AF1234", "flight", "10:00", "12:00"),
        ]
    )
    snapshot = trip.model_dump()
    validator = CoherenceValidator()

    first = validator.validate(trip)
    second = validator.validate(trip)

    assert first.model_dump() == second.model_dump()
    assert trip.model_dump() == snapshot


def test_validator_runs_only_the_given_rules() -> None:
    trip = _build_trip([_item("Sunrise hike", "activity", "05:30", "07:00")])

    assert CoherenceValidator(rules=[check_overlaps]).validate(trip).valid
    assert not CoherenceValidator().validate(trip).valid


def test_main_leg_and_meal_heuristics() -> None:
    assert is_main_leg(_item("Flight AF1234", "flight", "08:00", "10:00"))
    assert is_main_leg(_item("TGV Paris → Lyon", "transport", "08:00", "10:00"))
    assert is_main_leg(_item("Bus → Versailles", "transport", "08:00", "09:00"))
    assert not is_main_leg(_item("Taxi to hotel", "transport", "08:00", "08:30"))
    assert not is_main_leg(_item("Shuttle bus", "transport", "08:00", "08:30"))
    assert not is_main_leg(_item("Eurostar lounge shuttle", "transport", "08:00", "08:30", leg=LegKind.TRANSFER))
    assert not is_main_leg(_item("Train museum", "activity", "08:00", "09:00"))
    assert not is_main_leg(_item("Train to Versailles", "transport", "09:00", "09:45"))
    assert is_main_leg(_item("TGV to Lyon", "transport", "08:00", "10:00"), places=("lyon",))
    assert is_main_leg(_item("Train to Versailles", "transport", "09:00", "09:45", leg=LegKind.MAIN))

    assert meal_kind(_item("Petit-déjeuner au café", "restaurant", "08:00", "09:00")) == "breakfast"
    assert meal_kind(_item("Lunch at Chez Janou", "restaurant", "12:00", "13:00")) == "lunch"
    assert meal_kind(_item("Le Comptoir", "restaurant", "20:00", "21:00")) is None


def test_inbound_block_ignores_airport_checkin_before_flight() -> None:
    items = [
        _item("Airport check-in", "checkin", "07:00", "07:45"),
        _item("Flight AF1234", "flight", "08:00", "10:00"),
        _item("RER to city", "transport", "10:15", "11:00"),
        _item("Hotel check-in", "hotel", "11:15", "11:45"),
    ]

    block = find_inbound_block(items)

    assert block is not None
    assert block.arrival.title == "Flight AF1234"
    assert block.transfer.title == "RER to city"
    assert block.checkin.title == "Hotel check-in"
    assert block.end == 11 * 60 + 45


def test_local_rides_before_checkout_are_not_departures() -> None:
    trip = _build_trip(
        [_item("Montmartre", "activity", "10:00", "12:00")],
        [
            _item("Metro to Sacre-Coeur", "transport", "08:30", "09:00"),
            _item("Hotel check-out", "checkout", "11:00", "11:30"),
            _item("Taxi to airport", "transport", "12:00", "12:45"),
            _item("Flight home", "flight", "14:00", "16:00"),
        ],
    )

    assert validate_trip_coherence(trip).violations == []


def test_day_trip_train_is_not_the_arrival() -> None:
    trip = _build_trip(
        [
            _item("Louvre Museum", "activity", "08:00", "08:45"),
            _item("Train to Versailles", "transport", "09:00", "09:45"),
            _item("Palace of Versailles", "activity", "10:00", "13:00"),
        ]
    )

    assert validate_trip_coherence(trip).violations == []


def test_train_naming_the_destination_is_the_arrival() -> None:
    trip = Trip(
        id="lyon-weekend",
        preferences=TripPreferences(origin="Paris", destination="Lyon, France"),
        days=[
            TripDay(
                day_number=1,
                items=[
                    _item("Vieux Lyon walk", "activity", "09:00", "10:00"),
                    _item("TGV to Lyon", "transport", "10:00", "12:00"),
                ],
            )
        ],
    )

    assert validate_trip_coherence(trip).codes() == [ACTIVITY_BEFORE_ARRIVAL]


def test_flight_leaving_before_the_airport_transfer_arrives() -> None:
    trip = _build_trip(
        [_item("Montmartre", "activity", "10:00", "12:00")],
        [
            _item("Taxi to airport", "transport", "13:00", "14:30"),
            _item("Flight home", "flight", "14:00", "16:00"),
        ],
    )

    report = validate_trip_coherence(trip)

    sequence = next(issue for issue in report.errors if issue.code == ILLOGICAL_SEQUENCE)
    assert sequence.day_number == 2
    assert sequence.item_title == "Flight home"


def test_activity_running_past_checkout_is_critical() -> None:
    trip = _build_trip(
        [_item("Montmartre", "activity", "10:00", "12:00")],
        [
            _item("Hotel check-out", "checkout", "11:00", "11:30"),
            _item("Sainte-Chapelle", "activity", "12:00", "12:45"),
            _item("Flight home", "flight", "17:00", "19:00"),
        ],
    )

    report = validate_trip_coherence(trip)

    assert report.codes() == [ACTIVITY_AFTER_HOTEL_CHECKOUT]
    assert report.errors[0].item_title == "Sainte-Chapelle"


def test_activity_too_close_to_departure_is_a_warning() -> None:
    trip = _build_trip(
        [_item("Montmartre", "activity", "10:00", "12:00")],
        [
            _item("Canal Saint-Martin", "activity", "13:00", "14:45"),
            _item("Flight home", "flight", "15:00", "17:00"),
        ],
    )

    report = validate_trip_coherence(trip)

    assert report.valid
    assert report.codes() == [ACTIVITY_AFTER_HOTEL_CHECKOUT]
    assert report.warnings[0].details["marginMinutes"] == 15


def test_placeholder_activities_are_critical() -> None:
    trip = _build_trip(
        [
            _item("Louvre Museum", "activity", "10:00", "12:00"),
            _item("Pause café", "activity", "15:00", "15:30"),
            _item("Rooftop bar with a view", "activity", "21:00", "22:00"),
        ]
    )

    report = validate_trip_coherence(trip)

    assert report.codes() == [GENERIC_ACTIVITY, GENERIC_ACTIVITY]
    assert all(issue.severity is Severity.CRITICAL for issue in report.errors)
    assert is_generic_activity(_item("Marché de Noël", "activity", "10:00", "11:00"))
    assert is_generic_activity(_item("Bar à vins", "activity", "18:00", "19:00"))
    assert not is_generic_activity(_item("Bar à vins", "restaurant", "18:00", "19:00"))
    assert not is_generic_activity(_item("Louvre Museum", "activity", "10:00", "12:00"))
