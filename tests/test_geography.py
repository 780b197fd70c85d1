from __future__ import annotations

from typing import List, Optional

from itinero.core.geography import GeographyAnalyzer, analyze_geography, is_hotel_meal
from itinero.schemas import Accommodation, DataReliability, Flight, PlacedItem, Trip, TripDay

PARIS = (48.8566, 2.3522)
# Roughly 1 km of latitude.
KM = 0.009


def _item(
    title: str,
    start: str,
    end: str,
    lat: float,
    lon: float,
    category: str = "activity",
    reliability: Optional[DataReliability] = None,
) -> PlacedItem:
    return PlacedItem(
        title=title,
        category=category,
        start_time=start,
        end_time=end,
        latitude=lat,
        longitude=lon,
        data_reliability=reliability,
    )


def _build_trip(items: List[PlacedItem], *, is_day_trip: bool = False, **trip_fields: object) -> Trip:
    return Trip(
        id="paris",
        days=[TripDay(day_number=1, items=items, is_day_trip=is_day_trip)],
        **trip_fields,
    )


def _codes(trip: Trip) -> List[str]:
    return [issue.code for issue in analyze_geography(trip)]


def test_empty_trip_has_no_issues() -> None:
    assert GeographyAnalyzer().analyze(Trip()) == []


def test_short_gap_over_long_distance_is_impossible() -> None:
    lat, lon = PARIS
    rushed = _build_trip(
        [
            _item("Louvre Museum", "10:00", "12:00", lat, lon),
            _item("Parc Montsouris", "12:10", "13:00", lat - 6 * KM, lon),
        ]
    )
    relaxed = _build_trip(
        [
            _item("Louvre Museum", "10:00", "12:00", lat, lon),
            _item("Parc Montsouris", "12:20", "13:00", lat - 6 * KM, lon),
        ]
    )

    issues = analyze_geography(rushed)

    impossible = next(issue for issue in issues if issue.code == "GEO_IMPOSSIBLE_TRANSITION")
    assert impossible.details["gapMinutes"] == 10
    assert 5.5 < impossible.details["distanceKm"] < 6.5
    assert impossible.item_ids == ["louvre-museum", "parc-montsouris"]
    assert impossible.details["travelMode"] == "bus"
    assert impossible.details["travelMinutes"] > impossible.details["gapMinutes"]
    assert "GEO_URBAN_HARD_LONG_LEG" in _codes(rushed)
    assert "GEO_IMPOSSIBLE_TRANSITION" not in _codes(relaxed)


def test_missing_and_invalid_coordinates_are_critical() -> None:
    lat, lon = PARIS
    trip = _build_trip(
        [
            _item("Flight AF1234", "08:00", "10:00", 0.0, 0.0, category="flight"),
            _item("Mystery bistro", "12:00", "13:00", 0.0, 0.0, category="restaurant"),
            _item("Broken pin", "14:00", "15:00", 95.0, lon),
            _item("Louvre Museum", "16:00", "18:00", lat, lon),
        ]
    )

    codes = _codes(trip)

    assert codes.count("GEO_NOT_GEOCODED") == 1
    assert "GEO_INVALID_COORDINATES" in codes


def test_far_places_are_warnings_except_on_day_trips_and_hotel_meals() -> None:
    lat, lon = PARIS
    items = [
        _item("Louvre Museum", "10:00", "12:00", lat, lon),
        _item("Chateau de Fontainebleau", "14:00", "17:00", 48.4047, 2.7016),
        _item("Dinner at La Ferme", "19:00", "20:30", lat + 20 * KM, lon, category="restaurant"),
        _item("Dinner at the hotel", "21:00", "22:00", lat + 20 * KM, lon, category="restaurant"),
    ]
    hotel = Accommodation(name="Hotel Lutetia", latitude=lat, longitude=lon)

    codes = _codes(_build_trip(items, accommodation=hotel))
    day_trip_codes = _codes(_build_trip(items, is_day_trip=True, accommodation=hotel))

    assert codes.count("GEO_FAR_FROM_CENTER") == 1
    assert codes.count("GEO_RESTAURANT_FAR_FROM_CENTER") == 1
    assert "GEO_FAR_FROM_CENTER" not in day_trip_codes
    assert "GEO_VERY_LONG_DAY_LEG" in codes
    assert "GEO_VERY_LONG_DAY_LEG" not in day_trip_codes


def test_too_many_long_urban_legs() -> None:
    lat, lon = PARIS
    trip = _build_trip(
        [
            _item("Arc de Triomphe", "09:00", "10:00", lat, lon),
            _item("Trocadero", "10:30", "11:30", lat + 3 * KM, lon),
            _item("Sacre-Coeur", "12:00", "13:00", lat + 6 * KM, lon),
        ]
    )

    issues = analyze_geography(trip)

    too_many = next(issue for issue in issues if issue.code == "GEO_URBAN_TOO_MANY_LONG_LEGS")
    assert too_many.details["longLegCount"] == 2
    assert "GEO_URBAN_HARD_LONG_LEG" not in [issue.code for issue in issues]


def test_day_outlier_needs_enough_points() -> None:
    lat, lon = PARIS
    cluster = [
        _item(f"Stop {index}", f"{8 + index:02d}:00", f"{8 + index:02d}:30", lat + index * 0.0005, lon)
        for index in range(9)
    ]
    outlier = _item("Far stop", "18:00", "18:30", lat + 20 * KM, lon)

    crowded = analyze_geography(_build_trip([*cluster, outlier]))
    sparse = analyze_geography(_build_trip([*cluster[:2], outlier]))

    flagged = [issue.item_title for issue in crowded if issue.code == "GEO_DAY_OUTLIER"]
    assert flagged == ["Far stop"]
    assert "GEO_DAY_OUTLIER" not in [issue.code for issue in sparse]


def test_accommodation_checks() -> None:
    lat, lon = PARIS
    items = [_item("Louvre Museum", "10:00", "12:00", lat, lon)]

    missing = _codes(_build_trip(items, accommodation=Accommodation(name="Hotel X")))
    far = _codes(
        _build_trip(items, accommodation=Accommodation(name="Airport hotel", latitude=lat + 20 * KM, longitude=lon))
    )

    assert missing == ["GEO_ACCOMMODATION_NOT_GEOCODED"]
    assert "GEO_ACCOMMODATION_FAR" in far


def test_mostly_generated_data_is_flagged() -> None:
    lat, lon = PARIS
    generated = DataReliability.GENERATED
    items = [
        _item("Louvre Museum", "10:00", "12:00", lat, lon, reliability=generated),
        _item("Tuileries", "12:15", "13:00", lat, lon + 0.002, reliability=generated),
        _item("Orangerie", "13:15", "14:00", lat, lon + 0.004, reliability=generated),
    ]
    flight = Flight(flight_number="AF1234", data_reliability=DataReliability.VERIFIED)

    issues = analyze_geography(_build_trip(items, outbound_flight=flight))

    low = next(issue for issue in issues if issue.code == "GEO_DATA_RELIABILITY_LOW")
    assert low.details["generated"] == 3
    assert low.details["verified"] == 1


def test_hotel_meal_detection() -> None:
    assert is_hotel_meal(_item("Dîner à l’hôtel", "20:00", "21:00", 0, 0, category="restaurant"))
    assert not is_hotel_meal(_item("Dinner at the hotel", "20:00", "21:00", 0, 0))


def test_same_spot_moves_are_not_legs() -> None:
    lat, lon = PARIS
    trip = _build_trip(
        [
            _item("Louvre Museum", "10:00", "12:00", lat, lon),
            _item("Louvre Pyramid", "12:00", "12:30", lat + 0.0004, lon),
        ]
    )

    codes = _codes(trip)

    assert not [code for code in codes if "LEG" in code or code == "GEO_IMPOSSIBLE_TRANSITION"]
