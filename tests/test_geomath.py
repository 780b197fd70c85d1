from __future__ import annotations

import pytest

from itinero.geomath import (
    centroid,
    coerce_minutes,
    estimate_travel_minutes,
    format_time,
    haversine_km,
    is_geocoded,
    is_valid_coordinates,
    normalise_interval,
    normalise_name,
    normalise_title,
    parse_time,
    percentile,
    suggest_travel_mode,
)

PARIS = (48.8566, 2.3522)
LONDON = (51.5074, -0.1278)


def test_haversine_is_symmetric_and_zero_on_identical_points() -> None:
    forward = haversine_km(*PARIS, *LONDON)
    backward = haversine_km(*LONDON, *PARIS)

    assert forward == pytest.approx(backward)
    assert haversine_km(*PARIS, *PARIS) == 0.0
    assert 340 < forward < 347


def test_parse_and_format_time() -> None:
    assert parse_time("09:05") == 545
    assert parse_time(" 23:59 ") == 23 * 60 + 59
    assert format_time(545) == "09:05"
    assert format_time(24 * 60 + 30) == "00:30"


@pytest.mark.parametrize("value", ["9h", "", "12:75", "noon"])
def test_parse_time_rejects_garbage(value: str) -> None:
    with pytest.raises(ValueError):
        parse_time(value)


def test_coerce_minutes_accepts_ints_and_strings() -> None:
    assert coerce_minutes(600) == 600
    assert coerce_minutes("10:00") == 600
    with pytest.raises(ValueError):
        coerce_minutes(-5)


def test_interval_crossing_midnight_is_comparable() -> None:
    start, end = normalise_interval(parse_time("23:45"), parse_time("00:30"))

    assert end - start == 45
    assert end > start


def test_percentile_uses_nearest_rank() -> None:
    values = [float(value) for value in range(1, 11)]

    assert percentile(values, 0.9) == 9.0
    assert percentile([5.0, 1.0, 3.0], 0.9) == 5.0
    assert percentile([5.0, 1.0, 3.0], 0.0) == 1.0
    assert percentile([], 0.9) == 0.0


def test_centroid_and_geocoding_helpers() -> None:
    assert centroid([]) is None
    assert centroid([(0.0, 0.0), (2.0, 4.0)]) == (1.0, 2.0)

    assert not is_geocoded(0.0, 0.0)
    assert not is_geocoded(None, 2.0)
    assert is_geocoded(0.0, 2.0)
    assert is_valid_coordinates(*PARIS)
    assert not is_valid_coordinates(95.0, 2.0)
    assert not is_valid_coordinates(45.0, 181.0)


def test_estimate_travel_minutes_adds_waiting_time() -> None:
    assert estimate_travel_minutes(1.0, "walking") == 12
    assert estimate_travel_minutes(3.0, "metro") == 11
    assert estimate_travel_minutes(0.1, "walking") == 5
    with pytest.raises(ValueError):
        estimate_travel_minutes(1.0, "teleport")


def test_suggest_travel_mode_by_distance() -> None:
    assert suggest_travel_mode(0.8) == "walking"
    assert suggest_travel_mode(4.0) == "metro"
    assert suggest_travel_mode(10.0) == "bus"
    assert suggest_travel_mode(40.0) == "car"


def test_name_normalisation() -> None:
    assert normalise_name("  Île-de-France ") == "ile-de-france"
    assert normalise_title("  Louvre   MUSEUM ") == "louvre museum"
