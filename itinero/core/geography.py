"""Spatial plausibility checks for an assembled trip."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from itinero.geomath import (
    Coordinates,
    centroid,
    estimate_travel_minutes,
    haversine_km,
    is_geocoded,
    is_valid_coordinates,
    normalise_name,
    percentile,
    suggest_travel_mode,
)
from itinero.schemas import (
    DataReliability,
    Issue,
    IssueCategory,
    ItemCategory,
    PlacedItem,
    Severity,
    Trip,
    TripDay,
)

_LOGGER = logging.getLogger(__name__)

ACTIVITY_MAX_CENTER_KM = 30.0
RESTAURANT_MAX_CENTER_KM = 15.0
ACCOMMODATION_MAX_CENTER_KM = 10.0
VERY_LONG_LEG_KM = 20.0
URBAN_LONG_LEG_TARGET_KM = 2.5
URBAN_LONG_LEG_HARD_KM = 4.0
MAX_URBAN_LONG_LEGS = 1
IMPOSSIBLE_TRANSITION_KM = 5.0
IMPOSSIBLE_TRANSITION_GAP_MINUTES = 15
SAME_SPOT_KM = 0.05
OUTLIER_MIN_THRESHOLD_KM = 3.0
OUTLIER_PERCENTILE = 0.9
OUTLIER_MIN_POINTS = 3

_HOTEL_MEAL_MARKERS = ("a l'hotel", "at hotel", "at the hotel")


def is_hotel_meal(item: PlacedItem) -> bool:
    """Meals served at the accommodation are exempt from distance checks."""

    if item.category is not ItemCategory.RESTAURANT:
        return False
    title = normalise_name(item.title.replace("’", "'"))
    return any(marker in title for marker in _HOTEL_MEAL_MARKERS)


def _geo_issue(
    code: str,
    severity: Severity,
    message: str,
    *,
    day: Optional[TripDay] = None,
    item: Optional[PlacedItem] = None,
    item_ids: Sequence[str] = (),
    **details: object,
) -> Issue:
    return Issue(
        code=code,
        severity=severity,
        category=IssueCategory.GEOGRAPHY,
        message=message,
        day_number=day.day_number if day else None,
        item_title=item.title if item else None,
        item_ids=list(item_ids) or ([item.id] if item else []),
        details=details,
    )


class GeographyAnalyzer:
    """Flag places that are missing, far away or impossible to reach in time."""

    def analyze(self, trip: Trip) -> List[Issue]:
        issues: List[Issue] = []
        activity_center = self._activity_centroid(trip)
        center = self._reference_center(trip, activity_center)

        for day in trip.days:
            items = day.sorted_items()
            issues.extend(self._check_items(day, items, center))
            route = [item for item in items if not item.category.is_logistics and not is_hotel_meal(item)]
            issues.extend(self._check_legs(day, route))
            issues.extend(self._check_outliers(day, route))

        issues.extend(self._check_accommodation(trip, activity_center))
        issues.extend(self._check_reliability(trip))

        _LOGGER.debug("Geography check for trip %s: %d issue(s)", trip.id, len(issues))
        return issues

    @staticmethod
    def _activity_centroid(trip: Trip) -> Optional[Coordinates]:
        return centroid(
            item.coordinates
            for _, item in trip.all_items()
            if item.category is ItemCategory.ACTIVITY and is_geocoded(item.latitude, item.longitude)
        )

    @staticmethod
    def _reference_center(trip: Trip, activity_center: Optional[Coordinates]) -> Optional[Coordinates]:
        accommodation = trip.accommodation
        if accommodation is not None and is_geocoded(accommodation.latitude, accommodation.longitude):
            return (accommodation.latitude, accommodation.longitude)
        return activity_center

    def _check_items(self, day: TripDay, items: Sequence[PlacedItem], center: Optional[Coordinates]) -> List[Issue]:
        issues: List[Issue] = []
        for item in items:
            if item.category is ItemCategory.FLIGHT:
                continue

            if not is_geocoded(item.latitude, item.longitude):
                issues.append(
                    _geo_issue(
                        "GEO_NOT_GEOCODED",
                        Severity.CRITICAL,
                        f'Day {day.day_number}: "{item.title}" has coordinates (0, 0) and was never geocoded',
                        day=day,
                        item=item,
                    )
                )
                continue

            if not is_valid_coordinates(item.latitude, item.longitude):
                issues.append(
                    _geo_issue(
                        "GEO_INVALID_COORDINATES",
                        Severity.CRITICAL,
                        f'Day {day.day_number}: "{item.title}" has invalid coordinates '
                        f"({item.latitude}, {item.longitude})",
                        day=day,
                        item=item,
                    )
                )
                continue

            if center is None:
                continue
            distance = haversine_km(*center, item.latitude, item.longitude)
            if item.category is ItemCategory.ACTIVITY and not day.is_day_trip and distance > ACTIVITY_MAX_CENTER_KM:
                issues.append(
                    _geo_issue(
                        "GEO_FAR_FROM_CENTER",
                        Severity.WARNING,
                        f'Day {day.day_number}: "{item.title}" is {distance:.1f} km from the center',
                        day=day,
                        item=item,
                        distanceKm=round(distance, 1),
                    )
                )
            elif (
                item.category is ItemCategory.RESTAURANT
                and not is_hotel_meal(item)
                and distance > RESTAURANT_MAX_CENTER_KM
            ):
                issues.append(
                    _geo_issue(
                        "GEO_RESTAURANT_FAR_FROM_CENTER",
                        Severity.WARNING,
                        f'Day {day.day_number}: restaurant "{item.title}" is {distance:.1f} km from the center',
                        day=day,
                        item=item,
                        distanceKm=round(distance, 1),
                    )
                )
        return issues

    def _check_legs(self, day: TripDay, route: Sequence[PlacedItem]) -> List[Issue]:
        issues: List[Issue] = []
        long_legs = 0

        for current, following in zip(route, route[1:]):
            if not (
                is_geocoded(current.latitude, current.longitude)
                and is_geocoded(following.latitude, following.longitude)
            ):
                continue

            distance = haversine_km(current.latitude, current.longitude, following.latitude, following.longitude)
            if distance <= SAME_SPOT_KM and current.category is following.category:
                continue
            gap = following.start_time - current.end_time
            ids = (current.id, following.id)
            between = f'"{current.title}" and "{following.title}"'

            if distance > URBAN_LONG_LEG_TARGET_KM:
                long_legs += 1

            if not day.is_day_trip and distance > VERY_LONG_LEG_KM:
                issues.append(
                    _geo_issue(
                        "GEO_VERY_LONG_DAY_LEG",
                        Severity.WARNING,
                        f"Day {day.day_number}: {distance:.1f} km between {between}",
                        day=day,
                        item=following,
                        item_ids=ids,
                        distanceKm=round(distance, 1),
                        gapMinutes=gap,
                    )
                )

            if distance > IMPOSSIBLE_TRANSITION_KM and gap < IMPOSSIBLE_TRANSITION_GAP_MINUTES:
                mode = suggest_travel_mode(distance)
                issues.append(
                    _geo_issue(
                        "GEO_IMPOSSIBLE_TRANSITION",
                        Severity.CRITICAL,
                        f"Day {day.day_number}: {distance:.1f} km between {between} "
                        f"with only {gap} min to get there",
                        day=day,
                        item=following,
                        item_ids=ids,
                        distanceKm=round(distance, 1),
                        gapMinutes=gap,
                        travelMode=mode,
                        travelMinutes=estimate_travel_minutes(distance, mode),
                    )
                )

            if not day.is_day_trip and distance > URBAN_LONG_LEG_HARD_KM:
                issues.append(
                    _geo_issue(
                        "GEO_URBAN_HARD_LONG_LEG",
                        Severity.CRITICAL,
                        f"Day {day.day_number}: {distance:.1f} km urban leg between {between} "
                        f"(limit {URBAN_LONG_LEG_HARD_KM:g} km)",
                        day=day,
                        item=following,
                        item_ids=ids,
                        distanceKm=round(distance, 2),
                        thresholdKm=URBAN_LONG_LEG_HARD_KM,
                    )
                )

        if not day.is_day_trip and long_legs > MAX_URBAN_LONG_LEGS:
            issues.append(
                _geo_issue(
                    "GEO_URBAN_TOO_MANY_LONG_LEGS",
                    Severity.WARNING,
                    f"Day {day.day_number}: {long_legs} legs longer than {URBAN_LONG_LEG_TARGET_KM:g} km "
                    f"(at most {MAX_URBAN_LONG_LEGS})",
                    day=day,
                    longLegCount=long_legs,
                    thresholdKm=URBAN_LONG_LEG_TARGET_KM,
                )
            )
        return issues

    def _check_outliers(self, day: TripDay, route: Sequence[PlacedItem]) -> List[Issue]:
        located = [
            item
            for item in route
            if is_geocoded(item.latitude, item.longitude) and is_valid_coordinates(item.latitude, item.longitude)
        ]
        if len(located) < OUTLIER_MIN_POINTS:
            return []

        day_center = centroid(item.coordinates for item in located)
        if day_center is None:
            return []
        distances = [haversine_km(*day_center, item.latitude, item.longitude) for item in located]
        p90 = percentile(distances, OUTLIER_PERCENTILE)
        threshold = max(OUTLIER_MIN_THRESHOLD_KM, p90)

        issues: List[Issue] = []
        for item, distance in zip(located, distances):
            if distance <= threshold:
                continue
            issues.append(
                _geo_issue(
                    "GEO_DAY_OUTLIER",
                    Severity.WARNING,
                    f'Day {day.day_number}: "{item.title}" is {distance:.1f} km from the rest of the day',
                    day=day,
                    item=item,
                    distanceKm=round(distance, 2),
                    p90Km=round(p90, 2),
                    thresholdKm=round(threshold, 2),
                )
            )
        return issues

    @staticmethod
    def _check_accommodation(trip: Trip, activity_center: Optional[Coordinates]) -> List[Issue]:
        accommodation = trip.accommodation
        if accommodation is None:
            return []
        if not is_geocoded(accommodation.latitude, accommodation.longitude):
            return [
                _geo_issue(
                    "GEO_ACCOMMODATION_NOT_GEOCODED",
                    Severity.CRITICAL,
                    f'Accommodation "{accommodation.name}" has coordinates (0, 0)',
                )
            ]
        if activity_center is None:
            return []
        distance = haversine_km(*activity_center, accommodation.latitude, accommodation.longitude)
        if distance <= ACCOMMODATION_MAX_CENTER_KM:
            return []
        return [
            _geo_issue(
                "GEO_ACCOMMODATION_FAR",
                Severity.WARNING,
                f'Accommodation "{accommodation.name}" is {distance:.1f} km from the activities',
                distanceKm=round(distance, 1),
            )
        ]

    @staticmethod
    def _check_reliability(trip: Trip) -> List[Issue]:
        counts = {reliability: 0 for reliability in DataReliability}
        untagged = 0
        tags = [item.data_reliability for _, item in trip.all_items()]
        for entity in (trip.accommodation, trip.outbound_flight, trip.return_flight):
            if entity is not None:
                tags.append(entity.data_reliability)
        for tag in tags:
            if tag is None:
                untagged += 1
            else:
                counts[tag] += 1

        verified = counts[DataReliability.VERIFIED]
        estimated = counts[DataReliability.ESTIMATED]
        generated = counts[DataReliability.GENERATED]
        if generated <= verified + estimated:
            return []
        return [
            _geo_issue(
                "GEO_DATA_RELIABILITY_LOW",
                Severity.WARNING,
                f"Most coordinates are generated ({generated} generated vs {verified} verified "
                f"+ {estimated} estimated)",
                verified=verified,
                estimated=estimated,
                generated=generated,
                untagged=untagged,
            )
        ]


def analyze_geography(trip: Trip) -> List[Issue]:
    return GeographyAnalyzer().analyze(trip)


__all__ = [
    "GeographyAnalyzer",
    "analyze_geography",
    "is_hotel_meal",
]
