"""Deterministic rules deciding which transport modes can link two places."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from itinero.geomath import normalise_name
from itinero.schemas import FeasibilityResult, TransportMode

_LOGGER = logging.getLogger(__name__)

MIN_FLIGHT_DISTANCE_KM = 100.0
LONG_CAR_DISTANCE_KM = 1500.0
MAX_CAR_DISTANCE_KM = 3000.0
LONG_TRAIN_DISTANCE_KM = 2500.0
LONG_BUS_DISTANCE_KM = 1200.0
MAX_BUS_DISTANCE_KM = 2000.0


@dataclass(frozen=True)
class IslandGroup:
    name: str
    places: Tuple[str, ...]
    ferry_from_mainland: bool
    plane_only: bool = False


ISLAND_GROUPS: Tuple[IslandGroup, ...] = (
    IslandGroup(
        "Corsica",
        ("ajaccio", "bastia", "calvi", "porto-vecchio", "bonifacio", "corte", "corse", "corsica"),
        ferry_from_mainland=True,
    ),
    IslandGroup(
        "Sardinia",
        ("cagliari", "sassari", "olbia", "alghero", "sardegna", "sardinia"),
        ferry_from_mainland=True,
    ),
    IslandGroup(
        "Sicily",
        ("palermo", "catania", "messina", "syracuse", "siracusa", "taormina", "sicilia", "sicily"),
        ferry_from_mainland=True,
    ),
    IslandGroup(
        "Balearic Islands",
        ("mallorca", "palma de mallorca", "palma", "menorca", "ibiza", "formentera", "balearic"),
        ferry_from_mainland=True,
    ),
    IslandGroup(
        "Greek Islands",
        (
            "crete",
            "heraklion",
            "chania",
            "santorini",
            "mykonos",
            "rhodes",
            "corfu",
            "zakynthos",
            "kos",
            "thira",
        ),
        ferry_from_mainland=True,
    ),
    IslandGroup(
        "Canary Islands",
        ("tenerife", "gran canaria", "las palmas", "lanzarote", "fuerteventura", "canary"),
        ferry_from_mainland=False,
        plane_only=True,
    ),
    IslandGroup("Madeira", ("madeira", "funchal"), ferry_from_mainland=False, plane_only=True),
    IslandGroup(
        "Azores",
        ("azores", "ponta delgada", "angra do heroismo"),
        ferry_from_mainland=False,
        plane_only=True,
    ),
    # Served by ferry from Sicily.
    IslandGroup("Malta", ("malta", "valletta", "gozo"), ferry_from_mainland=True),
)

GREAT_BRITAIN_CITIES: Tuple[str, ...] = (
    "london",
    "manchester",
    "birmingham",
    "edinburgh",
    "glasgow",
    "liverpool",
    "bristol",
    "leeds",
    "sheffield",
    "cardiff",
    "belfast",
    "oxford",
    "cambridge",
    "brighton",
    "york",
    "bath",
    "nottingham",
    "newcastle",
)

# Mainland stations with a direct Channel Tunnel rail service.
CHANNEL_TUNNEL_CITIES: Tuple[str, ...] = (
    "paris",
    "brussels",
    "bruxelles",
    "amsterdam",
    "lille",
    "rotterdam",
)

# Across the Atlantic, recognised by name when coordinates are missing. Several
# contain a British city name and must win over it.
AMERICAS_PLACES: Tuple[str, ...] = (
    "new york",
    "new london",
    "new castle",
    "new orleans",
    "chicago",
    "montreal",
    "toronto",
    "los angeles",
    "san francisco",
    "miami",
    "mexico city",
    "rio de janeiro",
    "sao paulo",
    "buenos aires",
)

# Reached by a very short strait crossing with through trains and coaches.
SHORT_STRAIT_PLACES: Tuple[str, ...] = ("messina",)

GREAT_BRITAIN = "Great Britain"
AMERICAS = "Americas"

Coords = Tuple[float, float]


def _tokens(value: str) -> Tuple[str, ...]:
    return tuple(re.findall(r"[a-z0-9]+", normalise_name(value)))


def _contains_phrase(tokens: Sequence[str], phrase: Sequence[str]) -> bool:
    width = len(phrase)
    if not width:
        return False
    return any(
        tuple(tokens[index : index + width]) == tuple(phrase) for index in range(len(tokens) - width + 1)
    )


# Longest phrases first, so "las palmas" wins over "palma".
_PLACE_INDEX: Tuple[Tuple[Tuple[str, ...], str], ...] = tuple(
    sorted(
        [
            *((_tokens(place), group.name) for group in ISLAND_GROUPS for place in group.places),
            *((_tokens(place), GREAT_BRITAIN) for place in GREAT_BRITAIN_CITIES),
            *((_tokens(place), AMERICAS) for place in AMERICAS_PLACES),
        ],
        key=lambda entry: -len(entry[0]),
    )
)


def _matches(name: str, candidates: Sequence[str]) -> bool:
    """Whether ``name`` contains one of ``candidates`` as whole words."""

    tokens = _tokens(name)
    return any(_contains_phrase(tokens, _tokens(candidate)) for candidate in candidates)


def _region_of(place: str) -> Optional[str]:
    """Region of the longest known phrase found in ``place``."""

    tokens = _tokens(place)
    for phrase, region in _PLACE_INDEX:
        if _contains_phrase(tokens, phrase):
            return region
    return None


def find_island_group(place: str) -> Optional[IslandGroup]:
    """Return the island group ``place`` belongs to, if any."""

    region = _region_of(place)
    return next((group for group in ISLAND_GROUPS if group.name == region), None)


def is_great_britain(place: str) -> bool:
    return _region_of(place) == GREAT_BRITAIN


def continent_of(coords: Coords) -> str:
    """Coarse continent banding from latitude and longitude."""

    lat, lon = coords
    if lon < -30:
        return "americas"
    if lon > 45 and lat > 0:
        return "asia"
    if lat < 35 and -10 < lon <= 45:
        return "africa"
    return "europe"


def crosses_ocean(
    origin_coords: Optional[Coords],
    dest_coords: Optional[Coords],
    origin: str = "",
    destination: str = "",
) -> bool:
    """Compare continents by coordinates, or by known place names without them."""

    if origin_coords is not None and dest_coords is not None:
        return continent_of(origin_coords) != continent_of(dest_coords)
    return (_region_of(origin) == AMERICAS) != (_region_of(destination) == AMERICAS)


def _result(mode: TransportMode, feasible: bool, reason: Optional[str] = None, **flags: bool) -> FeasibilityResult:
    return FeasibilityResult(mode=mode, feasible=feasible, reason=reason, **flags)


class TransportFeasibilityChecker:
    """Decide which of plane, train, bus, car and ferry can link two places.

    Results always come back in that order, one per mode.
    """

    def check(
        self,
        origin: str,
        destination: str,
        distance_km: float,
        origin_coords: Optional[Coords] = None,
        dest_coords: Optional[Coords] = None,
    ) -> List[FeasibilityResult]:
        origin_island = find_island_group(origin)
        dest_island = find_island_group(destination)

        if crosses_ocean(origin_coords, dest_coords, origin, destination):
            reason = "Ocean crossing, flight required"
            results = self._plane_only(reason, "No ferry service across oceans")
        elif (origin_island and origin_island.plane_only) or (dest_island and dest_island.plane_only):
            island = next(group for group in (origin_island, dest_island) if group and group.plane_only)
            results = self._plane_only(
                f"{island.name} is too remote, flight only",
                f"{island.name} has no mainland ferry service",
            )
        elif (origin_island or dest_island) and not (
            origin_island and dest_island and origin_island.name == dest_island.name
        ):
            results = self._island_route(origin, destination, distance_km, origin_island, dest_island)
        elif is_great_britain(origin) != is_great_britain(destination):
            results = self._channel_route(origin, destination, distance_km)
        else:
            results = self._mainland_route(distance_km)

        _LOGGER.debug(
            "Feasible modes %s -> %s (%.0f km): %s",
            origin,
            destination,
            distance_km,
            ", ".join(result.mode.value for result in results if result.feasible) or "none",
        )
        return results

    def feasible_modes(
        self,
        origin: str,
        destination: str,
        distance_km: float,
        origin_coords: Optional[Coords] = None,
        dest_coords: Optional[Coords] = None,
    ) -> List[TransportMode]:
        return [
            result.mode
            for result in self.check(origin, destination, distance_km, origin_coords, dest_coords)
            if result.feasible
        ]

    @staticmethod
    def _plane_only(reason: str, ferry_reason: str) -> List[FeasibilityResult]:
        return [
            _result(TransportMode.PLANE, True),
            _result(TransportMode.TRAIN, False, reason),
            _result(TransportMode.BUS, False, reason),
            _result(TransportMode.CAR, False, reason),
            _result(TransportMode.FERRY, False, ferry_reason),
        ]

    @staticmethod
    def _plane(distance_km: float) -> FeasibilityResult:
        if distance_km < MIN_FLIGHT_DISTANCE_KM:
            return _result(TransportMode.PLANE, False, "Distance too short for a flight")
        return _result(TransportMode.PLANE, True)

    def _island_route(
        self,
        origin: str,
        destination: str,
        distance_km: float,
        origin_island: Optional[IslandGroup],
        dest_island: Optional[IslandGroup],
    ) -> List[FeasibilityResult]:
        short_strait = _matches(origin, SHORT_STRAIT_PLACES) or _matches(destination, SHORT_STRAIT_PLACES)
        ferry = bool(
            (origin_island and origin_island.ferry_from_mainland)
            or (dest_island and dest_island.ferry_from_mainland)
        )
        return [
            self._plane(distance_km),
            _result(
                TransportMode.TRAIN,
                short_strait,
                None if short_strait else "No rail link to the island",
                requires_ferry=short_strait,
            ),
            _result(
                TransportMode.BUS,
                short_strait,
                None if short_strait else "No road link to the island",
                requires_ferry=short_strait,
            ),
            _result(
                TransportMode.CAR,
                ferry,
                None if ferry else "No ferry service for vehicles",
                requires_ferry=ferry,
                warning_distance=ferry and distance_km > LONG_CAR_DISTANCE_KM,
            ),
            _result(TransportMode.FERRY, ferry, None if ferry else "No ferry service on this route"),
        ]

    def _channel_route(self, origin: str, destination: str, distance_km: float) -> List[FeasibilityResult]:
        tunnel_rail = (is_great_britain(origin) and _matches(destination, CHANNEL_TUNNEL_CITIES)) or (
            _matches(origin, CHANNEL_TUNNEL_CITIES) and is_great_britain(destination)
        )
        return [
            self._plane(distance_km),
            _result(
                TransportMode.TRAIN,
                tunnel_rail,
                None if tunnel_rail else "No direct rail link across the Channel from here",
            ),
            _result(TransportMode.BUS, False, "No direct bus service across the Channel"),
            # Tunnel shuttle or cross-channel ferry.
            _result(
                TransportMode.CAR,
                True,
                requires_ferry=True,
                warning_distance=distance_km > LONG_CAR_DISTANCE_KM,
            ),
            _result(TransportMode.FERRY, True),
        ]

    def _mainland_route(self, distance_km: float) -> List[FeasibilityResult]:
        if distance_km > LONG_TRAIN_DISTANCE_KM:
            train = _result(
                TransportMode.TRAIN,
                True,
                "Very long train journey, consider flying",
                warning_distance=True,
            )
        else:
            train = _result(TransportMode.TRAIN, True)

        if distance_km > MAX_BUS_DISTANCE_KM:
            bus = _result(TransportMode.BUS, False, "Distance too far for bus travel")
        else:
            bus = _result(TransportMode.BUS, True, warning_distance=distance_km > LONG_BUS_DISTANCE_KM)

        if distance_km > MAX_CAR_DISTANCE_KM:
            car = _result(TransportMode.CAR, False, "Distance too far to drive")
        else:
            car = _result(TransportMode.CAR, True, warning_distance=distance_km > LONG_CAR_DISTANCE_KM)

        ferry = _result(TransportMode.FERRY, False, "No ferry needed for a mainland route")
        return [self._plane(distance_km), train, bus, car, ferry]


def check_transport_feasibility(
    origin: str,
    destination: str,
    distance_km: float,
    origin_coords: Optional[Coords] = None,
    dest_coords: Optional[Coords] = None,
) -> List[FeasibilityResult]:
    """Shortcut for :meth:`TransportFeasibilityChecker.check`."""

    return TransportFeasibilityChecker().check(origin, destination, distance_km, origin_coords, dest_coords)


__all__ = [
    "AMERICAS_PLACES",
    "CHANNEL_TUNNEL_CITIES",
    "GREAT_BRITAIN_CITIES",
    "ISLAND_GROUPS",
    "IslandGroup",
    "TransportFeasibilityChecker",
    "check_transport_feasibility",
    "continent_of",
    "crosses_ocean",
    "find_island_group",
    "is_great_britain",
]
