"""Command-line entry point for checking trips and transport options."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence, Tuple

from dotenv import load_dotenv
from pydantic import ValidationError

from itinero.core.exporters import trip_to_ics
from itinero.core.reporting import report_to_text
from itinero.core.transport import TransportFeasibilityChecker
from itinero.geomath import haversine_km
from itinero.schemas import Trip
from itinero.workflows.trip_check import run_trip_check

_LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ISSUES = 1
EXIT_BAD_INPUT = 2


def configure() -> None:
    """Load environment variables and set up logging."""

    load_dotenv()
    logging.basicConfig(
        level=os.getenv("ITINERO_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _coords(value: str) -> Tuple[float, float]:
    try:
        lat, lon = (float(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LAT,LON, got {value!r}") from None
    return lat, lon


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="itinero",
        description="Validate, repair and analyse travel itineraries.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    check = commands.add_parser("check", help="Run coherence and geography checks on a trip JSON file")
    check.add_argument("trip", type=Path, help="Path to the trip JSON file")
    check.add_argument("--no-fix", action="store_true", dest="no_fix", help="Report only, do not auto-fix")
    check.add_argument("--json", action="store_true", dest="as_json", help="Print the report as JSON")
    check.add_argument("--output", type=Path, default=None, help="Write the (repaired) trip JSON here")
    check.add_argument("--ics", type=Path, default=None, help="Write an iCalendar export here")

    transport = commands.add_parser("transport", help="List feasible transport modes between two places")
    transport.add_argument("origin")
    transport.add_argument("destination")
    transport.add_argument(
        "distance_km",
        type=float,
        nargs="?",
        default=None,
        help="Distance in km (computed from coordinates when omitted)",
    )
    transport.add_argument("--origin-coords", type=_coords, default=None, metavar="LAT,LON")
    transport.add_argument("--dest-coords", type=_coords, default=None, metavar="LAT,LON")
    return parser


def _load_trip(path: Path) -> Trip:
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    return Trip.model_validate(payload)


def _run_check(args: argparse.Namespace) -> int:
    try:
        trip = _load_trip(args.trip)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        print(f"error: cannot read trip {args.trip}: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT

    result = run_trip_check(trip, auto_fix=not args.no_fix)
    report = result.report
    if report is None:
        return EXIT_BAD_INPUT

    if args.as_json:
        print(report.model_dump_json(by_alias=True, indent=2))
    else:
        print(report_to_text(report), end="")
        if result.fixed:
            print(f"\nAuto-fix resolved {result.resolved} violation(s).")

    if args.output is not None:
        args.output.write_text(result.trip.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        _LOGGER.info("Wrote trip to %s", args.output)
    if args.ics is not None:
        args.ics.write_text(trip_to_ics(result.trip), encoding="utf-8", newline="")
        _LOGGER.info("Wrote calendar to %s", args.ics)

    return EXIT_ISSUES if report.critical else EXIT_OK


def _run_transport(args: argparse.Namespace) -> int:
    distance = args.distance_km
    if distance is None:
        if args.origin_coords is None or args.dest_coords is None:
            print("error: give a distance or both --origin-coords and --dest-coords", file=sys.stderr)
            return EXIT_BAD_INPUT
        distance = haversine_km(*args.origin_coords, *args.dest_coords)

    results = TransportFeasibilityChecker().check(
        args.origin,
        args.destination,
        distance,
        args.origin_coords,
        args.dest_coords,
    )
    print(f"{args.origin} -> {args.destination} ({distance:.0f} km)")
    for result in results:
        flags = []
        if result.requires_ferry:
            flags.append("ferry crossing")
        if result.warning_distance:
            flags.append("long distance")
        status = "yes" if result.feasible else "no"
        line = f"  {result.mode.value:<6} {status:<4}"
        if result.reason:
            line += f" {result.reason}"
        if flags:
            line += f" ({', '.join(flags)})"
        print(line.rstrip())
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure()
    args = _build_parser().parse_args(argv)
    if args.command == "check":
        return _run_check(args)
    return _run_transport(args)


if __name__ == "__main__":
    sys.exit(main())
