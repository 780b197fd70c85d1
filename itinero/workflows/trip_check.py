"""Validate, repair and analyse an assembled trip in one pass."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from itinero.core.autofix import AutoFixer
from itinero.core.coherence import CoherenceValidator
from itinero.core.geography import GeographyAnalyzer
from itinero.core.reporting import build_report, find_long_gaps
from itinero.schemas import CoherenceReport, Issue, Trip, TripReport

_LOGGER = logging.getLogger(__name__)


@dataclass
class TripCheckResult:
    """Everything learned about a trip during one check run."""

    original: Trip
    trip: Trip
    initial: CoherenceReport
    coherence: CoherenceReport
    geography: List[Issue] = field(default_factory=list)
    schedule: List[Issue] = field(default_factory=list)
    report: Optional[TripReport] = None
    fixed: bool = False

    @property
    def resolved(self) -> int:
        return len(self.initial.violations) - len(self.coherence.violations)


def _log_stage(stage: str, duration: float, *, issues: int) -> None:
    _LOGGER.info(
        "%s stage completed in %.3fs [issues=%d]",
        stage.capitalize(),
        duration,
        issues,
    )


def run_trip_check(
    trip: Trip,
    *,
    auto_fix: bool = True,
    validator: Optional[CoherenceValidator] = None,
    fixer: Optional[AutoFixer] = None,
    analyzer: Optional[GeographyAnalyzer] = None,
) -> TripCheckResult:
    """Run coherence validation, optional repair and geography analysis."""

    validator = validator or CoherenceValidator()
    analyzer = analyzer or GeographyAnalyzer()
    pipeline_start = time.perf_counter()
    _LOGGER.info("Starting trip check for %s (%d day(s))", trip.id, len(trip.days))

    start = time.perf_counter()
    initial = validator.validate(trip)
    _log_stage("validate", time.perf_counter() - start, issues=len(initial.violations))

    checked = trip
    coherence = initial
    if auto_fix and initial.violations:
        start = time.perf_counter()
        checked = (fixer or AutoFixer(validator)).fix(trip)
        coherence = validator.validate(checked)
        _log_stage("autofix", time.perf_counter() - start, issues=len(coherence.violations))
    elif auto_fix:
        _LOGGER.info("Autofix stage skipped: no coherence violations")

    start = time.perf_counter()
    geography = analyzer.analyze(checked)
    _log_stage("geography", time.perf_counter() - start, issues=len(geography))

    schedule = find_long_gaps(checked)
    report = build_report(checked, coherence, geography, schedule)

    _LOGGER.info(
        "Trip check completed in %.3fs: score %.1f, %d critical",
        time.perf_counter() - pipeline_start,
        report.score,
        report.critical,
    )
    return TripCheckResult(
        original=trip,
        trip=checked,
        initial=initial,
        coherence=coherence,
        geography=geography,
        schedule=schedule,
        report=report,
        fixed=checked is not trip,
    )


__all__ = ["TripCheckResult", "run_trip_check"]
