"""Scoring and plain-text summaries of trip quality issues."""

from __future__ import annotations

from typing import Iterable, List, Sequence

from itinero.geomath import format_time
from itinero.schemas import (
    CoherenceReport,
    Issue,
    IssueCategory,
    ItemCategory,
    Severity,
    Trip,
    TripReport,
    TripStats,
)

LONG_GAP_MINUTES = 180

_SEVERITY_PENALTY = {
    Severity.CRITICAL: 8.0,
    Severity.WARNING: 3.0,
    Severity.INFO: 0.5,
}


def find_long_gaps(trip: Trip, *, threshold_minutes: int = LONG_GAP_MINUTES) -> List[Issue]:
    """Report idle stretches between consecutive items longer than the threshold."""

    issues: List[Issue] = []
    for day in trip.days:
        ordered = day.sorted_items()
        for current, following in zip(ordered, ordered[1:]):
            gap = following.start_time - current.end_time
            if gap <= threshold_minutes:
                continue
            issues.append(
                Issue(
                    code="SCHEDULE_LONG_GAP",
                    severity=Severity.INFO,
                    category=IssueCategory.SCHEDULE,
                    message=(
                        f'Day {day.day_number}: {gap} min free between "{current.title}" '
                        f'({format_time(current.end_time)}) and "{following.title}" '
                        f"({format_time(following.start_time)})"
                    ),
                    day_number=day.day_number,
                    item_title=following.title,
                    item_ids=[current.id, following.id],
                    details={"gapMinutes": gap},
                )
            )
    return issues


def score_issues(issues: Iterable[Issue]) -> float:
    """100 minus a per-severity penalty, never below zero."""

    penalty = sum(_SEVERITY_PENALTY[issue.severity] for issue in issues)
    return max(0.0, round(100.0 - penalty, 1))


def trip_stats(trip: Trip) -> TripStats:
    items = [item for _, item in trip.all_items()]
    cost = sum(item.estimated_cost or 0.0 for item in items)
    if trip.accommodation and trip.accommodation.price_per_night:
        cost += trip.accommodation.price_per_night * max(len(trip.days) - 1, 1)
    for flight in (trip.outbound_flight, trip.return_flight):
        if flight is not None and flight.price:
            cost += flight.price
    return TripStats(
        days=len(trip.days),
        items=len(items),
        activities=sum(1 for item in items if item.category is ItemCategory.ACTIVITY),
        restaurants=sum(1 for item in items if item.category is ItemCategory.RESTAURANT),
        average_items_per_day=round(len(items) / len(trip.days), 1) if trip.days else 0.0,
        total_estimated_cost=round(cost, 2),
    )


def build_report(
    trip: Trip,
    coherence: CoherenceReport,
    geography: Sequence[Issue] = (),
    extra: Sequence[Issue] = (),
) -> TripReport:
    """Combine coherence, geography and schedule findings into one scored report."""

    issues = [*coherence.violations, *geography, *extra]
    return TripReport(
        trip_id=trip.id,
        score=score_issues(issues),
        critical=sum(1 for issue in issues if issue.severity is Severity.CRITICAL),
        warnings=sum(1 for issue in issues if issue.severity is Severity.WARNING),
        info=sum(1 for issue in issues if issue.severity is Severity.INFO),
        issues=issues,
        stats=trip_stats(trip),
    )


def report_to_text(report: TripReport) -> str:
    lines = [
        f"Trip {report.trip_id}: score {report.score:.1f}/100",
        f"  {report.critical} critical, {report.warnings} warning(s), {report.info} info",
        (
            f"  {report.stats.days} day(s), {report.stats.items} item(s) "
            f"({report.stats.activities} activities, {report.stats.restaurants} restaurants), "
            f"estimated cost {report.stats.total_estimated_cost:.2f}"
        ),
    ]
    for severity in (Severity.CRITICAL, Severity.WARNING, Severity.INFO):
        selected = [issue for issue in report.issues if issue.severity is severity]
        if not selected:
            continue
        lines.append("")
        lines.append(f"{severity.value.upper()}:")
        for issue in selected:
            lines.append(f"  [{issue.code}] {issue.message}")
    return "\n".join(lines) + "\n"


__all__ = [
    "LONG_GAP_MINUTES",
    "build_report",
    "find_long_gaps",
    "report_to_text",
    "score_issues",
    "trip_stats",
]
