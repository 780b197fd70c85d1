"""Automatic repair of coherence violations by re-scheduling flexible items."""

from __future__ import annotations

import logging
import os
from typing import AbstractSet, Callable, Dict, List, Optional, Set, Tuple

from itinero.core.coherence import (
    ACTIVITY_AFTER_HOTEL_CHECKOUT,
    DUPLICATE_ATTRACTION,
    GENERIC_ACTIVITY,
    MEAL_DEFAULT_STARTS,
    MEAL_ORDER,
    MEAL_WRONG_ORDER,
    CoherenceValidator,
    activity_deadline,
    departure_leg,
    inbound_block_for,
    is_generic_activity,
    meal_kind,
)
from itinero.core.scheduler import DEFAULT_DAY_END, DEFAULT_DAY_START, DayScheduler
from itinero.geomath import format_time, normalise_title
from itinero.schemas import CoherenceReport, ItemCategory, ItemSpec, PlacedItem, Severity, Trip, TripDay

_LOGGER = logging.getLogger(__name__)

MAX_FIX_PASSES = int(os.getenv("ITINERO_MAX_FIX_PASSES", "3"))

Repair = Callable[[Trip, CoherenceReport], Optional[Trip]]


class AutoFixer:
    """Produce a corrected copy of a trip; the input is never mutated.

    A pass runs two steps in turn: removing items that should not be on the
    trip at all (cross-day duplicates, placeholder activities), then
    re-scheduling the days that still carry violations. Each step is kept
    only when it strictly lowers the violation count, so the result never
    has more violations than the input.
    """

    def __init__(
        self,
        validator: Optional[CoherenceValidator] = None,
        *,
        max_passes: Optional[int] = None,
    ) -> None:
        self.validator = validator or CoherenceValidator()
        self.max_passes = MAX_FIX_PASSES if max_passes is None else max_passes

    def fix(self, trip: Trip) -> Trip:
        current = trip.model_copy(deep=True)
        report = self.validator.validate(current)
        count = len(report.violations)
        steps: Tuple[Tuple[str, Repair], ...] = (
            ("removal", self._remove_unwanted),
            ("reschedule", self._reschedule_flagged),
        )

        for pass_number in range(1, self.max_passes + 1):
            if count == 0:
                break
            improved = False
            for step, repair in steps:
                if count == 0:
                    break
                candidate = repair(current, report)
                if candidate is None:
                    continue
                candidate_report = self.validator.validate(candidate)
                candidate_count = len(candidate_report.violations)
                if candidate_count >= count:
                    _LOGGER.info(
                        "Fix pass %d (%s) left %d violation(s) (was %d); keeping previous version",
                        pass_number,
                        step,
                        candidate_count,
                        count,
                    )
                    continue
                _LOGGER.info(
                    "Fix pass %d (%s): %d -> %d violation(s)", pass_number, step, count, candidate_count
                )
                current, report, count = candidate, candidate_report, candidate_count
                improved = True
            if not improved:
                break

        return current

    def _remove_unwanted(self, trip: Trip, report: CoherenceReport) -> Optional[Trip]:
        has_duplicates = any(
            issue.code == DUPLICATE_ATTRACTION and issue.severity is Severity.CRITICAL
            for issue in report.errors
        )
        has_generic = any(issue.code == GENERIC_ACTIVITY for issue in report.violations)
        if not (has_duplicates or has_generic):
            return None

        repaired = trip.model_copy(deep=True)
        if has_duplicates:
            _drop_cross_day_duplicates(repaired)
        if has_generic:
            _drop_generic_activities(repaired)
        return repaired

    def _reschedule_flagged(self, trip: Trip, report: CoherenceReport) -> Optional[Trip]:
        flagged_days: Set[int] = {
            issue.day_number for issue in report.violations if issue.day_number is not None
        }
        if not flagged_days:
            return None
        meal_days: Set[int] = {
            issue.day_number
            for issue in report.violations
            if issue.code == MEAL_WRONG_ORDER and issue.day_number is not None
        }
        # Activities running past check-out may move earlier than where they were.
        released: Set[str] = {
            issue.item_ids[-1]
            for issue in report.violations
            if issue.code == ACTIVITY_AFTER_HOTEL_CHECKOUT and issue.item_ids
        }

        repaired = trip.model_copy(deep=True)
        for day in repaired.days:
            if day.day_number in flagged_days:
                self._reschedule_day(
                    repaired,
                    day,
                    reorder_meals=day.day_number in meal_days,
                    released=released,
                )
        _LOGGER.debug(
            "Rescheduled days %s for codes %s",
            sorted(flagged_days),
            sorted({issue.code for issue in report.violations}),
        )
        return repaired

    def _reschedule_day(
        self,
        trip: Trip,
        day: TripDay,
        *,
        reorder_meals: bool,
        released: AbstractSet[str] = frozenset(),
    ) -> None:
        """Rebuild ``day.items`` with a fresh scheduler; fixed items stay put.

        Flexible items keep their current start as an earliest start, so a
        day is only pushed later where something is in the way.
        """

        ordered = day.sorted_items()
        fixed = [item for item in ordered if item.fixed]
        flexible = [item for item in ordered if not item.fixed]

        day_start = day.day_start if day.day_start is not None else DEFAULT_DAY_START
        if day.day_end is not None:
            day_end = day.day_end
        else:
            day_end = max([DEFAULT_DAY_END, *(item.end_time for item in flexible)])
        departure = departure_leg(trip, day)
        if departure is not None:
            day_end = min(day_end, departure.start_time)
        deadline = activity_deadline(trip, day)

        scheduler = DayScheduler(day_start, day_end, date=day.date)
        for item in fixed:
            scheduler.insert_fixed_item(item)
        block = inbound_block_for(trip, day)
        if block is not None:
            scheduler.advance_to(block.end)

        for spec in _requeue(flexible, reorder_meals=reorder_meals, released=released):
            latest_end = deadline if spec.category is ItemCategory.ACTIVITY else None
            if scheduler.add_item(spec, latest_end=latest_end) is None:
                limit = scheduler.day_end if latest_end is None else min(latest_end, scheduler.day_end)
                _LOGGER.warning(
                    "Dropped %r from day %d: no room left before %s",
                    spec.title,
                    day.day_number,
                    format_time(limit),
                )

        day.items = scheduler.get_items()


def _requeue(
    flexible: List[PlacedItem], *, reorder_meals: bool, released: AbstractSet[str]
) -> List[ItemSpec]:
    """Turn placed items back into specs, pinned no earlier than where they were."""

    specs = [item.to_spec(pinned=item.id not in released) for item in flexible]
    if not reorder_meals:
        return specs

    # Keep the queue order but swap meals into breakfast, lunch, dinner order.
    slots = [index for index, item in enumerate(flexible) if meal_kind(item) is not None]
    meals = sorted(
        (flexible[index] for index in slots),
        key=lambda item: MEAL_ORDER.index(meal_kind(item) or ""),
    )
    for slot, meal in zip(slots, meals):
        kind = meal_kind(meal)
        spec = meal.to_spec()
        if kind is not None:
            spec = spec.model_copy(update={"min_start_time": MEAL_DEFAULT_STARTS[kind]})
        specs[slot] = spec
    return specs


def _drop_cross_day_duplicates(trip: Trip) -> None:
    first_day: Dict[str, int] = {}
    for day in trip.days:
        kept: List[PlacedItem] = []
        for item in day.sorted_items():
            key = normalise_title(item.title) if item.category is ItemCategory.ACTIVITY else ""
            if key and key in first_day and first_day[key] != day.day_number and not item.fixed:
                _LOGGER.info(
                    "Dropped duplicate %r from day %d (already on day %d)",
                    item.title,
                    day.day_number,
                    first_day[key],
                )
                continue
            if key:
                first_day.setdefault(key, day.day_number)
            kept.append(item)
        day.items = kept


def _drop_generic_activities(trip: Trip) -> None:
    for day in trip.days:
        kept = [item for item in day.items if not is_generic_activity(item)]
        if len(kept) != len(day.items):
            _LOGGER.info(
                "Dropped %d placeholder activit%s from day %d",
                len(day.items) - len(kept),
                "y" if len(day.items) - len(kept) == 1 else "ies",
                day.day_number,
            )
        day.items = kept


def auto_fix_trip(trip: Trip) -> Trip:
    return AutoFixer().fix(trip)


__all__ = ["AutoFixer", "MAX_FIX_PASSES", "auto_fix_trip"]
