"""Cursor-based time-slot allocation for a single itinerary day."""

from __future__ import annotations

import logging
import os
from datetime import date
from typing import List, Optional, Union

from itinero.geomath import coerce_minutes, format_time, intervals_overlap, parse_time
from itinero.schemas import (
    FixedItem,
    ItemSpec,
    PlacedItem,
    ScheduleConflict,
    ScheduleValidation,
    TripDay,
)

_LOGGER = logging.getLogger(__name__)

DEFAULT_DAY_START = parse_time(os.getenv("ITINERO_DAY_START", "08:00"))
DEFAULT_DAY_END = parse_time(os.getenv("ITINERO_DAY_END", "23:00"))
MIN_DAY_LENGTH = 60

TimeInput = Union[int, str]


class DayScheduler:
    """Place fixed and flexible items on one day's timeline.

    The cursor tracks where the traveller is in time. Flexible items are
    appended after it (plus their travel buffer) and push it forward; fixed
    items are trusted as given and leave it untouched until the caller
    explicitly calls :meth:`advance_to`.
    """

    def __init__(
        self,
        day_start: Optional[TimeInput] = None,
        day_end: Optional[TimeInput] = None,
        *,
        date: Optional[date] = None,
    ) -> None:
        start = DEFAULT_DAY_START if day_start is None else coerce_minutes(day_start)
        end = DEFAULT_DAY_END if day_end is None else coerce_minutes(day_end)
        if end < start + MIN_DAY_LENGTH:
            _LOGGER.warning(
                "Day end %s is before %s + %d min; raising it to %s",
                format_time(end),
                format_time(start),
                MIN_DAY_LENGTH,
                format_time(start + MIN_DAY_LENGTH),
            )
            end = start + MIN_DAY_LENGTH

        self.date = date
        self._day_start = start
        self._day_end = end
        self._cursor = start
        self._items: List[PlacedItem] = []

    @property
    def day_start(self) -> int:
        return self._day_start

    @property
    def day_end(self) -> int:
        return self._day_end

    @property
    def cursor(self) -> int:
        return self._cursor

    def get_remaining_minutes(self) -> int:
        return max(0, self._day_end - self._cursor)

    def can_fit(self, duration: int, travel_time: int = 0) -> bool:
        return self._cursor + travel_time + duration <= self._day_end

    def advance_to(self, time: TimeInput) -> None:
        """Move the cursor forward to ``time``; never moves it back."""

        target = coerce_minutes(time)
        if target > self._cursor:
            _LOGGER.debug("Cursor advanced %s -> %s", format_time(self._cursor), format_time(target))
            self._cursor = target

    def insert_fixed_item(self, item: Union[FixedItem, PlacedItem]) -> PlacedItem:
        """Pin ``item`` at its own interval without touching the cursor."""

        if isinstance(item, FixedItem):
            placed = PlacedItem.from_fixed(item)
        else:
            placed = item.model_copy(update={"fixed": True})

        for existing in self._items:
            if existing.overlaps(placed):
                _LOGGER.warning(
                    "Fixed item %r (%s-%s) overlaps %r (%s-%s)",
                    placed.title,
                    format_time(placed.start_time),
                    format_time(placed.end_time),
                    existing.title,
                    format_time(existing.start_time),
                    format_time(existing.end_time),
                )
        self._items.append(placed)
        return placed

    def add_item(self, spec: ItemSpec, latest_end: Optional[TimeInput] = None) -> Optional[PlacedItem]:
        """Place ``spec`` at the earliest free slot after the cursor.

        Returns ``None`` when the item would end after the day end (or after
        ``latest_end`` when that is earlier); that is a normal outcome and
        the caller may try another day.
        """

        start = self._cursor + spec.travel_time
        # An opening time already behind the cursor is irrelevant.
        if spec.min_start_time is not None and spec.min_start_time > start:
            start = spec.min_start_time
        start = self._first_free_start(start, spec.duration)

        limit = self._day_end
        if latest_end is not None:
            limit = min(limit, coerce_minutes(latest_end))
        end = start + spec.duration
        if end > limit:
            _LOGGER.debug(
                "Cannot fit %r (%d min): would end at %s, limit is %s",
                spec.title,
                spec.duration,
                format_time(end),
                format_time(limit),
            )
            return None

        placed = PlacedItem.from_spec(spec, start)
        self._items.append(placed)
        self._cursor = end
        _LOGGER.debug("Placed %r at %s-%s", spec.title, format_time(start), format_time(end))
        return placed

    def _first_free_start(self, start: int, duration: int) -> int:
        while True:
            blocker = self._find_conflict(start, start + duration)
            if blocker is None:
                return start
            _LOGGER.debug(
                "Slot %s-%s blocked by %r, shifting to %s",
                format_time(start),
                format_time(start + duration),
                blocker.title,
                format_time(blocker.end_time),
            )
            start = blocker.end_time

    def _find_conflict(self, start: int, end: int) -> Optional[PlacedItem]:
        for item in sorted(self._items, key=lambda placed: placed.start_time):
            if intervals_overlap(item.start_time, item.end_time, start, end):
                return item
        return None

    def get_items(self) -> List[PlacedItem]:
        return sorted(self._items, key=lambda item: (item.start_time, item.end_time))

    def validate(self) -> ScheduleValidation:
        """Report every pair of placed items whose intervals intersect."""

        ordered = self.get_items()
        conflicts: List[ScheduleConflict] = []
        for index, first in enumerate(ordered):
            for second in ordered[index + 1 :]:
                if first.overlaps(second):
                    conflicts.append(
                        ScheduleConflict(
                            first_id=first.id,
                            first_title=first.title,
                            second_id=second.id,
                            second_title=second.title,
                            overlap_minutes=min(first.end_time, second.end_time)
                            - max(first.start_time, second.start_time),
                        )
                    )
        return ScheduleValidation(valid=not conflicts, conflicts=conflicts)

    def build_day(
        self,
        day_number: int,
        *,
        theme: Optional[str] = None,
        is_day_trip: bool = False,
        day_trip_destination: Optional[str] = None,
    ) -> TripDay:
        """Assemble the placed items into a :class:`TripDay`."""

        return TripDay(
            day_number=day_number,
            date=self.date,
            items=self.get_items(),
            theme=theme,
            is_day_trip=is_day_trip,
            day_trip_destination=day_trip_destination,
            day_start=self._day_start,
            day_end=self._day_end,
        )


__all__ = [
    "DEFAULT_DAY_END",
    "DEFAULT_DAY_START",
    "DayScheduler",
    "MIN_DAY_LENGTH",
]
