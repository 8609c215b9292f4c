# backend/tabilog/itinerary.py
import logging
from datetime import date
from typing import List, Optional, Union

from tabilog.errors import ItineraryError
from tabilog.horizon import Clock, add_days, parse_date
from tabilog.models import NEW_DAY_LOCATION, Day, generate_id

logger = logging.getLogger(__name__)

WEEKDAYS = ('一', '二', '三', '四', '五', '六', '日')


def format_display_date(value: Union[date, str]) -> str:
    day = parse_date(value)
    return f"{day.month}/{day.day} ({WEEKDAYS[day.weekday()]})"


def redate(days: List[Day], start: Union[date, str]) -> List[Day]:
    start_date = parse_date(start)
    redated = []
    for index, day in enumerate(days):
        current = add_days(start_date, index)
        redated.append(day.with_date(current.isoformat(), format_display_date(current)))
    return redated


def new_day(value: Union[date, str], location: str = NEW_DAY_LOCATION) -> Day:
    day_date = parse_date(value)
    return Day(
        id=generate_id(),
        date=day_date.isoformat(),
        display_date=format_display_date(day_date),
        location=location,
        activities=[],
    )


def find_day(days: List[Day], day_id: str) -> Optional[Day]:
    for day in days:
        if day.id == day_id:
            return day
    return None


def add_day(days: List[Day], clock: Optional[Clock] = None) -> List[Day]:
    if days:
        next_date = add_days(days[-1].date, 1)
    else:
        next_date = (clock or Clock()).today()
    return list(days) + [new_day(next_date)]


def delete_day(days: List[Day], day_id: str) -> List[Day]:
    if len(days) <= 1:
        raise ItineraryError("An itinerary must keep at least one day")
    if find_day(days, day_id) is None:
        raise ItineraryError(f"Unknown day: {day_id}")

    remaining = [day for day in days if day.id != day_id]
    return redate(remaining, remaining[0].date)


def reorder_days(days: List[Day], from_index: int, to_index: int) -> List[Day]:
    if not (0 <= from_index < len(days)) or not (0 <= to_index < len(days)):
        raise ItineraryError(f"Cannot move day {from_index} to {to_index} in a {len(days)}-day itinerary")
    if from_index == to_index:
        return list(days)

    reordered = list(days)
    moved = reordered.pop(from_index)
    reordered.insert(to_index, moved)
    return redate(reordered, days[0].date)


def update_start_date(days: List[Day], start: Union[date, str]) -> List[Day]:
    logger.info(f"Moving itinerary start to {start}, clearing weather")
    return redate([day.without_weather() for day in days], start)


def replace_day(days: List[Day], updated: Day) -> List[Day]:
    existing = find_day(days, updated.id)
    if existing is None:
        raise ItineraryError(f"Unknown day: {updated.id}")
    # Dates follow the day's position, so an edit cannot move a single day.
    updated = updated.with_date(existing.date, existing.display_date)
    return [updated if day.id == updated.id else day for day in days]
