# backend/tabilog/horizon.py
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Union

logger = logging.getLogger(__name__)

FORECAST_PAST_DAYS = 1
FORECAST_FUTURE_DAYS = 14


class Clock:
    """Source of "today" as a local calendar date."""

    def today(self) -> date:
        return date.today()


class FixedClock(Clock):
    def __init__(self, today: Union[date, str]):
        self._today = parse_date(today)

    def today(self) -> date:
        return self._today


@dataclass(frozen=True)
class Horizon:
    target: date
    offset: int
    is_forecast: bool
    query_date: date

    @property
    def is_reference(self) -> bool:
        return not self.is_forecast


def parse_date(value: Union[date, str]) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


def shift_year(value: date, year: int) -> date:
    try:
        return value.replace(year=year)
    except ValueError:
        # Feb 29 in a non-leap reference year
        return value.replace(year=year, day=28)


class HorizonClassifier:
    def __init__(self, clock: Optional[Clock] = None,
                 past_days: int = FORECAST_PAST_DAYS,
                 future_days: int = FORECAST_FUTURE_DAYS):
        self.clock = clock or Clock()
        self.past_days = past_days
        self.future_days = future_days

    def days_diff(self, value: Union[date, str]) -> int:
        # Both sides are calendar dates, so there is no midnight/DST drift.
        return (parse_date(value) - self.clock.today()).days

    def is_forecast_eligible(self, value: Union[date, str]) -> bool:
        return -self.past_days <= self.days_diff(value) <= self.future_days

    def reference_date(self, value: Union[date, str]) -> date:
        target = parse_date(value)
        current_year = self.clock.today().year
        ref_year = target.year - 1
        if ref_year > current_year:
            ref_year = current_year - 1
        return shift_year(target, ref_year)

    def classify(self, value: Union[date, str]) -> Horizon:
        target = parse_date(value)
        offset = self.days_diff(target)
        is_forecast = -self.past_days <= offset <= self.future_days
        query_date = target if is_forecast else self.reference_date(target)
        logger.debug(f"Horizon for {target.isoformat()}: offset={offset}, forecast={is_forecast}")
        return Horizon(target=target, offset=offset, is_forecast=is_forecast, query_date=query_date)


def add_days(value: Union[date, str], days: int) -> date:
    return parse_date(value) + timedelta(days=days)
