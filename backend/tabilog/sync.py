# backend/tabilog/sync.py
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from tabilog.horizon import HorizonClassifier
from tabilog.models import NEW_DAY_LOCATION, Activity, Day, WeatherRecord
from tabilog.weather import WeatherService, weather_service

logger = logging.getLogger(__name__)


def has_day_location(day: Day) -> bool:
    return bool(day.location) and day.location != NEW_DAY_LOCATION


def first_activity_weather(activities: List[Activity]) -> Optional[WeatherRecord]:
    for activity in activities:
        if activity.weather:
            return activity.weather
    return None


def _result_or_none(result, label: str) -> Optional[WeatherRecord]:
    if isinstance(result, BaseException):
        logger.warning(f"Weather task for {label} failed: {result!r}")
        return None
    return result


@dataclass
class DayUpdate:
    day: Day
    changed: bool
    fetches: int = 0


class ItinerarySynchronizer:
    def __init__(self, weather: Optional[WeatherService] = None,
                 horizon: Optional[HorizonClassifier] = None):
        self.weather = weather or weather_service
        self.horizon = horizon or self.weather.horizon

    async def refresh_all(self, days: List[Day]) -> List[Day]:
        snapshot = list(days)
        logger.info(f"Refreshing weather for {len(snapshot)} days")
        results = await asyncio.gather(
            *(self._refresh_day(day) for day in snapshot), return_exceptions=True
        )

        refreshed = []
        for day, result in zip(snapshot, results):
            if isinstance(result, BaseException):
                logger.warning(f"Weather refresh for day {day.id} failed: {result!r}")
                refreshed.append(day)
            else:
                refreshed.append(result)
        return refreshed

    async def _refresh_day(self, day: Day) -> Day:
        day_task = self._fetch_day(day) if has_day_location(day) else _none()
        activity_tasks = [
            self._fetch_activity(day, activity) if activity.location else _none()
            for activity in day.activities
        ]
        results = await asyncio.gather(day_task, *activity_tasks, return_exceptions=True)

        fetched_day = _result_or_none(results[0], f"day {day.id}")
        activities = []
        for activity, result in zip(day.activities, results[1:]):
            fetched = _result_or_none(result, f"activity {activity.id}")
            activities.append(activity.with_weather(fetched) if fetched else activity)

        day_weather = fetched_day or day.weather
        if not day_weather:
            day_weather = first_activity_weather(activities)
        return day.with_weather(day_weather, activities)

    async def update_day(self, old_day: Optional[Day], new_day: Day) -> DayUpdate:
        day_moved = (
            old_day is None
            or old_day.location != new_day.location
            or old_day.date != new_day.date
        )
        fetch_day = has_day_location(new_day) and (not new_day.weather or day_moved)

        activity_fetches = []
        for activity in new_day.activities:
            old_activity = old_day.find_activity(activity.id) if old_day else None
            stale = (
                old_activity is None
                or old_activity.location != activity.location
                or old_activity.time != activity.time
                or not activity.weather
            )
            activity_fetches.append(bool(activity.location) and stale)

        tasks = [self._fetch_day(new_day) if fetch_day else _none()]
        tasks.extend(
            self._fetch_activity(new_day, activity) if needed else _none()
            for activity, needed in zip(new_day.activities, activity_fetches)
        )
        fetches = int(fetch_day) + sum(activity_fetches)
        if fetches:
            logger.info(f"Day {new_day.id}: {fetches} weather lookups needed")
        results = await asyncio.gather(*tasks, return_exceptions=True)

        changed = False
        day_weather = new_day.weather
        fetched_day = _result_or_none(results[0], f"day {new_day.id}")
        if fetched_day and fetched_day != day_weather:
            day_weather = fetched_day
            changed = True

        activities = []
        for activity, result in zip(new_day.activities, results[1:]):
            fetched = _result_or_none(result, f"activity {activity.id}")
            if fetched and fetched != activity.weather:
                activities.append(activity.with_weather(fetched))
                changed = True
            else:
                activities.append(activity)

        if not day_weather:
            day_weather = first_activity_weather(activities)
            changed = changed or day_weather is not None

        if not changed:
            return DayUpdate(day=new_day, changed=False, fetches=fetches)
        return DayUpdate(day=new_day.with_weather(day_weather, activities), changed=True, fetches=fetches)

    def needs_refresh(self, days: List[Day]) -> bool:
        for day in days:
            if day.weather and day.weather.is_reference and self.horizon.is_forecast_eligible(day.date):
                logger.info(f"Day {day.date} has reference weather inside the forecast range")
                return True
        return False

    async def refresh_if_stale(self, days: List[Day]) -> Tuple[List[Day], bool]:
        if not self.needs_refresh(days):
            return days, False
        return await self.refresh_all(days), True

    async def _fetch_day(self, day: Day) -> Optional[WeatherRecord]:
        return await self.weather.fetch_weather_for_day(day.location, day.date)

    async def _fetch_activity(self, day: Day, activity: Activity) -> Optional[WeatherRecord]:
        return await self.weather.fetch_activity_weather(activity.location, day.date, activity.time)


async def _none() -> None:
    return None


itinerary_sync = ItinerarySynchronizer()
