# backend/tabilog/weather.py
import logging
import os
from typing import Dict, List, Optional

from tabilog.client import fetch_json
from tabilog.errors import LocationServiceError, MalformedResponse, WeatherLookupError
from tabilog.horizon import Horizon, HorizonClassifier
from tabilog.location import LocationResult, LocationService, location_service
from tabilog.models import WeatherRecord
from tabilog.timeparse import parse_hour_from_time

logger = logging.getLogger(__name__)

DAILY_FIELDS = 'weather_code,temperature_2m_max,temperature_2m_min'
HOURLY_FIELDS = 'temperature_2m,weather_code'


def map_wmo_code_to_condition(code: Optional[int]) -> str:
    if code is None:
        return 'Sunny'
    if code in (0, 1):
        return 'Sunny'
    if code in (2, 3, 45, 48):
        return 'Cloudy'
    if 51 <= code <= 67:
        return 'Rain'
    if 71 <= code <= 77:
        return 'Snow'
    if 80 <= code <= 82:
        return 'Rain'
    if code in (85, 86):
        return 'Snow'
    if 95 <= code <= 99:
        return 'Rain'
    return 'Sunny'


class WeatherService:
    def __init__(self, locations: Optional[LocationService] = None,
                 horizon: Optional[HorizonClassifier] = None):
        self.forecast_url = os.getenv('OPEN_METEO_FORECAST_URL', 'https://api.open-meteo.com/v1/forecast')
        self.archive_url = os.getenv('OPEN_METEO_ARCHIVE_URL', 'https://archive-api.open-meteo.com/v1/archive')
        self.timeout = float(os.getenv('WEATHER_HTTP_TIMEOUT', 10))

        self.locations = locations or location_service
        self.horizon = horizon or HorizonClassifier()

    async def fetch_weather_for_day(self, location: Optional[str], date: str) -> Optional[WeatherRecord]:
        try:
            coords = await self.locations.resolve(location)
            horizon = self.horizon.classify(date)
            data = await self._get_json(self._endpoint(horizon),
                                        self._params(coords, horizon, daily=DAILY_FIELDS))
            return self._parse_daily(data, horizon)
        except LocationServiceError as e:
            logger.info(f"Skipping day weather for {location!r} on {date}: {e}")
        except WeatherLookupError as e:
            logger.warning(f"Day weather for {location!r} on {date} unavailable: {e}")
        except Exception as e:
            logger.error(f"Error fetching day weather for {location!r} on {date}: {e!r}")
        return None

    async def fetch_activity_weather(self, location: Optional[str], date: str,
                                     time_label: Optional[str]) -> Optional[WeatherRecord]:
        hour = parse_hour_from_time(time_label)
        if hour is None:
            return await self.fetch_weather_for_day(location, date)

        try:
            coords = await self.locations.resolve(location)
            horizon = self.horizon.classify(date)
            data = await self._get_json(self._endpoint(horizon),
                                        self._params(coords, horizon, hourly=HOURLY_FIELDS))
            return self._parse_hourly(data, horizon, hour)
        except LocationServiceError as e:
            logger.info(f"Skipping activity weather for {location!r} on {date}: {e}")
        except WeatherLookupError as e:
            logger.warning(f"Activity weather for {location!r} on {date} {hour}:00 unavailable: {e}")
        except Exception as e:
            logger.error(f"Error fetching activity weather for {location!r} on {date}: {e!r}")
        return None

    def _endpoint(self, horizon: Horizon) -> str:
        return self.forecast_url if horizon.is_forecast else self.archive_url

    def _params(self, coords: LocationResult, horizon: Horizon, **fields) -> Dict:
        query_date = horizon.query_date.isoformat()
        params = {
            'latitude': coords.lat,
            'longitude': coords.lon,
            'timezone': 'auto',
            'start_date': query_date,
            'end_date': query_date,
        }
        params.update(fields)
        return params

    def _parse_daily(self, data: Dict, horizon: Horizon) -> WeatherRecord:
        daily = data.get('daily')
        if not isinstance(daily, dict) or not daily.get('time'):
            raise MalformedResponse("Response has no daily series")

        try:
            code = daily['weather_code'][0]
            temp_max = daily['temperature_2m_max'][0]
            temp_min = daily['temperature_2m_min'][0]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponse(f"Daily series is incomplete: {e!r}")

        if temp_max is None or temp_min is None:
            raise MalformedResponse("Daily series has no temperatures")

        return WeatherRecord.day_range(
            temp_min=temp_min,
            temp_max=temp_max,
            condition=map_wmo_code_to_condition(code),
            is_reference=horizon.is_reference,
        )

    def _parse_hourly(self, data: Dict, horizon: Horizon, hour: int) -> WeatherRecord:
        hourly = data.get('hourly')
        if not isinstance(hourly, dict) or not hourly.get('time'):
            raise MalformedResponse("Response has no hourly series")

        # The series is the location's local day starting at 00:00, so the hour is the index.
        temps: List = hourly.get('temperature_2m') or []
        codes: List = hourly.get('weather_code') or []
        if hour >= len(temps) or hour >= len(codes) or temps[hour] is None:
            raise MalformedResponse(f"Hourly series has no entry for hour {hour}")

        return WeatherRecord.point(
            temp=temps[hour],
            condition=map_wmo_code_to_condition(codes[hour]),
            is_reference=horizon.is_reference,
        )

    async def _get_json(self, url: str, params: Dict) -> Dict:
        return await fetch_json(url, params, timeout=self.timeout)


weather_service = WeatherService()
