"""Shared fixtures: a fixed clock and an in-process stand-in for Open-Meteo."""
import pytest

from tabilog.errors import ProviderUnavailable
from tabilog.horizon import FixedClock, HorizonClassifier
from tabilog.location import LocationService
from tabilog.models import Activity, Day, WeatherRecord
from tabilog.storage import PlanStore
from tabilog.sync import ItinerarySynchronizer
from tabilog.weather import WeatherService

TODAY = '2026-01-20'


class FakeOpenMeteo:
    """Answers geocoding, forecast and archive requests from in-memory tables."""

    def __init__(self):
        self.places = {
            'Kyoto': (35.0, 135.7),
            '東京': (35.6, 139.7),
            'Tokyo': (35.6, 139.7),
            'Kusatsu': (36.6, 138.5),
        }
        # (lat, lon) -> (weather_code, max, min)
        self.daily = {
            (35.0, 135.7): (3, 9.6, 1.4),
            (35.6, 139.7): (0, 12.2, 4.8),
            (36.6, 138.5): (75, 1.0, -6.5),
        }
        self.hourly_temps = [float(h) for h in range(24)]
        self.hourly_codes = [61] * 24
        self.geocode_calls = []
        self.weather_calls = []
        self.down = False
        self.failing_places = set()

    async def geocode(self, url, params):
        self.geocode_calls.append(params)
        if self.down or params['name'] in self.failing_places:
            raise ProviderUnavailable("connection refused")
        coords = self.places.get(params['name'])
        if coords is None:
            return {'generationtime_ms': 0.1}
        return {'results': [{'name': params['name'], 'latitude': coords[0], 'longitude': coords[1],
                             'country': 'Japan', 'timezone': 'Asia/Tokyo'}]}

    async def weather(self, url, params):
        self.weather_calls.append((url, params))
        if self.down:
            raise ProviderUnavailable("connection refused")
        key = (params['latitude'], params['longitude'])
        if 'daily' in params:
            code, high, low = self.daily[key]
            return {'daily': {'time': [params['start_date']], 'weather_code': [code],
                              'temperature_2m_max': [high], 'temperature_2m_min': [low]}}
        times = [f"{params['start_date']}T{h:02d}:00" for h in range(24)]
        return {'hourly': {'time': times, 'temperature_2m': list(self.hourly_temps),
                           'weather_code': list(self.hourly_codes)}}


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def provider():
    return FakeOpenMeteo()


@pytest.fixture
def locations(provider, monkeypatch):
    service = LocationService()
    monkeypatch.setattr(service, '_get_json', provider.geocode)
    return service


@pytest.fixture
def weather(locations, provider, clock, monkeypatch):
    service = WeatherService(locations=locations, horizon=HorizonClassifier(clock))
    monkeypatch.setattr(service, '_get_json', provider.weather)
    return service


@pytest.fixture
def synchronizer(weather):
    return ItinerarySynchronizer(weather)


@pytest.fixture
def store():
    return PlanStore(use_redis=False)


def make_day(day_id='d1', date='2026-01-25', location='Kyoto', activities=None, weather=None):
    return Day(id=day_id, date=date, display_date='', location=location,
               weather=weather, activities=activities or [])


def make_activity(activity_id='a1', location='Tokyo', time='14:30', weather=None):
    return Activity(id=activity_id, time=time, title=f'Activity {activity_id}',
                    location=location, weather=weather)


REFERENCE_DAY = WeatherRecord.day_range(5, 12, 'Cloudy', is_reference=True)
