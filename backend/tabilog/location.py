# backend/tabilog/location.py
import logging
import os
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from tabilog.client import RequestDeduplicator, fetch_json
from tabilog.errors import GeocodingMiss, MalformedResponse, UnresolvableLocation

logger = logging.getLogger(__name__)

# Route strings like "台北 ➔ 東京"; the leg after the last arrow is where the day ends.
ROUTE_SEPARATORS = ('->', '➔', '→')


@dataclass
class LocationResult:
    lat: float
    lon: float
    name: str = ""
    country: str = ""
    timezone: str = ""


def extract_city_name(location: Optional[str]) -> str:
    """Return the place a (possibly route-style) location string ends at.

    "台北 ➔ 東京" -> "東京", "Tokyo -> Kusatsu" -> "Kusatsu", "" -> "".
    """
    if not location:
        return ''

    cut = -1
    cut_len = 0
    for separator in ROUTE_SEPARATORS:
        index = location.rfind(separator)
        if index > cut:
            cut = index
            cut_len = len(separator)

    if cut >= 0:
        return location[cut + cut_len:].strip()
    return location.strip()


class LocationService:
    def __init__(self):
        self.geocoding_url = os.getenv(
            'OPEN_METEO_GEOCODING_URL', 'https://geocoding-api.open-meteo.com/v1/search'
        )
        self.language = os.getenv('GEOCODING_LANGUAGE', 'zh')
        self.timeout = float(os.getenv('WEATHER_HTTP_TIMEOUT', 10))
        self.cache_ttl = int(os.getenv('GEOCODE_CACHE_TTL', 3600))

        self.memory_cache = {}
        self.request_deduplicator = RequestDeduplicator()

    async def resolve(self, location: Optional[str]) -> LocationResult:
        city = extract_city_name(location)
        if not city:
            raise UnresolvableLocation(f"No searchable place in {location!r}")

        cache_key = city.lower()
        cached = self._get_from_cache(cache_key)
        if cached:
            return cached

        result = await self.request_deduplicator.deduplicate_request(
            f"geocode:{cache_key}", lambda: self._search_open_meteo(city)
        )
        self._set_cache(cache_key, result)
        return result

    async def search_location(self, query: str) -> List[Dict]:
        if not query or len(query.strip()) < 2:
            return []

        logger.info(f"Searching for location: {query}")
        try:
            result = await self.resolve(query)
        except GeocodingMiss:
            return []

        return [{
            'name': result.name,
            'lat': result.lat,
            'lon': result.lon,
            'country': result.country,
            'timezone': result.timezone,
            'source': 'open_meteo',
        }]

    async def _search_open_meteo(self, city: str) -> LocationResult:
        params = {
            'name': city,
            'count': 1,
            'language': self.language,
            'format': 'json',
        }
        data = await self._get_json(self.geocoding_url, params)

        results = data.get('results') or []
        if not results:
            raise GeocodingMiss(f"No geocoding match for {city!r}")

        first = results[0]
        try:
            return LocationResult(
                lat=float(first['latitude']),
                lon=float(first['longitude']),
                name=first.get('name', city),
                country=first.get('country', ''),
                timezone=first.get('timezone', ''),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponse(f"Geocoding result for {city!r} has no coordinates: {e!r}")

    async def _get_json(self, url: str, params: Dict) -> Dict:
        return await fetch_json(url, params, timeout=self.timeout)

    def _get_from_cache(self, key: str) -> Optional[LocationResult]:
        cached_item = self.memory_cache.get(key)
        if cached_item:
            if cached_item['expires'] > time.time():
                return cached_item['data']
            self.memory_cache.pop(key, None)
        return None

    def _set_cache(self, key: str, data: LocationResult):
        self.memory_cache[key] = {
            'data': data,
            'expires': time.time() + self.cache_ttl,
        }


location_service = LocationService()
