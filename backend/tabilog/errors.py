# backend/tabilog/errors.py


class WeatherLookupError(Exception):
    pass


class LocationServiceError(WeatherLookupError):
    pass


class UnresolvableLocation(LocationServiceError):
    pass


class GeocodingMiss(LocationServiceError):
    pass


class ProviderUnavailable(WeatherLookupError):
    pass


class MalformedResponse(WeatherLookupError):
    pass


class ItineraryError(Exception):
    pass


class PlanNotFound(Exception):
    pass
