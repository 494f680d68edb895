"""Best-effort reverse geocoding of GPS coordinates."""

from dataclasses import dataclass

import requests

from ..config import get_env, get_geocode_timeout
from ..errors import GeocodeError
from ..logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_GEOCODE_URL = "https://nominatim.openstreetmap.org/reverse"

# Address keys tried in order when looking for a city-like name
_CITY_KEYS = ("city", "town", "village", "municipality", "county", "state")


@dataclass
class GeocodeResult:
    """Human-readable place for a coordinate pair. Fields the provider lacks stay None."""

    city: str | None = None
    country: str | None = None
    location_name: str | None = None

    def is_empty(self) -> bool:
        return not (self.city or self.country or self.location_name)


class ReverseGeocoder:
    """
    Nominatim-compatible reverse geocoder.

    ``geocode`` makes exactly one request with a bounded timeout and never raises:
    every failure degrades to None so the calling pipeline carries on without
    location fields.
    """

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
        language: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url or str(get_env("GEOCODE_URL", DEFAULT_GEOCODE_URL))
        self.timeout = timeout if timeout is not None else get_geocode_timeout()
        self.user_agent = user_agent or str(get_env("GEOCODE_USER_AGENT", "galleryingest/0.1"))
        self.language = language or str(get_env("GEOCODE_LANGUAGE", "zh-CN,en"))
        self.session = session or requests.Session()

    def geocode(self, latitude: float, longitude: float) -> GeocodeResult | None:
        """
        Translate coordinates into city, country and a display name.

        Args:
            latitude: Decimal degrees
            longitude: Decimal degrees

        Returns:
            GeocodeResult, or None on any failure or empty answer
        """
        try:
            payload = self._request(latitude, longitude)
            result = self._parse(payload)
        except GeocodeError:
            return None
        except Exception as e:
            logger.warning(
                "geocode_failed",
                latitude=latitude,
                longitude=longitude,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

        if result is None or result.is_empty():
            logger.info("geocode_no_result", latitude=latitude, longitude=longitude)
            return None

        logger.debug("geocode_resolved", latitude=latitude, longitude=longitude, city=result.city)
        return result

    def _request(self, latitude: float, longitude: float) -> dict:
        response = self.session.get(
            self.url,
            params={"lat": latitude, "lon": longitude, "format": "jsonv2", "addressdetails": 1},
            headers={"User-Agent": self.user_agent, "Accept-Language": self.language},
            timeout=self.timeout,
        )
        if response.status_code != 200:
            raise GeocodeError(
                f"Geocoding provider returned HTTP {response.status_code}",
                details={"latitude": latitude, "longitude": longitude, "status_code": response.status_code},
            )
        return response.json()

    @staticmethod
    def _parse(payload: dict | None) -> GeocodeResult | None:
        if not payload or not isinstance(payload, dict) or "error" in payload:
            return None

        address = payload.get("address") or {}
        city = next((address[key] for key in _CITY_KEYS if address.get(key)), None)

        return GeocodeResult(
            city=city,
            country=address.get("country") or None,
            location_name=payload.get("display_name") or None,
        )


_geocoder: ReverseGeocoder | None = None


def get_reverse_geocoder() -> ReverseGeocoder:
    """Get the global reverse geocoder instance."""
    global _geocoder
    if _geocoder is None:
        _geocoder = ReverseGeocoder()
    return _geocoder
