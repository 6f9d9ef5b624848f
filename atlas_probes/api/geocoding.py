"""Google Geocoding API adapter: city/country -> latitude/longitude."""

import logging
from typing import Optional, Tuple

import requests

from atlas_probes.config import DEFAULT_GEOCODING_URL
from atlas_probes.errors import DecodeError, GeocodeFailure, NetworkError
from atlas_probes.logging_utils import perf

LOGGER = logging.getLogger(__name__)


class GoogleGeocoder:
    """Single request/response geocoder; no caching or retry."""

    def __init__(
        self,
        api_key: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        base_url: str = DEFAULT_GEOCODING_URL,
    ) -> None:
        if not api_key:
            raise ValueError("api_key must be provided")
        self._api_key = api_key
        self._session = session or requests.Session()
        self._timeout = timeout
        self._base_url = base_url

    @perf("api.geocode", tags={"component": "geocoding"})
    def resolve(self, city: str, country: str) -> Tuple[float, float]:
        """Return ``(latitude, longitude)`` of the best provider match."""
        address = ", ".join(part for part in (city, country) if part)
        params = {"address": address, "key": self._api_key}
        try:
            response = self._session.get(self._base_url, params=params, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NetworkError(f"geocoding request failed for {address!r}: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise DecodeError(f"geocoding response for {address!r} is not JSON") from exc

        status = data.get("status") if isinstance(data, dict) else None
        if status != "OK" or not data.get("results"):
            message = data.get("error_message") if isinstance(data, dict) else None
            raise GeocodeFailure(
                f"no coordinates for {address!r}: status={status} {message or ''}".rstrip()
            )

        try:
            location = data["results"][0]["geometry"]["location"]
            latitude, longitude = float(location["lat"]), float(location["lng"])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise DecodeError(f"geocoding response for {address!r} has no location") from exc

        LOGGER.debug("Geocoded %s -> %.5f,%.5f", address, latitude, longitude)
        return latitude, longitude

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "GoogleGeocoder":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()


__all__ = ["GoogleGeocoder"]
