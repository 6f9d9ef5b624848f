"""Client for the RIPE Atlas v2 REST API.

Covers the endpoints the probe selection and result pipeline need:

- probe index radius query (``/probes/?radius=...``),
- probe detail (``/probes/{id}/``),
- measurement status (``/measurements/{id}/``) and tag search,
- streaming download of a measurement's result array.

All calls carry ``timeout``; transport failures and non-2xx statuses raise
``NetworkError``, bodies that are not valid JSON raise ``DecodeError``.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

import requests
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from atlas_probes.config import DEFAULT_ATLAS_API_URL
from atlas_probes.errors import DecodeError, NetworkError
from atlas_probes.logging_utils import perf
from atlas_probes.models import MeasurementStatus, Probe, parse_probe_list

LOGGER = logging.getLogger(__name__)

HEADERS = {
    "accept": "application/json",
    "content-type": "application/json",
    "user-agent": "atlas-probes/1.0",
}


class ResultStream:
    """Binary file-like view over a streaming response body.

    Read errors raised by urllib3 mid-stream are re-raised as ``NetworkError``
    so the decoder's caller sees the same error type as for the initial GET.
    """

    def __init__(self, response: requests.Response) -> None:
        self._response = response
        self._raw = response.raw
        self._raw.decode_content = True

    def read(self, size: int = -1) -> bytes:
        try:
            return self._raw.read(size)
        except (Urllib3HTTPError, OSError) as exc:
            raise NetworkError(f"result stream read failed: {exc}") from exc

    def close(self) -> None:
        self._response.close()


class AtlasClient:
    """Thin wrapper around the Atlas REST endpoints used by this project."""

    def __init__(
        self,
        base_url: str = DEFAULT_ATLAS_API_URL,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the API client.

        Args:
            base_url: API root, e.g. ``https://atlas.ripe.net/api/v2/``.
            session: Optional pre-configured Requests session.
            timeout: Per-request timeout in seconds (connect and each read).
        """
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._session = session or requests.Session()
        self._timeout = timeout

    def _url(self, path: str) -> str:
        return self._base_url + path.lstrip("/")

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        LOGGER.debug("GET %s params=%s", url, params)
        try:
            response = self._session.get(url, headers=HEADERS, params=params, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NetworkError(f"GET {url} failed: {exc}") from exc
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(f"GET {url} returned malformed JSON: {exc}") from exc

    @perf("api.search_probes", tags={"component": "atlas"})
    def search_probes(
        self,
        latitude: float,
        longitude: float,
        radius_km: Union[int, float],
    ) -> List[Probe]:
        """Return connected, public probes within ``radius_km``, sorted by id."""
        params = {
            "status": 1,
            "is_public": "true",
            "radius": f"{latitude:f},{longitude:f}:{radius_km:g}",
            "sort": "id",
        }
        payload = self._get_json(self._url("probes/"), params=params)
        probes = parse_probe_list(payload)
        LOGGER.info(
            "Probe query radius=%s returned %d probes (count=%s)",
            params["radius"],
            len(probes),
            payload.get("count"),
        )
        return probes

    def fetch_probe(self, probe_id: int) -> Probe:
        """Return full metadata for a single probe."""
        payload = self._get_json(self._url(f"probes/{int(probe_id)}/"))
        return Probe.from_dict(payload)

    @perf("api.fetch_measurement", tags={"component": "atlas"})
    def fetch_measurement(self, measurement_id: int) -> MeasurementStatus:
        payload = self._get_json(self._url(f"measurements/{int(measurement_id)}/"))
        return MeasurementStatus.from_dict(payload)

    @perf("api.search_measurements", tags={"component": "atlas"})
    def search_measurements(self, tags: Iterable[str]) -> List[int]:
        """Return the ids of measurements carrying all of ``tags``."""
        tag_list = [tag.strip() for tag in tags if tag and tag.strip()]
        if not tag_list:
            raise ValueError("at least one tag must be provided")
        payload = self._get_json(self._url("measurements/"), params={"tags": ",".join(tag_list)})
        if not isinstance(payload, dict) or not isinstance(payload.get("results", []), list):
            raise DecodeError("measurement search response must be an object with a results list")
        ids: List[int] = []
        for item in payload.get("results") or []:
            ids.append(MeasurementStatus.from_dict(item).id)
        return ids

    @contextmanager
    def open_result_stream(self, url: str) -> Iterator[ResultStream]:
        """Open ``url`` as a streaming response without reading the body."""
        LOGGER.debug("GET %s (stream)", url)
        try:
            response = self._session.get(url, headers=HEADERS, timeout=self._timeout, stream=True)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NetworkError(f"GET {url} failed: {exc}") from exc
        stream = ResultStream(response)
        try:
            yield stream
        finally:
            stream.close()

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "AtlasClient":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()


__all__ = ["AtlasClient", "ResultStream", "HEADERS"]
