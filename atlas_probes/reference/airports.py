"""Airport reference data: metro (IATA) code -> city/country.

The openflights ``airports.dat`` file is downloaded once and kept on local
disk. With the default ``CACHE_FOREVER`` policy the presence of the cache file
alone suppresses any re-download; clear the file by hand to refresh it, or
pass ``cache_ttl_seconds`` to re-fetch files older than the TTL.

Row layout (14 columns, order matters):

    id, name, city, country, IATA, ICAO, latitude, longitude, altitude,
    UTC offset, DST, tz database name, type, source
"""

import csv
import io
import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TypeVar

import requests

from atlas_probes.config import DEFAULT_AIRPORTS_CACHE_PATH, DEFAULT_AIRPORTS_URL
from atlas_probes.errors import DirectoryLoadError, NotFoundError
from atlas_probes.logging_utils import perf
from atlas_probes.models import Airport

LOGGER = logging.getLogger(__name__)

CACHE_FOREVER: Optional[float] = None
COLUMN_COUNT = 14
METRO_CODE_LENGTH = 3

T = TypeVar("T", int, float)


def _parse_number(text: str, parse: Callable[[str], T], zero: T) -> T:
    # Malformed numerics become zero; the row is kept.
    try:
        return parse(text.strip())
    except ValueError:
        return zero


def parse_airport_row(row: Sequence[str]) -> Airport:
    """Build an ``Airport`` from one delimited row, padding short rows."""
    cells = list(row) + [""] * (COLUMN_COUNT - len(row))
    return Airport(
        id=_parse_number(cells[0], int, 0),
        name=cells[1],
        city=cells[2],
        country=cells[3],
        iata=cells[4],
        icao=cells[5],
        latitude=_parse_number(cells[6], float, 0.0),
        longitude=_parse_number(cells[7], float, 0.0),
        altitude=_parse_number(cells[8], int, 0),
        utc_offset=_parse_number(cells[9], float, 0.0),
        dst=cells[10],
        tz_database=cells[11],
        record_type=cells[12],
        source=cells[13],
    )


def parse_airports(text: str) -> List[Airport]:
    """Parse the whole dataset.

    The csv reader runs non-strict so stray ``\\"`` quoting inside a field is
    absorbed into the field value instead of aborting the parse.
    """
    reader = csv.reader(io.StringIO(text), strict=False)
    airports: List[Airport] = []
    for row in reader:
        if not row:
            continue
        if len(row) != COLUMN_COUNT:
            LOGGER.debug("Airport row has %d columns (expected %d): %r", len(row), COLUMN_COUNT, row[:2])
        airports.append(parse_airport_row(row))
    return airports


class AirportDirectory:
    """Lazy, memoized view over the cached airport dataset."""

    def __init__(
        self,
        source_url: str = DEFAULT_AIRPORTS_URL,
        cache_path: Path = DEFAULT_AIRPORTS_CACHE_PATH,
        *,
        cache_ttl_seconds: Optional[float] = CACHE_FOREVER,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ) -> None:
        if cache_ttl_seconds is not None and cache_ttl_seconds <= 0:
            raise ValueError("cache_ttl_seconds must be positive or None")
        self._source_url = source_url
        self._cache_path = Path(cache_path)
        self._cache_ttl = cache_ttl_seconds
        self._session = session or requests.Session()
        self._timeout = timeout
        self._airports: Optional[List[Airport]] = None

    @property
    def cache_path(self) -> Path:
        return self._cache_path

    def _needs_download(self) -> bool:
        if not self._cache_path.exists():
            return True
        if self._cache_ttl is None:
            return False
        age = time.time() - self._cache_path.stat().st_mtime
        return age > self._cache_ttl

    def _download(self) -> None:
        LOGGER.info("Downloading airport dataset from %s", self._source_url)
        try:
            response = self._session.get(self._source_url, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise DirectoryLoadError(f"failed to fetch {self._source_url}: {exc}") from exc
        partial = self._cache_path.with_name(self._cache_path.name + ".part")
        try:
            self._cache_path.parent.mkdir(parents=True, exist_ok=True)
            partial.write_bytes(response.content)
            partial.replace(self._cache_path)
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise DirectoryLoadError(f"failed to write {self._cache_path}: {exc}") from exc

    @perf("reference.load_airports", tags={"component": "reference"})
    def load(self) -> List[Airport]:
        """Download (if the policy says so) and parse the dataset."""
        try:
            if self._needs_download():
                self._download()
            text = self._cache_path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise DirectoryLoadError(f"failed to read {self._cache_path}: {exc}") from exc

        self._airports = parse_airports(text)
        LOGGER.info("Loaded %d airports from %s", len(self._airports), self._cache_path)
        return self._airports

    def airports(self) -> List[Airport]:
        if self._airports is None:
            return self.load()
        return self._airports

    def find_by_metro_code(self, code: str) -> Airport:
        """Return the first airport whose IATA code matches ``code`` (any case)."""
        if not code or len(code) != METRO_CODE_LENGTH:
            raise NotFoundError(f"metro code must be {METRO_CODE_LENGTH} letters, got {code!r}")
        wanted = code.upper()
        for airport in self.airports():
            if airport.iata.upper() == wanted:
                return airport
        raise NotFoundError(f"no city/country match for metro {code!r}")

    def close(self) -> None:
        self._session.close()


__all__ = [
    "AirportDirectory",
    "CACHE_FOREVER",
    "parse_airports",
    "parse_airport_row",
]
