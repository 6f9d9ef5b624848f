"""Select measurement probes near a metro.

``ProbeSelector.select`` chains the airport directory, the geocoder and one
Atlas radius query, then filters client side:

1. eligibility: status ``Connected`` and public;
2. address family, as an exact partition of the two flags:

   ============  ============  =====================================
   want_v4       want_v6       probe must have
   ============  ============  =====================================
   True          False         a v4 address and no v6 address
   False         True          a v6 address and no v4 address
   True          True          both addresses
   False         False         nothing matches (empty selection)
   ============  ============  =====================================

3. truncation to the first ``count`` probes in server (id ascending) order.
"""

import logging
from typing import Iterable, List

from atlas_probes.api.atlas import AtlasClient
from atlas_probes.api.geocoding import GoogleGeocoder
from atlas_probes.errors import ValidationError
from atlas_probes.logging_utils import perf
from atlas_probes.models import Probe
from atlas_probes.reference.airports import METRO_CODE_LENGTH, AirportDirectory

LOGGER = logging.getLogger(__name__)


def matches_address_family(probe: Probe, want_v4: bool, want_v6: bool) -> bool:
    """Return True when ``probe`` falls in the partition cell for the flags."""
    if want_v4 and not want_v6:
        return probe.has_v4 and not probe.has_v6
    if want_v6 and not want_v4:
        return probe.has_v6 and not probe.has_v4
    if want_v4 and want_v6:
        return probe.has_v4 and probe.has_v6
    return False


def filter_probes(probes: Iterable[Probe], count: int, want_v4: bool, want_v6: bool) -> List[Probe]:
    """Apply eligibility and address-family filters, keep the first ``count``."""
    selected: List[Probe] = []
    if count <= 0:
        return selected
    for probe in probes:
        if not probe.is_eligible:
            continue
        if not matches_address_family(probe, want_v4, want_v6):
            continue
        selected.append(probe)
        if len(selected) == count:
            break
    return selected


def validate_request(metro: str, radius_km: float, count: int) -> None:
    if not isinstance(metro, str) or len(metro) != METRO_CODE_LENGTH:
        raise ValidationError(f"metro must be a {METRO_CODE_LENGTH}-letter code, got {metro!r}")
    if radius_km is None or radius_km <= 0:
        raise ValidationError(f"radius_km must be positive, got {radius_km!r}")
    if count is None or count < 0:
        raise ValidationError(f"count must be non-negative, got {count!r}")


class ProbeSelector:
    """Orchestrates metro resolution, geocoding and the probe radius query."""

    def __init__(
        self,
        directory: AirportDirectory,
        geocoder: GoogleGeocoder,
        probe_index: AtlasClient,
    ) -> None:
        self._directory = directory
        self._geocoder = geocoder
        self._probe_index = probe_index

    @perf("selection.select", tags={"component": "selection"})
    def select(
        self,
        metro: str,
        radius_km: float,
        count: int,
        want_v4: bool,
        want_v6: bool,
    ) -> List[Probe]:
        """Return up to ``count`` eligible probes near ``metro``, lowest ids first.

        Raises:
            ValidationError: bad metro code, radius or count; no call is made.
            NotFoundError: the metro code is not in the airport directory.
            DirectoryLoadError: the airport dataset could not be loaded.
            GeocodeFailure: the city/country did not geocode.
            NetworkError, DecodeError: the probe query failed.
        """
        validate_request(metro, radius_km, count)

        airport = self._directory.find_by_metro_code(metro)
        LOGGER.info("Metro %s resolved to %s, %s", metro.upper(), airport.city, airport.country)

        latitude, longitude = self._geocoder.resolve(airport.city, airport.country)
        candidates = self._probe_index.search_probes(latitude, longitude, radius_km)

        selected = filter_probes(candidates, count, want_v4, want_v6)
        LOGGER.info(
            "Selected %d of %d probes near %s (radius=%s v4=%s v6=%s)",
            len(selected),
            len(candidates),
            metro.upper(),
            radius_km,
            want_v4,
            want_v6,
        )
        return selected


__all__ = [
    "ProbeSelector",
    "filter_probes",
    "matches_address_family",
    "validate_request",
]
