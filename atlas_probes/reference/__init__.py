"""Reference data used to anchor probe searches."""

from atlas_probes.reference.airports import CACHE_FOREVER, AirportDirectory

__all__ = ["AirportDirectory", "CACHE_FOREVER"]
