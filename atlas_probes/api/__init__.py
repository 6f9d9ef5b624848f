"""Remote API clients: RIPE Atlas and the geocoding provider."""

from atlas_probes.api.atlas import AtlasClient, ResultStream
from atlas_probes.api.geocoding import GoogleGeocoder

__all__ = ["AtlasClient", "ResultStream", "GoogleGeocoder"]
