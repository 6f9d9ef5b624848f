"""Per-run memoized probe metadata lookups.

A ``ProbeEnrichmentCache`` belongs to one pipeline invocation. It is shared by
the enrichment workers and read by the aggregator; all mutation goes through
``lookup_or_fetch``.

Guarantee: for one probe id, concurrent callers trigger exactly one remote
fetch and at most one increment of that probe's country counter. The first
caller for an id becomes the owner of an in-flight ``Future``; later callers
for the same id wait on it, while callers for other ids proceed in parallel.
Failed fetches are not cached, so a later call may retry.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Dict, Optional, Tuple

from atlas_probes.errors import AtlasError
from atlas_probes.models import Probe

LOGGER = logging.getLogger(__name__)


class ProbeEnrichmentCache:
    def __init__(self, fetch_probe: Callable[[int], Probe]) -> None:
        self._fetch_probe = fetch_probe
        self._lock = threading.Lock()
        self._probes: Dict[int, Probe] = {}
        self._countries: Dict[str, int] = {}
        self._inflight: Dict[int, "Future[Optional[Probe]]"] = {}
        self._fetch_count = 0

    def lookup_or_fetch(self, probe_id: int) -> Tuple[Optional[Probe], bool]:
        """Return ``(probe, enriched)``, fetching the probe once if unseen.

        ``enriched`` is False (and ``probe`` None) when the fetch failed; the
        failure is logged and nothing is cached.
        """
        with self._lock:
            cached = self._probes.get(probe_id)
            if cached is not None:
                return cached, True
            pending = self._inflight.get(probe_id)
            owner = pending is None
            if owner:
                pending = Future()
                self._inflight[probe_id] = pending

        if not owner:
            probe = pending.result()
            return probe, probe is not None

        probe: Optional[Probe] = None
        try:
            probe = self._fetch_probe(probe_id)
        except AtlasError as exc:
            LOGGER.warning("Probe %s enrichment failed: %s", probe_id, exc)
        except Exception:
            LOGGER.exception("Probe %s enrichment raised an unexpected error", probe_id)
            raise
        finally:
            with self._lock:
                self._fetch_count += 1
                if probe is not None:
                    self._probes[probe_id] = probe
                    if probe.country_code:
                        self._countries[probe.country_code] = (
                            self._countries.get(probe.country_code, 0) + 1
                        )
                del self._inflight[probe_id]
            pending.set_result(probe)

        return probe, probe is not None

    def get(self, probe_id: int) -> Optional[Probe]:
        """Non-blocking read of an already fetched probe."""
        with self._lock:
            return self._probes.get(probe_id)

    def __contains__(self, probe_id: int) -> bool:
        with self._lock:
            return probe_id in self._probes

    @property
    def probes_seen(self) -> int:
        with self._lock:
            return len(self._probes)

    @property
    def countries(self) -> Dict[str, int]:
        """Snapshot of country code -> number of distinct probes fetched."""
        with self._lock:
            return dict(self._countries)

    @property
    def fetch_count(self) -> int:
        """Remote fetches attempted so far, failures included."""
        with self._lock:
            return self._fetch_count


__all__ = ["ProbeEnrichmentCache"]
