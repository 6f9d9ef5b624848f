"""Running per-type statistics over decoded measurement results."""

from dataclasses import dataclass, replace
from typing import Dict, Optional, Set

from atlas_probes.models import MeasurementResult, Probe
from atlas_probes.pipeline.enrichment import ProbeEnrichmentCache


@dataclass
class TypeStats:
    """Count and running latency mean for one result type.

    ``count`` includes records without a latency value; ``samples`` does not.
    """

    count: int = 0
    samples: int = 0
    total: float = 0.0

    @property
    def mean(self) -> Optional[float]:
        if not self.samples:
            return None
        return self.total / self.samples

    def add(self, latency: Optional[float]) -> None:
        self.count += 1
        if latency is not None:
            self.samples += 1
            self.total += latency


@dataclass(frozen=True)
class ResultSummary:
    records: int
    types: Dict[str, TypeStats]
    unknown: int
    probes_seen: int
    probes_enriched: int
    countries_seen: int

    def mean(self, result_type: str) -> Optional[float]:
        stats = self.types.get(result_type)
        return stats.mean if stats else None


class ResultAggregator:
    """Consumes results strictly in the order given to ``add``.

    Enrichment is a side channel: ``add`` peeks at the cache without waiting,
    so a probe that is not fetched yet (or failed) simply comes back as None.
    """

    def __init__(self, cache: Optional[ProbeEnrichmentCache] = None) -> None:
        self._cache = cache
        self._types: Dict[str, TypeStats] = {}
        self._unknown = 0
        self._records = 0
        self._probe_ids: Set[int] = set()

    def add(self, result: MeasurementResult) -> Optional[Probe]:
        self._records += 1
        if result.aggregated:
            self._types.setdefault(result.type, TypeStats()).add(result.latency)
        else:
            self._unknown += 1

        if result.probe_id is None:
            return None
        self._probe_ids.add(result.probe_id)
        if self._cache is None:
            return None
        return self._cache.get(result.probe_id)

    def summary(self) -> ResultSummary:
        """Snapshot of the statistics so far; safe to call mid-stream."""
        return ResultSummary(
            records=self._records,
            types={name: replace(stats) for name, stats in self._types.items()},
            unknown=self._unknown,
            probes_seen=len(self._probe_ids),
            probes_enriched=self._cache.probes_seen if self._cache else 0,
            countries_seen=len(self._cache.countries) if self._cache else 0,
        )


__all__ = ["ResultAggregator", "ResultSummary", "TypeStats"]
