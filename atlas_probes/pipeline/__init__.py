"""Streaming measurement result pipeline.

Exports:
- ``decode_results``: lazy decoding of a streamed result array.
- ``ProbeEnrichmentCache``: per-run memoized probe lookups.
- ``ResultAggregator``: running per-type statistics.
- ``run_results_pipeline`` / ``run_measurement``: the concurrent pipeline.
"""

from atlas_probes.pipeline.aggregator import ResultAggregator, ResultSummary, TypeStats
from atlas_probes.pipeline.decoder import decode_results
from atlas_probes.pipeline.enrichment import ProbeEnrichmentCache
from atlas_probes.pipeline.runner import run_measurement, run_results_pipeline

__all__ = [
    "ResultAggregator",
    "ResultSummary",
    "TypeStats",
    "decode_results",
    "ProbeEnrichmentCache",
    "run_measurement",
    "run_results_pipeline",
]
