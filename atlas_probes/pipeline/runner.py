"""Three-stage result pipeline: decode -> enrich -> aggregate.

Stage 1 is one thread decoding the result stream. Each record is put on a
bounded record queue and its probe id on a bounded probe-id queue; blocking
puts push back on the decoder when a downstream stage falls behind.

Stage 2 is one dispatcher thread reading probe ids and submitting cache
misses to a fixed-width ``ThreadPoolExecutor``. A semaphore bounds the number
of submitted-but-unfinished lookups so the executor's own queue stays small.

Stage 3 runs on the calling thread and aggregates records strictly in decoder
order. Enrichment never gates aggregation: records are joined with whatever
the cache holds at that moment.

A decode or stream failure stops every stage and is re-raised to the caller;
enrichment failures only leave the affected records unenriched.
"""

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import BinaryIO, Callable, Dict, Optional, Tuple

from atlas_probes.api.atlas import AtlasClient
from atlas_probes.errors import DecodeError
from atlas_probes.logging_utils import perf, perf_span
from atlas_probes.models import MeasurementResult, MeasurementStatus, Probe
from atlas_probes.pipeline.aggregator import ResultAggregator, ResultSummary
from atlas_probes.pipeline.decoder import decode_results
from atlas_probes.pipeline.enrichment import ProbeEnrichmentCache

LOGGER = logging.getLogger(__name__)

DEFAULT_WORKERS = 4
DEFAULT_QUEUE_SIZE = 100
POLL_SECONDS = 0.1

_DONE = object()


@dataclass(frozen=True)
class _Failure:
    error: BaseException


def _put(target: queue.Queue, item, stop: threading.Event) -> bool:
    """Blocking put that gives up once ``stop`` is set."""
    while not stop.is_set():
        try:
            target.put(item, timeout=POLL_SECONDS)
            return True
        except queue.Full:
            continue
    return False


def _get(source: queue.Queue, stop: threading.Event):
    while not stop.is_set():
        try:
            return source.get(timeout=POLL_SECONDS)
        except queue.Empty:
            continue
    return _DONE


def _decode_stage(
    stream: BinaryIO,
    records: queue.Queue,
    probe_ids: queue.Queue,
    stop: threading.Event,
) -> None:
    try:
        for result in decode_results(stream):
            if result.probe_id is not None and not _put(probe_ids, result.probe_id, stop):
                return
            if not _put(records, result, stop):
                return
    except Exception as exc:  # noqa: BLE001 - handed to the consumer thread
        _put(records, _Failure(exc), stop)
    else:
        _put(records, _DONE, stop)
    finally:
        _put(probe_ids, _DONE, stop)


def _dispatch_stage(
    probe_ids: queue.Queue,
    cache: ProbeEnrichmentCache,
    executor: ThreadPoolExecutor,
    slots: threading.Semaphore,
    stop: threading.Event,
) -> None:
    pending: Dict[int, Future] = {}
    while True:
        probe_id = _get(probe_ids, stop)
        if probe_id is _DONE:
            return
        if probe_id in cache:
            continue
        previous = pending.get(probe_id)
        if previous is not None and not previous.done():
            continue
        while not slots.acquire(timeout=POLL_SECONDS):
            if stop.is_set():
                return
        future = executor.submit(cache.lookup_or_fetch, probe_id)
        future.add_done_callback(lambda _: slots.release())
        pending[probe_id] = future


@perf("pipeline.run", tags={"component": "pipeline"})
def run_results_pipeline(
    stream: BinaryIO,
    fetch_probe: Callable[[int], Probe],
    *,
    workers: int = DEFAULT_WORKERS,
    queue_size: int = DEFAULT_QUEUE_SIZE,
    on_result: Optional[Callable[[MeasurementResult, Optional[Probe]], None]] = None,
    cache: Optional[ProbeEnrichmentCache] = None,
) -> ResultSummary:
    """Decode ``stream``, enrich probe ids via ``fetch_probe`` and aggregate.

    Args:
        stream: Open binary stream holding a JSON array of result records.
        fetch_probe: Remote lookup for one probe id (e.g. ``AtlasClient.fetch_probe``).
        workers: Width of the enrichment worker pool.
        queue_size: Capacity of each inter-stage queue.
        on_result: Optional callback per aggregated record with its probe (or None).
        cache: Optional pre-built cache; a fresh one is created per run otherwise.

    Raises:
        DecodeError, NetworkError: the stream failed; the pipeline is torn down.
    """
    if workers <= 0:
        raise ValueError("workers must be positive")
    if queue_size <= 0:
        raise ValueError("queue_size must be positive")

    cache = cache or ProbeEnrichmentCache(fetch_probe)
    aggregator = ResultAggregator(cache)
    records: queue.Queue = queue.Queue(maxsize=queue_size)
    probe_ids: queue.Queue = queue.Queue(maxsize=queue_size)
    stop = threading.Event()
    slots = threading.BoundedSemaphore(workers * 2)

    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="atlas-enrich")
    producer = threading.Thread(
        target=_decode_stage,
        args=(stream, records, probe_ids, stop),
        name="atlas-decode",
        daemon=True,
    )
    dispatcher = threading.Thread(
        target=_dispatch_stage,
        args=(probe_ids, cache, executor, slots, stop),
        name="atlas-dispatch",
        daemon=True,
    )
    producer.start()
    dispatcher.start()

    try:
        while True:
            item = records.get()
            if item is _DONE:
                break
            if isinstance(item, _Failure):
                raise item.error
            probe = aggregator.add(item)
            if on_result is not None:
                on_result(item, probe)
    except BaseException:
        stop.set()
        raise
    finally:
        producer.join()
        dispatcher.join()
        executor.shutdown(wait=True, cancel_futures=stop.is_set())

    summary = aggregator.summary()
    LOGGER.info(
        "Pipeline done: records=%d unknown=%d probes=%d enriched=%d countries=%d",
        summary.records,
        summary.unknown,
        summary.probes_seen,
        summary.probes_enriched,
        summary.countries_seen,
    )
    return summary


def run_measurement(
    client: AtlasClient,
    measurement_id: int,
    *,
    workers: int = DEFAULT_WORKERS,
    queue_size: int = DEFAULT_QUEUE_SIZE,
    on_result: Optional[Callable[[MeasurementResult, Optional[Probe]], None]] = None,
) -> Tuple[MeasurementStatus, ResultSummary]:
    """Fetch a measurement's status, then stream and aggregate its results."""
    status = client.fetch_measurement(measurement_id)
    if not status.result_url:
        raise DecodeError(f"measurement {measurement_id} has no result URL")
    LOGGER.info(
        "Measurement %s (%s, %s): results at %s",
        status.id,
        status.type,
        status.status_name,
        status.result_url,
    )

    with perf_span("pipeline.measurement", tags={"measurement": measurement_id}, logger=LOGGER):
        with client.open_result_stream(status.result_url) as stream:
            summary = run_results_pipeline(
                stream,
                client.fetch_probe,
                workers=workers,
                queue_size=queue_size,
                on_result=on_result,
            )
    return status, summary


__all__ = ["run_results_pipeline", "run_measurement"]
