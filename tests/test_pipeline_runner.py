import io
import logging
import threading
from unittest.mock import MagicMock

import pytest

from atlas_probes.errors import DecodeError, NetworkError
from atlas_probes.models import MeasurementStatus
from atlas_probes.pipeline.enrichment import ProbeEnrichmentCache
from atlas_probes.pipeline.runner import run_measurement, run_results_pipeline
from conftest import byte_stream


class TrackingFetcher:
    """Fake probe lookup recording calls and peak concurrency."""

    def __init__(self, make_probe, fail_ids=(), delay=0.0):
        self._make_probe = make_probe
        self._fail_ids = set(fail_ids)
        self._delay = delay
        self._lock = threading.Lock()
        self._active = 0
        self.peak = 0
        self.calls = []

    def __call__(self, probe_id):
        with self._lock:
            self.calls.append(probe_id)
            self._active += 1
            self.peak = max(self.peak, self._active)
        try:
            if self._delay:
                threading.Event().wait(self._delay)
            if probe_id in self._fail_ids:
                raise NetworkError(f"probe {probe_id} lookup failed")
            return self._make_probe(probe_id, country="DE" if probe_id % 2 else "US")
        finally:
            with self._lock:
                self._active -= 1


def _records(probe_ids):
    return [
        {"type": "ping", "prb_id": probe_id, "timestamp": 1000 + i, "result": {"rtt": float(i)}}
        for i, probe_id in enumerate(probe_ids)
    ]


def test_results_reach_consumer_in_decoder_order(make_probe):
    probe_ids = [5, 3, 5, 9, 1, 3, 7, 2, 9, 4]
    seen = []

    summary = run_results_pipeline(
        byte_stream(_records(probe_ids)),
        TrackingFetcher(make_probe),
        workers=3,
        queue_size=2,
        on_result=lambda result, probe: seen.append(result.timestamp),
    )

    assert seen == [1000 + i for i in range(len(probe_ids))]
    assert summary.records == len(probe_ids)
    assert summary.types["ping"].count == len(probe_ids)


def test_each_distinct_probe_is_fetched_once(make_probe):
    probe_ids = [1, 2, 1, 3, 2, 1, 4, 4, 4, 3] * 5
    fetcher = TrackingFetcher(make_probe, delay=0.01)

    summary = run_results_pipeline(byte_stream(_records(probe_ids)), fetcher, workers=2, queue_size=4)

    assert sorted(fetcher.calls) == [1, 2, 3, 4]
    assert summary.probes_seen == 4
    assert summary.probes_enriched == 4
    assert summary.countries_seen == 2


def test_fetch_concurrency_is_bounded_by_workers(make_probe):
    fetcher = TrackingFetcher(make_probe, delay=0.02)

    run_results_pipeline(byte_stream(_records(range(1, 41))), fetcher, workers=3, queue_size=8)

    assert len(fetcher.calls) == 40
    assert 1 <= fetcher.peak <= 3


def test_enrichment_failure_is_not_fatal(make_probe):
    fetcher = TrackingFetcher(make_probe, fail_ids={2})
    joined = {}

    summary = run_results_pipeline(
        byte_stream(_records([1, 2, 3])),
        fetcher,
        workers=2,
        on_result=lambda result, probe: joined.setdefault(result.probe_id, probe),
    )

    assert summary.records == 3
    assert summary.probes_seen == 3
    assert summary.probes_enriched == 2
    assert joined[2] is None


def test_shared_cache_outlives_the_run(make_probe):
    fetcher = TrackingFetcher(make_probe)
    cache = ProbeEnrichmentCache(fetcher)

    run_results_pipeline(byte_stream(_records([8, 8, 9])), fetcher, cache=cache)
    run_results_pipeline(byte_stream(_records([9, 8])), fetcher, cache=cache)

    assert sorted(fetcher.calls) == [8, 9]
    assert cache.probes_seen == 2


def test_malformed_stream_raises_decode_error(make_probe):
    body = b'[{"type": "ping", "prb_id": 1, "result": {"rtt": 1.0}}, {"type": "ping", "prb_id": '
    seen = []

    with pytest.raises(DecodeError):
        run_results_pipeline(
            io.BytesIO(body),
            TrackingFetcher(make_probe),
            on_result=lambda result, probe: seen.append(result.probe_id),
        )

    assert seen == [1]


def test_callback_error_tears_down_pipeline(make_probe):
    def explode(result, probe):
        raise RuntimeError("consumer failed")

    with pytest.raises(RuntimeError):
        run_results_pipeline(
            byte_stream(_records(range(500))),
            TrackingFetcher(make_probe),
            workers=2,
            queue_size=1,
            on_result=explode,
        )


def test_empty_array_gives_empty_summary(make_probe):
    fetcher = TrackingFetcher(make_probe)

    summary = run_results_pipeline(io.BytesIO(b"[]"), fetcher)

    assert summary.records == 0
    assert summary.types == {}
    assert fetcher.calls == []


@pytest.mark.parametrize("kwargs", [{"workers": 0}, {"queue_size": 0}, {"workers": -2}])
def test_rejects_non_positive_sizes(make_probe, kwargs):
    with pytest.raises(ValueError):
        run_results_pipeline(io.BytesIO(b"[]"), TrackingFetcher(make_probe), **kwargs)


def _status(result_url="https://atlas.example/api/v2/measurements/77/results/"):
    return MeasurementStatus.from_dict(
        {"id": 77, "type": "ping", "status": {"id": 2, "name": "Ongoing"}, "result": result_url}
    )


def test_run_measurement_streams_the_result_url(make_probe):
    client = MagicMock()
    client.fetch_measurement.return_value = _status()
    client.open_result_stream.return_value.__enter__.return_value = byte_stream(_records([1, 2, 1]))
    client.fetch_probe.side_effect = lambda probe_id: make_probe(probe_id)

    status, summary = run_measurement(client, 77, workers=2)

    client.fetch_measurement.assert_called_once_with(77)
    client.open_result_stream.assert_called_once_with(
        "https://atlas.example/api/v2/measurements/77/results/"
    )
    assert status.status_name == "Ongoing"
    assert summary.records == 3
    assert summary.probes_enriched == 2


def test_run_measurement_without_result_url():
    client = MagicMock()
    client.fetch_measurement.return_value = _status(result_url="")

    with pytest.raises(DecodeError):
        run_measurement(client, 77)
    client.open_result_stream.assert_not_called()


def test_unexpected_enrichment_error_is_logged(caplog):
    def fetch(probe_id):
        raise TypeError("'int' object is not iterable")

    with caplog.at_level(logging.ERROR, logger="atlas_probes.pipeline.enrichment"):
        summary = run_results_pipeline(byte_stream(_records([4])), fetch, workers=1)

    assert summary.records == 1
    assert summary.probes_enriched == 0
    failures = [r for r in caplog.records if r.name == "atlas_probes.pipeline.enrichment"]
    assert len(failures) == 1
    assert "Probe 4" in failures[0].getMessage()
    assert failures[0].exc_info[0] is TypeError
