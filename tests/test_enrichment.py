import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from atlas_probes.errors import NetworkError
from atlas_probes.pipeline.enrichment import ProbeEnrichmentCache


class CountingFetcher:
    """Fake ``fetch_probe`` that records calls and can be held open."""

    def __init__(self, make_probe, country="DE", fail_ids=()):
        self._make_probe = make_probe
        self._country = country
        self._fail_ids = set(fail_ids)
        self.calls = []
        self.release = threading.Event()
        self.started = threading.Event()
        self._lock = threading.Lock()

    def __call__(self, probe_id):
        with self._lock:
            self.calls.append(probe_id)
        self.started.set()
        assert self.release.wait(timeout=5)
        if probe_id in self._fail_ids:
            raise NetworkError(f"probe {probe_id} unavailable")
        return self._make_probe(probe_id, country=self._country)


def test_concurrent_lookups_fetch_once(make_probe):
    fetcher = CountingFetcher(make_probe)
    cache = ProbeEnrichmentCache(fetcher)
    callers = 16
    barrier = threading.Barrier(callers)

    def lookup():
        barrier.wait(timeout=5)
        return cache.lookup_or_fetch(7)

    with ThreadPoolExecutor(max_workers=callers) as executor:
        futures = [executor.submit(lookup) for _ in range(callers)]
        assert fetcher.started.wait(timeout=5)
        fetcher.release.set()
        results = [f.result(timeout=5) for f in futures]

    assert fetcher.calls == [7]
    assert cache.fetch_count == 1
    assert cache.countries == {"DE": 1}
    assert all(enriched for _, enriched in results)
    assert {probe.id for probe, _ in results} == {7}


def test_cached_probe_is_returned_without_refetch(make_probe):
    fetcher = CountingFetcher(make_probe, country="NL")
    fetcher.release.set()
    cache = ProbeEnrichmentCache(fetcher)

    first, _ = cache.lookup_or_fetch(3)
    second, enriched = cache.lookup_or_fetch(3)

    assert first is second
    assert enriched is True
    assert fetcher.calls == [3]
    assert cache.countries == {"NL": 1}
    assert cache.get(3) is first
    assert 3 in cache


def test_distinct_ids_fetch_in_parallel(make_probe):
    first_started = threading.Event()
    second_started = threading.Event()

    def fetch(probe_id):
        if probe_id == 1:
            first_started.set()
            # Blocks until id 2 is being fetched at the same time.
            assert second_started.wait(timeout=5)
        else:
            assert first_started.wait(timeout=5)
            second_started.set()
        return make_probe(probe_id, country="US" if probe_id == 1 else "FR")

    cache = ProbeEnrichmentCache(fetch)
    with ThreadPoolExecutor(max_workers=2) as executor:
        futures = [executor.submit(cache.lookup_or_fetch, i) for i in (1, 2)]
        results = [f.result(timeout=10) for f in futures]

    assert [probe.id for probe, _ in results] == [1, 2]
    assert cache.probes_seen == 2
    assert cache.countries == {"US": 1, "FR": 1}


def test_failed_fetch_is_not_cached(make_probe):
    attempts = []

    def fetch(probe_id):
        attempts.append(probe_id)
        if len(attempts) == 1:
            raise NetworkError("timeout")
        return make_probe(probe_id, country="JP")

    cache = ProbeEnrichmentCache(fetch)

    assert cache.lookup_or_fetch(5) == (None, False)
    assert cache.get(5) is None
    assert cache.countries == {}

    probe, enriched = cache.lookup_or_fetch(5)

    assert enriched is True
    assert probe.id == 5
    assert attempts == [5, 5]
    assert cache.countries == {"JP": 1}


def test_waiters_share_a_failed_fetch(make_probe):
    fetcher = CountingFetcher(make_probe, fail_ids={9})
    cache = ProbeEnrichmentCache(fetcher)

    with ThreadPoolExecutor(max_workers=4) as executor:
        futures = [executor.submit(cache.lookup_or_fetch, 9) for _ in range(4)]
        assert fetcher.started.wait(timeout=5)
        fetcher.release.set()
        results = [f.result(timeout=5) for f in futures]

    assert all(result == (None, False) for result in results)
    assert cache.probes_seen == 0


def test_unexpected_errors_propagate_and_release_waiters(make_probe):
    def fetch(probe_id):
        raise RuntimeError("bug")

    cache = ProbeEnrichmentCache(fetch)

    with pytest.raises(RuntimeError):
        cache.lookup_or_fetch(1)
    # The in-flight slot was cleared, so the next call fetches again.
    with pytest.raises(RuntimeError):
        cache.lookup_or_fetch(1)
    assert cache.fetch_count == 2


def test_countries_counts_distinct_probes(make_probe):
    countries = {1: "DE", 2: "DE", 3: "US", 4: ""}
    cache = ProbeEnrichmentCache(lambda i: make_probe(i, country=countries[i]))

    for probe_id in (1, 2, 3, 4, 1, 2):
        cache.lookup_or_fetch(probe_id)

    assert cache.countries == {"DE": 2, "US": 1}
    assert cache.probes_seen == 4
    assert cache.fetch_count == 4
