#!/usr/bin/env python3
"""Command-line entrypoint: stream and summarize a measurement's results."""

import argparse
import logging
from typing import Optional

from atlas_probes.api import AtlasClient
from atlas_probes.errors import AtlasError
from atlas_probes.logging_utils import configure_from_env
from atlas_probes.models import MeasurementResult, Probe
from atlas_probes.pipeline import run_measurement

LOGGER = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summarize RIPE Atlas measurement results.")
    parser.add_argument("mid", type=int, help="Measurement id to fetch results for.")
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Probe enrichment workers (default: ENRICH_WORKERS or 4).",
    )
    parser.add_argument(
        "--queue-size",
        type=int,
        default=None,
        help="Capacity of each pipeline queue (default: QUEUE_SIZE or 100).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print every result record with its probe's country as it is aggregated.",
    )
    return parser.parse_args()


def format_result(result: MeasurementResult, probe: Optional[Probe]) -> str:
    latency = f"{result.latency:.3f}" if result.latency is not None else "-"
    country = probe.country_code if probe is not None and probe.country_code else "?"
    return f"{result.type}\tprobe={result.probe_id}\tlatency={latency}\tcountry={country}"


def _print_result(result: MeasurementResult, probe: Optional[Probe]) -> None:
    print(format_result(result, probe))


def main() -> int:
    args = parse_args()
    config = configure_from_env(run_id=f"mid-{args.mid}")
    if config is None:
        return 1

    try:
        with AtlasClient(config.atlas_api_url, timeout=config.request_timeout) as client:
            status, summary = run_measurement(
                client,
                args.mid,
                workers=args.workers or config.enrich_workers,
                queue_size=args.queue_size or config.queue_size,
                on_result=_print_result if args.verbose else None,
            )
    except (AtlasError, ValueError) as exc:
        LOGGER.error("Measurement %s failed: %s", args.mid, exc)
        return 1

    print(f"Measurement {status.id} ({status.type}) targets: {', '.join(status.resolved_ips) or '-'}")
    for name in sorted(summary.types):
        stats = summary.types[name]
        mean = f"{stats.mean:.5f}" if stats.mean is not None else "-"
        print(f"{name}\tcount={stats.count}\tmean={mean}")
    print(f"unknown\tcount={summary.unknown}")
    print(f"probes={summary.probes_seen} enriched={summary.probes_enriched} countries={summary.countries_seen}")
    return 0


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    raise SystemExit(main())
