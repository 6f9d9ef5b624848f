#!/usr/bin/env python3
"""Command-line entrypoint: list eligible probes near a metro code."""

import argparse
import logging

from atlas_probes.api import AtlasClient, GoogleGeocoder
from atlas_probes.errors import AtlasError
from atlas_probes.logging_utils import configure_from_env, perf_span
from atlas_probes.reference import AirportDirectory
from atlas_probes.selection import ProbeSelector

LOGGER = logging.getLogger(__name__)


def _flag(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"true", "t", "1", "yes", "y"}:
        return True
    if lowered in {"false", "f", "0", "no", "n"}:
        return False
    raise argparse.ArgumentTypeError(f"expected a boolean, got {value!r}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Select RIPE Atlas probes near a metro.")
    parser.add_argument("--metro", default="IAD", help="3-letter metro/IATA code (default: IAD).")
    parser.add_argument(
        "--radius",
        type=float,
        default=10,
        help="Search radius around the metro center in km (default: 10).",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=5,
        help="Maximum number of probes to return (default: 5).",
    )
    parser.add_argument("--v4", type=_flag, default=True, help="Require IPv4 addressing (default: true).")
    parser.add_argument("--v6", type=_flag, default=True, help="Require IPv6 addressing (default: true).")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    config = configure_from_env()
    if config is None:
        return 1
    if not config.geocoding_api_key:
        LOGGER.error("GEOCODING_API_KEY must be set to locate probes")
        return 1

    directory = AirportDirectory(
        config.airports_url,
        config.airports_cache_path,
        cache_ttl_seconds=config.airports_cache_ttl,
        timeout=config.request_timeout,
    )
    geocoder = GoogleGeocoder(
        config.geocoding_api_key,
        timeout=config.request_timeout,
        base_url=config.geocoding_url,
    )
    client = AtlasClient(config.atlas_api_url, timeout=config.request_timeout)
    selector = ProbeSelector(directory, geocoder, client)

    try:
        with perf_span("locate_probes.total", tags={"metro": args.metro}, logger=LOGGER):
            probes = selector.select(args.metro, args.radius, args.count, args.v4, args.v6)
    except AtlasError as exc:
        LOGGER.error("Probe selection failed: %s", exc)
        return 1
    finally:
        client.close()
        geocoder.close()
        directory.close()

    for probe in probes:
        print(
            f"{probe.id}\t{probe.address_v4 or '-'}\t{probe.address_v6 or '-'}\t{probe.country_code}"
        )
    print(",".join(str(probe.id) for probe in probes))
    return 0


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    raise SystemExit(main())
