#!/usr/bin/env python3
"""Command-line entrypoint: list measurement ids carrying the given tags."""

import argparse
import logging

from atlas_probes.api import AtlasClient
from atlas_probes.errors import AtlasError
from atlas_probes.logging_utils import configure_from_env

LOGGER = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Find RIPE Atlas measurements by tag.")
    parser.add_argument("tags", help="Comma separated list of tags to search for.")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    config = configure_from_env()
    if config is None:
        return 1

    try:
        with AtlasClient(config.atlas_api_url, timeout=config.request_timeout) as client:
            ids = client.search_measurements(args.tags.split(","))
    except (AtlasError, ValueError) as exc:
        LOGGER.error("Measurement search failed: %s", exc)
        return 1

    for measurement_id in ids:
        print(measurement_id)
    return 0


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    raise SystemExit(main())
