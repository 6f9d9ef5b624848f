"""Fixtures for integration tests that hit the live RIPE Atlas API."""

import os
from typing import Generator

import pytest

from atlas_probes.api.atlas import AtlasClient
from atlas_probes.config import AppConfig, load_config


@pytest.fixture(scope="session")
def app_config() -> AppConfig:
    if os.environ.get("ATLAS_INTEGRATION") != "1":
        pytest.skip("Set ATLAS_INTEGRATION=1 to run tests against the live Atlas API.")
    return load_config()


@pytest.fixture(scope="session")
def atlas_client(app_config: AppConfig) -> Generator[AtlasClient, None, None]:
    client = AtlasClient(app_config.atlas_api_url, timeout=app_config.request_timeout)
    yield client
    client.close()
