"""Shared pytest fixtures for the atlas_probes tests.

Provides reusable fakes, payload builders and configuration objects so tests
stay deterministic and never touch the network.
"""

import io
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from atlas_probes.config import AppConfig
from atlas_probes.models import Probe

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Application config fixture.

    Points logging and the airport cache to a temporary directory.
    """
    return AppConfig(
        log_directory=tmp_path,
        log_level="INFO",
        airports_cache_path=tmp_path / "airports.dat",
    )


@pytest.fixture
def airports_sample_path() -> Path:
    """Absolute path to the sample openflights-format dataset."""
    return FIXTURES_DIR / "airports_sample.dat"


def make_probe_payload(
    probe_id: int,
    *,
    v4: Optional[str] = "192.0.2.1",
    v6: Optional[str] = "2001:db8::1",
    status: str = "Connected",
    public: bool = True,
    country: str = "US",
) -> Dict[str, Any]:
    return {
        "id": probe_id,
        "address_v4": v4,
        "address_v6": v6,
        "asn_v4": 64500,
        "asn_v6": 64500,
        "country_code": country,
        "description": f"probe {probe_id}",
        "geometry": {"type": "Point", "coordinates": [-77.4, 38.9]},
        "is_anchor": False,
        "is_public": public,
        "status": {"id": 1, "name": status, "since": "2024-01-01T00:00:00Z"},
        "tags": [{"name": "Home", "slug": "home"}],
        "total_uptime": 1000,
    }


@pytest.fixture
def probe_payload() -> Callable[..., Dict[str, Any]]:
    """Factory building probe JSON objects as the Atlas API returns them."""
    return make_probe_payload


@pytest.fixture
def make_probe() -> Callable[..., Probe]:
    def _make(probe_id: int, **kwargs: Any) -> Probe:
        return Probe.from_dict(make_probe_payload(probe_id, **kwargs))

    return _make


def json_response(payload: Any, status_code: int = 200) -> MagicMock:
    """MagicMock shaped like a ``requests.Response`` carrying ``payload``."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def byte_stream(records: List[Dict[str, Any]]) -> io.BytesIO:
    return io.BytesIO(json.dumps(records).encode("utf-8"))
