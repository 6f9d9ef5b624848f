"""Configuration utilities for the atlas-probes tools.

This module reads environment variables (optionally from an `.env` file) and
produces an application configuration object consumed across the project.

See `.env.example` for supported keys, including `ATLAS_API_URL`,
`GEOCODING_API_KEY`, `AIRPORTS_CACHE_PATH`, `AIRPORTS_CACHE_TTL`,
`ENRICH_WORKERS`, `LOG_DIR`, `LOG_LEVEL`, and optional `APP_NAME`.

Usage example:

    from atlas_probes.config import load_config

    config = load_config()
    client = AtlasClient(config.atlas_api_url, timeout=config.request_timeout)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Optional

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_ENV_FILE = REPO_ROOT / ".env"

DEFAULT_ATLAS_API_URL = "https://atlas.ripe.net/api/v2/"
DEFAULT_GEOCODING_URL = "https://maps.googleapis.com/maps/api/geocode/json"
DEFAULT_AIRPORTS_URL = (
    "https://raw.githubusercontent.com/jpatokal/openflights/master/data/airports.dat"
)
DEFAULT_AIRPORTS_CACHE_PATH = Path("/tmp/airports.dat")


def _load_env_file(path: Path) -> Dict[str, str]:
    """Parse a dotenv-style file into a dictionary."""
    if not path.exists():
        return {}

    data: Dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = value.strip().strip("\"'")
    return data


def _positive_int(values: Mapping[str, str], key: str, default: int) -> int:
    raw = values.get(key)
    if raw is None or raw == "":
        return default
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc
    if parsed <= 0:
        raise ValueError(f"{key} must be positive, got {parsed}")
    return parsed


def _optional_seconds(values: Mapping[str, str], key: str) -> Optional[float]:
    """Return a positive number of seconds, or None when the key is unset."""
    raw = values.get(key)
    if raw is None or raw.strip() == "":
        return None
    try:
        parsed = float(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number of seconds, got {raw!r}") from exc
    if parsed <= 0:
        raise ValueError(f"{key} must be positive, got {parsed}")
    return parsed


@dataclass(frozen=True)
class AppConfig:
    """Application-level configuration values."""

    log_directory: Path
    log_level: str
    atlas_api_url: str = DEFAULT_ATLAS_API_URL
    geocoding_api_key: Optional[str] = None
    geocoding_url: str = DEFAULT_GEOCODING_URL
    airports_url: str = DEFAULT_AIRPORTS_URL
    airports_cache_path: Path = DEFAULT_AIRPORTS_CACHE_PATH
    # None keeps the downloaded dataset forever.
    airports_cache_ttl: Optional[float] = None
    request_timeout: float = 10.0
    enrich_workers: int = 4
    queue_size: int = 100
    app_name: str = "atlas-probes"


def _merge_envs(dotenv_values: Mapping[str, str], env: MutableMapping[str, str]) -> Dict[str, str]:
    """Merge dotenv values with the current environment, preferring os.environ."""
    merged = dict(dotenv_values)
    merged.update(env)  # os.environ wins
    return merged


def load_config(env_file: Optional[Path] = None) -> AppConfig:
    """Load configuration values using environment defaults."""
    target_file = env_file or DEFAULT_ENV_FILE
    dotenv_values = _load_env_file(target_file)
    merged = _merge_envs(dotenv_values, os.environ)

    log_directory = Path(merged.get("LOG_DIR", REPO_ROOT / "logs"))
    if not log_directory.is_absolute():
        log_directory = REPO_ROOT / log_directory

    log_level = merged.get("LOG_LEVEL", "INFO").upper()

    timeout_raw = merged.get("REQUEST_TIMEOUT") or "10"
    try:
        request_timeout = float(timeout_raw)
    except ValueError as exc:
        raise ValueError(f"REQUEST_TIMEOUT must be a number, got {timeout_raw!r}") from exc
    if request_timeout <= 0:
        raise ValueError("REQUEST_TIMEOUT must be positive")

    api_url = merged.get("ATLAS_API_URL") or DEFAULT_ATLAS_API_URL
    if not api_url.endswith("/"):
        api_url += "/"

    return AppConfig(
        log_directory=log_directory,
        log_level=log_level,
        atlas_api_url=api_url,
        geocoding_api_key=merged.get("GEOCODING_API_KEY") or None,
        geocoding_url=merged.get("GEOCODING_URL") or DEFAULT_GEOCODING_URL,
        airports_url=merged.get("AIRPORTS_URL") or DEFAULT_AIRPORTS_URL,
        airports_cache_path=Path(
            merged.get("AIRPORTS_CACHE_PATH") or DEFAULT_AIRPORTS_CACHE_PATH
        ),
        airports_cache_ttl=_optional_seconds(merged, "AIRPORTS_CACHE_TTL"),
        request_timeout=request_timeout,
        enrich_workers=_positive_int(merged, "ENRICH_WORKERS", 4),
        queue_size=_positive_int(merged, "QUEUE_SIZE", 100),
        app_name=merged.get("APP_NAME", "atlas-probes"),
    )


__all__ = ["AppConfig", "load_config", "REPO_ROOT"]
