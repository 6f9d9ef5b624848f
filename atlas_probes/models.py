"""Structured records for airports, probes and measurement results.

API payloads are plain dicts; the ``from_dict`` constructors here tolerate
missing keys (the Atlas API omits null members freely) and normalize types.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Type

from atlas_probes.errors import DecodeError

CONNECTED = "Connected"


def _to_optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_str(value: Any) -> str:
    """Return a trimmed string; None becomes the empty string."""
    if value is None:
        return ""
    return str(value).strip()


def _list_member(payload: Mapping[str, Any], key: str) -> List[Any]:
    """Return the list under ``key``; a missing or null member is an empty list."""
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise DecodeError(f"{key!r} must be a list, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class Airport:
    """One row of the openflights airport dataset."""

    id: int
    name: str
    city: str
    country: str
    iata: str
    icao: str
    latitude: float
    longitude: float
    altitude: int
    utc_offset: float
    dst: str
    tz_database: str
    record_type: str
    source: str


@dataclass(frozen=True)
class ProbeStatus:
    since: str = ""
    id: int = 0
    name: str = ""


@dataclass(frozen=True)
class ProbeTag:
    name: str
    slug: str


@dataclass(frozen=True)
class Geometry:
    type: str = ""
    coordinates: Tuple[float, ...] = ()


@dataclass(frozen=True)
class Probe:
    """A RIPE Atlas probe as returned by the probe index and detail endpoints."""

    id: int
    address_v4: Optional[str] = None
    address_v6: Optional[str] = None
    country_code: str = ""
    status: ProbeStatus = field(default_factory=ProbeStatus)
    tags: Tuple[ProbeTag, ...] = ()
    geometry: Geometry = field(default_factory=Geometry)
    is_public: bool = False
    total_uptime: int = 0
    asn_v4: Optional[int] = None
    asn_v6: Optional[int] = None
    prefix_v4: Optional[str] = None
    prefix_v6: Optional[str] = None
    description: str = ""
    is_anchor: bool = False
    first_connected: Optional[int] = None
    last_connected: Optional[int] = None

    @property
    def is_eligible(self) -> bool:
        """Connected and public: the only probes a measurement may use."""
        return self.status.name == CONNECTED and self.is_public

    @property
    def has_v4(self) -> bool:
        return bool(self.address_v4)

    @property
    def has_v6(self) -> bool:
        return bool(self.address_v6)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Probe":
        if not isinstance(payload, Mapping):
            raise DecodeError(f"probe payload must be an object, got {type(payload).__name__}")
        probe_id = _to_optional_int(payload.get("id"))
        if probe_id is None:
            raise DecodeError(f"probe payload has no usable id: {payload.get('id')!r}")

        status_raw = payload.get("status")
        if not isinstance(status_raw, Mapping):
            status_raw = {}
        status = ProbeStatus(
            since=_to_str(status_raw.get("since")),
            id=_to_optional_int(status_raw.get("id")) or 0,
            name=_to_str(status_raw.get("name")),
        )
        tags = tuple(
            ProbeTag(name=_to_str(tag.get("name")), slug=_to_str(tag.get("slug")))
            for tag in _list_member(payload, "tags")
            if isinstance(tag, Mapping)
        )
        geometry_raw = payload.get("geometry")
        if not isinstance(geometry_raw, Mapping):
            geometry_raw = {}
        coordinates = tuple(
            c for c in (_to_optional_float(v) for v in _list_member(geometry_raw, "coordinates")) if c is not None
        )

        return cls(
            id=probe_id,
            address_v4=_to_str(payload.get("address_v4")) or None,
            address_v6=_to_str(payload.get("address_v6")) or None,
            country_code=_to_str(payload.get("country_code")).upper(),
            status=status,
            tags=tags,
            geometry=Geometry(type=_to_str(geometry_raw.get("type")), coordinates=coordinates),
            is_public=payload.get("is_public") is True,
            total_uptime=_to_optional_int(payload.get("total_uptime")) or 0,
            asn_v4=_to_optional_int(payload.get("asn_v4")),
            asn_v6=_to_optional_int(payload.get("asn_v6")),
            prefix_v4=_to_str(payload.get("prefix_v4")) or None,
            prefix_v6=_to_str(payload.get("prefix_v6")) or None,
            description=_to_str(payload.get("description")),
            is_anchor=payload.get("is_anchor") is True,
            first_connected=_to_optional_int(payload.get("first_connected")),
            last_connected=_to_optional_int(payload.get("last_connected")),
        )


@dataclass(frozen=True)
class MeasurementStatus:
    """Status object for one measurement, including where its results live."""

    id: int
    type: str
    description: str
    status_id: Optional[int]
    status_name: str
    target: str
    target_ip: str
    resolved_ips: Tuple[str, ...]
    result_url: str
    participant_count: Optional[int]
    af: Optional[int]

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MeasurementStatus":
        if not isinstance(payload, Mapping):
            raise DecodeError("measurement payload must be an object")
        measurement_id = _to_optional_int(payload.get("id"))
        if measurement_id is None:
            raise DecodeError(f"measurement payload has no usable id: {payload.get('id')!r}")
        status = payload.get("status")
        if not isinstance(status, Mapping):
            status = {}
        return cls(
            id=measurement_id,
            type=_to_str(payload.get("type")),
            description=_to_str(payload.get("description")),
            status_id=_to_optional_int(status.get("id")),
            status_name=_to_str(status.get("name")),
            target=_to_str(payload.get("target")),
            target_ip=_to_str(payload.get("target_ip")),
            resolved_ips=tuple(_to_str(ip) for ip in _list_member(payload, "resolved_ips")),
            result_url=_to_str(payload.get("result")),
            participant_count=_to_optional_int(payload.get("participant_count")),
            af=_to_optional_int(payload.get("af")),
        )


@dataclass(frozen=True)
class MeasurementResult:
    """One decoded result record.

    Subclasses are the tagged variants; ``latency_field`` names the member of
    the record's ``result`` that carries the numeric latency for that type.
    """

    type: str
    probe_id: Optional[int]
    timestamp: Optional[int]
    latency: Optional[float]
    raw: Dict[str, Any] = field(repr=False, compare=False)

    latency_field: ClassVar[Optional[str]] = None
    aggregated: ClassVar[bool] = True


@dataclass(frozen=True)
class PingResult(MeasurementResult):
    latency_field: ClassVar[Optional[str]] = "rtt"


@dataclass(frozen=True)
class HttpResult(MeasurementResult):
    latency_field: ClassVar[Optional[str]] = "rt"


@dataclass(frozen=True)
class TracerouteResult(MeasurementResult):
    latency_field: ClassVar[Optional[str]] = "rtt"


@dataclass(frozen=True)
class DnsResult(MeasurementResult):
    latency_field: ClassVar[Optional[str]] = "rt"


@dataclass(frozen=True)
class OtherResult(MeasurementResult):
    """Any type without a latency mapping; kept but never averaged."""

    aggregated: ClassVar[bool] = False


RESULT_VARIANTS: Dict[str, Type[MeasurementResult]] = {
    "ping": PingResult,
    "http": HttpResult,
    "traceroute": TracerouteResult,
    "dns": DnsResult,
}


def _strict_number(value: Any, what: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"{what} must be numeric, got {value!r}")
    return float(value)


def _extract_latency(result: Any, latency_field: str, nested: bool = True) -> Optional[float]:
    """Read ``latency_field`` from an object, or from the first list entry that has it.

    Entries without the field but with their own ``result`` list (traceroute
    hops) are searched one level down, in order.
    """
    if isinstance(result, Mapping):
        return _strict_number(result.get(latency_field), latency_field)
    if isinstance(result, list):
        for entry in result:
            if not isinstance(entry, Mapping):
                continue
            if latency_field in entry:
                return _strict_number(entry[latency_field], latency_field)
            if nested and isinstance(entry.get("result"), list):
                latency = _extract_latency(entry["result"], latency_field, nested=False)
                if latency is not None:
                    return latency
    return None


def parse_result(record: Any) -> MeasurementResult:
    """Decode one result record by its ``type`` discriminator.

    Raises:
        DecodeError: when the record is not an object, its ``prb_id`` is not an
            integer, or its latency member is not numeric.
    """
    if not isinstance(record, dict):
        raise DecodeError(f"result record must be an object, got {type(record).__name__}")

    result_type = _to_str(record.get("type")).lower()
    variant = RESULT_VARIANTS.get(result_type, OtherResult)

    raw_probe_id = record.get("prb_id")
    probe_id = _to_optional_int(raw_probe_id)
    if raw_probe_id is not None and (probe_id is None or isinstance(raw_probe_id, float)):
        raise DecodeError(f"prb_id must be an integer, got {raw_probe_id!r}")

    latency = None
    if variant.latency_field is not None:
        latency = _extract_latency(record.get("result"), variant.latency_field)

    return variant(
        type=result_type or "unknown",
        probe_id=probe_id,
        timestamp=_to_optional_int(record.get("timestamp")),
        latency=latency,
        raw=record,
    )


def parse_probe_list(payload: Any) -> List[Probe]:
    """Decode a ``{count, next, previous, results: [...]}`` probe page."""
    if not isinstance(payload, Mapping):
        raise DecodeError("probe query response must be an object")
    results = payload.get("results")
    if results is None:
        return []
    if not isinstance(results, list):
        raise DecodeError("probe query 'results' must be a list")
    return [Probe.from_dict(item) for item in results]


__all__ = [
    "Airport",
    "Probe",
    "ProbeStatus",
    "ProbeTag",
    "Geometry",
    "MeasurementStatus",
    "MeasurementResult",
    "PingResult",
    "HttpResult",
    "TracerouteResult",
    "DnsResult",
    "OtherResult",
    "RESULT_VARIANTS",
    "parse_result",
    "parse_probe_list",
]
