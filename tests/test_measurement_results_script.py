import sys
from pathlib import Path

# Ensure repo root is on sys.path for absolute imports like scripts.*
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from atlas_probes.models import parse_result  # noqa: E402
from scripts.measurement_results import format_result  # noqa: E402


def test_format_result_includes_probe_country(make_probe):
    result = parse_result({"type": "ping", "prb_id": 12, "result": {"rtt": 3.14159}})

    line = format_result(result, make_probe(12, country="se"))

    assert line == "ping\tprobe=12\tlatency=3.142\tcountry=SE"


def test_format_result_without_enrichment():
    result = parse_result({"type": "dns", "prb_id": 12})

    assert format_result(result, None) == "dns\tprobe=12\tlatency=-\tcountry=?"
