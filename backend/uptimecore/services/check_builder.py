"""Shapes probe results into type-specific check records."""
from dataclasses import asdict
from typing import Any, Callable

from .network import (
    ProbeResult,
    TYPE_DISTRIBUTED_HTTP,
    TYPE_HARDWARE,
    TYPE_PAGESPEED,
)

TIMING_FIELDS = ("dns_took", "conn_took", "connect_took", "tls_took", "first_byte_took", "body_read_took")

# Lighthouse audit id -> check field
PAGESPEED_AUDITS = {
    "cumulative-layout-shift": "cls",
    "speed-index": "si",
    "first-contentful-paint": "fcp",
    "largest-contentful-paint": "lcp",
    "total-blocking-time": "tbt",
}

# Lighthouse category id -> check field
PAGESPEED_CATEGORIES = {
    "accessibility": "accessibility",
    "best-practices": "best_practices",
    "seo": "seo",
    "performance": "performance",
}


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _distributed_fields(payload: dict) -> dict:
    fields = {name: payload.get(name) for name in TIMING_FIELDS}
    fields.update(
        continent=payload.get("continent"),
        country_code=payload.get("country_code"),
        city=payload.get("city"),
        location=payload.get("location"),
        upt_burnt=None if payload.get("upt_burnt") is None else str(payload["upt_burnt"]),
    )
    return fields


def _pagespeed_fields(payload: dict) -> dict:
    lighthouse = _as_dict(payload.get("lighthouseResult"))
    categories = _as_dict(lighthouse.get("categories"))
    audits = _as_dict(lighthouse.get("audits"))

    fields = {}
    for category, name in PAGESPEED_CATEGORIES.items():
        score = _as_dict(categories.get(category)).get("score")
        fields[name] = (score or 0) * 100
    fields["audits"] = {name: audits.get(audit, 0) for audit, name in PAGESPEED_AUDITS.items()}
    return fields


def _hardware_fields(payload: dict) -> dict:
    data = _as_dict(payload.get("data"))
    errors = payload.get("errors")
    return {
        "cpu": data.get("cpu") or {},
        "memory": data.get("memory") or {},
        "disk": data.get("disk") or {},
        "host": data.get("host") or {},
        "errors": errors if isinstance(errors, list) else [],
    }


TYPE_FIELDS: dict[str, Callable[[dict], dict]] = {
    TYPE_DISTRIBUTED_HTTP: _distributed_fields,
    TYPE_PAGESPEED: _pagespeed_fields,
    TYPE_HARDWARE: _hardware_fields,
}


def build_check(probe: ProbeResult) -> dict:
    """Build the column values of the check row for a probe result.

    Missing optional payload data never raises; absent values fall back to
    zero scores, empty objects, or empty lists.
    """
    check = {
        "monitor_id": probe.monitor_id,
        "team_id": probe.team_id,
        "status": probe.status,
        "status_code": probe.code,
        "response_time": probe.response_time,
        "message": probe.message,
    }
    if probe.timings is not None:
        check.update(asdict(probe.timings))

    type_fields = TYPE_FIELDS.get(probe.type)
    if type_fields is not None:
        check.update(type_fields(_as_dict(probe.payload)))
    return check
