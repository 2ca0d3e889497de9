"""Scaler configuration read from environment variables."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import timedelta
from fractions import Fraction
from typing import Callable, Mapping

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_UNITS_NS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_DURATION_SHAPE = re.compile(r"(?:\d*(?:\.\d*)?[^\d.]+)+")
_DURATION_PART = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]+)")
_OCTAL = re.compile(r"[+-]?0[0-7_]+")


class ConfigError(ValueError):
    """Raised when the scaler configuration is missing or malformed."""


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1h30m"``, ``"500ms"`` or ``"-1.5s"``."""
    rest = text
    negative = False
    if rest[:1] in ("+", "-"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest or not _DURATION_SHAPE.fullmatch(rest):
        raise ConfigError(f"invalid duration {text!r}")

    total_ns = 0
    for whole, frac, unit in _DURATION_PART.findall(rest):
        if not whole and not frac:
            raise ConfigError(f"invalid duration {text!r}")
        scale = _UNITS_NS.get(unit)
        if scale is None:
            raise ConfigError(f"unknown unit {unit!r} in duration {text!r}")
        total_ns += int(whole or "0") * scale
        if frac:
            total_ns += int(Fraction(int(frac), 10 ** len(frac)) * scale)
        if total_ns > _INT64_MAX:
            raise ConfigError(f"invalid duration {text!r}")

    micros = total_ns // 1000
    return timedelta(microseconds=-micros if negative else micros)


def _parse_int(text: str) -> int:
    try:
        value = int(text, 0)
    except ValueError:
        if not _OCTAL.fullmatch(text):
            raise ConfigError(f"invalid integer {text!r}") from None
        value = int(text, 8)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ConfigError(f"integer {text!r} out of range")
    return value


@dataclass(frozen=True)
class ScalerConfig:
    """Settings of the external scaler process."""

    target_namespace: str
    target_service: str
    target_deployment: str
    target_port: int
    grpc_port: int = 8080
    health_port: int = 8090
    target_pending_requests: int = 100
    config_map_cache_rsync_period: timedelta = timedelta(minutes=60)
    deployment_cache_rsync_period: timedelta = timedelta(minutes=60)
    queue_tick_duration: timedelta = timedelta(milliseconds=500)


# field name -> (environment variable, parser, default; None means required)
_FIELDS: dict[str, tuple[str, Callable[[str], object], str | None]] = {
    "grpc_port": ("KEDA_HTTP_SCALER_PORT", _parse_int, "8080"),
    "health_port": ("KEDA_HTTP_HEALTH_PORT", _parse_int, "8090"),
    "target_namespace": ("KEDA_HTTP_SCALER_TARGET_ADMIN_NAMESPACE", str, None),
    "target_service": ("KEDA_HTTP_SCALER_TARGET_ADMIN_SERVICE", str, None),
    "target_deployment": ("KEDA_HTTP_SCALER_TARGET_ADMIN_DEPLOYMENT", str, None),
    "target_port": ("KEDA_HTTP_SCALER_TARGET_ADMIN_PORT", _parse_int, None),
    "target_pending_requests": (
        "KEDA_HTTP_SCALER_TARGET_PENDING_REQUESTS",
        _parse_int,
        "100",
    ),
    "config_map_cache_rsync_period": (
        "KEDA_HTTP_SCALER_CONFIG_MAP_INFORMER_RSYNC_PERIOD",
        parse_duration,
        "60m",
    ),
    "deployment_cache_rsync_period": (
        "KEDA_HTTP_SCALER_DEPLOYMENT_INFORMER_RSYNC_PERIOD",
        parse_duration,
        "60m",
    ),
    "queue_tick_duration": ("KEDA_HTTP_QUEUE_TICK_DURATION", parse_duration, "500ms"),
}


def parse_config(environ: Mapping[str, str] | None = None) -> ScalerConfig:
    """Build a :class:`ScalerConfig` from ``environ`` (``os.environ`` by default)."""
    env = os.environ if environ is None else environ
    values: dict[str, object] = {}
    for field_name, (key, parser, default) in _FIELDS.items():
        raw = env.get(key, default)
        if raw is None:
            raise ConfigError(f"required key {key} missing value")
        try:
            values[field_name] = parser(raw)
        except ConfigError as exc:
            raise ConfigError(f"assigning {key} to {field_name}: {exc}") from exc
    return ScalerConfig(**values)