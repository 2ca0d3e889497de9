"""Metric naming helpers."""

from __future__ import annotations

import re

_UNSAFE_CHARS = re.compile(r"[^-.0-9A-Za-z]")


def namespaced_key(namespace: str, name: str) -> str:
    """Return the ``namespace/name`` key of an object."""
    return f"{namespace}/{name}"


def _escape_char(match: re.Match[str]) -> str:
    encoded = match.group(0).encode("utf-8").hex().upper()
    return "_" + encoded.zfill(4)


def escape_string(text: str) -> str:
    """Replace every character outside ``[-.0-9A-Za-z]`` by ``_`` and its UTF-8 hex."""
    return _UNSAFE_CHARS.sub(_escape_char, text)


def metric_name(namespace: str, name: str) -> str:
    """Return the metric name reported for the given scaled object."""
    return escape_string(f"http-{namespaced_key(namespace, name)}")