"""External scaler handlers that report request-queue metrics to the autoscaler."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Iterator, Mapping, Optional, Protocol

from .naming import metric_name, namespaced_key

logger = logging.getLogger(__name__)

KEY_INTERCEPTOR_TARGET_PENDING_REQUESTS = "interceptorTargetPendingRequests"
DEFAULT_TARGET_PENDING_REQUESTS = 100

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_DECIMAL = re.compile(r"[+-]?[0-9]+")

# lookup_target(namespace, name) -> target pending requests of the scaled object,
# or None when it does not set one. Raises when the object cannot be found.
LookupTarget = Callable[[str, str], Optional[int]]


class CountSource(Protocol):
    def counts(self) -> Mapping[str, int]: ...


class ScalerError(RuntimeError):
    """Raised when a scaler request cannot be answered."""


class ScaledObjectNotFound(ScalerError, LookupError):
    """Raised by a target lookup when the scaled object does not exist."""


@dataclass(frozen=True)
class ScaledObjectRef:
    """Reference to the scaled object a request is about."""

    namespace: str
    name: str
    scaler_metadata: Optional[Mapping[str, str]] = field(default=None)


@dataclass(frozen=True)
class MetricSpec:
    """Name of a metric and the target value per replica."""

    metric_name: str
    target_size: int


@dataclass(frozen=True)
class MetricValue:
    """Current value of a metric."""

    metric_name: str
    metric_value: int


def _parse_int64(text: str) -> int:
    if not _DECIMAL.fullmatch(text):
        raise ScalerError(f"invalid syntax parsing {text!r}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ScalerError(f"value out of range parsing {text!r}")
    return value


class ScalerHandler:
    """Answers the external scaler requests from the pinger's queue counts."""

    def __init__(
        self,
        pinger: CountSource,
        lookup_target: LookupTarget,
        default_target_metric: int,
    ) -> None:
        self.pinger = pinger
        self.lookup_target = lookup_target
        self.target_metric = default_target_metric

    def ping(self) -> None:
        """Liveness check; always succeeds."""

    def is_active(self, ref: ScaledObjectRef) -> bool:
        """Return whether the scaled object has any pending requests."""
        try:
            values = self.get_metrics(ref)
        except Exception as exc:
            logger.error("GetMetrics failed for %s/%s: %s", ref.namespace, ref.name, exc)
            raise
        if len(values) != 1:
            logger.error("invalid GetMetrics response for %s/%s", ref.namespace, ref.name)
            raise ScalerError("len(metricValues) != 1")
        return values[0].metric_value > 0

    def stream_is_active(
        self,
        ref: ScaledObjectRef,
        stop_event: threading.Event,
        interval: timedelta | float = timedelta(milliseconds=5),
    ) -> Iterator[bool]:
        """Yield the active state every ``interval`` until ``stop_event`` is set."""
        seconds = (
            interval.total_seconds() if isinstance(interval, timedelta) else float(interval)
        )
        if seconds <= 0:
            raise ValueError("non-positive interval")
        while not stop_event.wait(seconds):
            try:
                active = self.is_active(ref)
            except Exception as exc:
                logger.error("error getting active status in stream: %s", exc)
                raise
            yield active

    def get_metric_spec(self, ref: ScaledObjectRef) -> list[MetricSpec]:
        """Return the metric spec with the target pending requests of ``ref``."""
        name = metric_name(ref.namespace, ref.name)
        try:
            target = self.lookup_target(ref.namespace, ref.name)
        except Exception as exc:
            metadata = ref.scaler_metadata
            if metadata is not None and KEY_INTERCEPTOR_TARGET_PENDING_REQUESTS in metadata:
                return self._interceptor_metric_spec(
                    name, metadata[KEY_INTERCEPTOR_TARGET_PENDING_REQUESTS]
                )
            logger.error(
                "unable to get HTTPScaledObject %s/%s: %s", ref.namespace, ref.name, exc
            )
            raise
        if target is None:
            target = DEFAULT_TARGET_PENDING_REQUESTS
        return [MetricSpec(metric_name=name, target_size=int(target))]

    def _interceptor_metric_spec(self, name: str, raw_target: str) -> list[MetricSpec]:
        try:
            target = _parse_int64(raw_target)
        except ScalerError as exc:
            logger.error("unable to parse interceptorTargetPendingRequests: %s", exc)
            raise
        return [MetricSpec(metric_name=name, target_size=target)]

    def get_metrics(self, ref: ScaledObjectRef) -> list[MetricValue]:
        """Return the pending request count of ``ref``."""
        name = metric_name(ref.namespace, ref.name)
        count = int(self.pinger.counts().get(namespaced_key(ref.namespace, ref.name), 0))
        if count == 0:
            metadata = ref.scaler_metadata
            if metadata is not None and KEY_INTERCEPTOR_TARGET_PENDING_REQUESTS in metadata:
                return self._interceptor_metrics(name)
        return [MetricValue(metric_name=name, metric_value=count)]

    def _interceptor_metrics(self, name: str) -> list[MetricValue]:
        count = sum(self.pinger.counts().values())
        if not 0 <= count <= _INT64_MAX:
            logger.error("count overflowed: %d", count)
            raise ScalerError(f"count {count} out of range")
        return [MetricValue(metric_name=name, metric_value=count)]