"""Polls interceptor admin endpoints and aggregates their pending request counts."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, Iterable, Mapping

logger = logging.getLogger(__name__)

# get_endpoints(namespace, service_name) -> addresses of the service's endpoints
GetEndpoints = Callable[[str, str], Iterable[str]]
# get_counts(base_url) -> pending request count per host, as served by one interceptor
GetCounts = Callable[[str], Mapping[str, int]]

_POLL_SECONDS = 0.05


class PingError(RuntimeError):
    """Raised when request counts cannot be fetched from the interceptors."""


def _endpoint_url(address: str, port: str) -> str:
    host = f"[{address}]" if ":" in address else address
    return f"http://{host}:{port}"


def fetch_counts(
    get_endpoints: GetEndpoints,
    get_counts: GetCounts,
    namespace: str,
    service_name: str,
    admin_port: str,
) -> tuple[dict[str, int], int]:
    """Fetch counts from every endpoint of the service concurrently.

    Returns the per-host totals and their aggregate. Any failure raises
    :class:`PingError`.
    """
    try:
        addresses = list(get_endpoints(namespace, service_name))
    except Exception as exc:
        raise PingError(
            f"getting endpoints for service {namespace}/{service_name}: {exc}"
        ) from exc

    urls = [_endpoint_url(address, admin_port) for address in addresses]
    if not urls:
        return {}, 0

    def fetch(url: str) -> Mapping[str, int]:
        try:
            return get_counts(url)
        except Exception as exc:
            logger.error("getting queue counts from interceptor %s: %s", url, exc)
            raise PingError(f"getting queue counts from {url}: {exc}") from exc

    with ThreadPoolExecutor(max_workers=len(urls)) as pool:
        futures = [pool.submit(fetch, url) for url in urls]
    results = [future.result() for future in futures]

    totals: Counter[str] = Counter()
    for counts in results:
        totals.update(counts)
    return dict(totals), sum(totals.values())


class QueuePinger:
    """Keeps the latest pending request counts of all interceptors behind a service.

    Construction performs an initial fetch and raises :class:`PingError` if it fails.
    """

    def __init__(
        self,
        get_endpoints: GetEndpoints,
        get_counts: GetCounts,
        namespace: str,
        service_name: str,
        deployment_name: str,
        admin_port: str,
    ) -> None:
        self.get_endpoints = get_endpoints
        self.get_counts = get_counts
        self.namespace = namespace
        self.service_name = service_name
        self.deployment_name = deployment_name
        self.admin_port = admin_port
        self._lock = threading.Lock()
        self._counts: dict[str, int] = {}
        self._aggregate = 0
        self._last_ping: datetime | None = None
        self.fetch_and_save_counts()

    def counts(self) -> dict[str, int]:
        """Return a snapshot of the per-host counts."""
        with self._lock:
            return dict(self._counts)

    @property
    def aggregate_count(self) -> int:
        """Sum of all counts from the last successful fetch."""
        with self._lock:
            return self._aggregate

    @property
    def last_ping_time(self) -> datetime | None:
        """Time of the last successful fetch."""
        with self._lock:
            return self._last_ping

    def fetch_and_save_counts(self) -> None:
        """Fetch counts from all interceptors and store them."""
        with self._lock:
            try:
                counts, aggregate = fetch_counts(
                    self.get_endpoints,
                    self.get_counts,
                    self.namespace,
                    self.service_name,
                    self.admin_port,
                )
            except PingError as exc:
                logger.error("getting request counts: %s", exc)
                raise
            self._counts = counts
            self._aggregate = aggregate
            self._last_ping = datetime.now()

    def start(
        self,
        interval: timedelta | float,
        stop_event: threading.Event,
        deployment_events: queue.Queue | None = None,
    ) -> None:
        """Refresh counts every ``interval`` until ``stop_event`` is set.

        Every item put on ``deployment_events`` triggers an extra refresh whose
        failure is only logged; a failed scheduled refresh raises :class:`PingError`.
        """
        seconds = (
            interval.total_seconds() if isinstance(interval, timedelta) else float(interval)
        )
        if seconds <= 0:
            raise ValueError("non-positive interval")

        next_tick = time.monotonic() + seconds
        while not stop_event.is_set():
            remaining = next_tick - time.monotonic()
            if remaining <= 0:
                try:
                    self.fetch_and_save_counts()
                except PingError as exc:
                    raise PingError(f"error getting request counts: {exc}") from exc
                next_tick = time.monotonic() + seconds
                continue

            if deployment_events is None:
                stop_event.wait(min(remaining, _POLL_SECONDS))
                continue
            try:
                deployment_events.get(timeout=min(remaining, _POLL_SECONDS))
            except queue.Empty:
                continue
            try:
                self.fetch_and_save_counts()
            except PingError as exc:
                logger.error(
                    "getting request counts after interceptor deployment event: %s", exc
                )
        logger.info("stop requested, stopping queue pinger loop")