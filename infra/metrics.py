"""Prometheus-backed metrics hooks for bank requests and venue trades."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Summary, start_http_server

logger = logging.getLogger(__name__)


@dataclass
class RequestStats:
    operation: str
    status: str  # "settled" | "rejected"
    error_code: Optional[str] = None


class MetricsRecorder:
    """
    Expose bank request and trade stats via Prometheus.

    Each recorder owns its own CollectorRegistry so several bank instances
    (and test cases) can coexist without duplicate registration errors.
    """

    def __init__(self, enabled: bool = True, port: int = 9100,
                 registry: Optional[CollectorRegistry] = None) -> None:
        self._enabled = bool(enabled)
        self._port = port
        self._started = False
        self.registry = registry or CollectorRegistry()

        self._last_request: Optional[RequestStats] = None
        self._rejections_by_code: Dict[str, int] = {}

        if not self._enabled:
            self._request_counter = None
            self._rejection_counter = None
            self._swap_counter = None
            self._slippage_summary = None
            self._aggregate_gauge = None
            self._cap_utilization_gauge = None
            self._reentrancy_counter = None
            return

        self._request_counter = Counter(
            "bank_requests_total",
            "Bank requests by operation and outcome",
            labelnames=("operation", "status"),
            registry=self.registry,
        )
        self._rejection_counter = Counter(
            "bank_rejections_total",
            "Rejected bank requests grouped by error code",
            labelnames=("error",),
            registry=self.registry,
        )
        self._swap_counter = Counter(
            "bank_swaps_total",
            "Venue trades by direction and outcome",
            labelnames=("direction", "status"),
            registry=self.registry,
        )
        self._slippage_summary = Summary(
            "bank_swap_slippage_bps",
            "Executed vs quoted output in basis points (positive = worse than quote)",
            labelnames=("direction",),
            registry=self.registry,
        )
        self._aggregate_gauge = Gauge(
            "bank_aggregate_balance",
            "Reference-asset value under custody",
            registry=self.registry,
        )
        self._cap_utilization_gauge = Gauge(
            "bank_cap_utilization",
            "Aggregate balance as a fraction of the bank cap (0-1)",
            registry=self.registry,
        )
        self._reentrancy_counter = Counter(
            "bank_reentrancy_rejections_total",
            "Reentrant calls rejected by the request guard",
            labelnames=("entry_point",),
            registry=self.registry,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def last_request(self) -> Optional[RequestStats]:
        return self._last_request

    def rejection_count(self, error_code: str) -> int:
        return self._rejections_by_code.get(error_code, 0)

    def start_exporter(self) -> None:
        """Serve this recorder's registry over HTTP (idempotent)."""
        if not self._enabled or self._started:
            return
        start_http_server(self._port, registry=self.registry)
        self._started = True
        logger.info(f"Prometheus metrics exporter listening on :{self._port}")

    def record_request(self, stats: RequestStats) -> None:
        self._last_request = stats
        if stats.error_code:
            self._rejections_by_code[stats.error_code] = self._rejections_by_code.get(stats.error_code, 0) + 1
        if not self._enabled:
            return
        self._request_counter.labels(operation=stats.operation, status=stats.status).inc()
        if stats.error_code:
            self._rejection_counter.labels(error=stats.error_code).inc()

    def record_swap(self, direction: str, success: bool, slippage_bps: Optional[float] = None) -> None:
        if not self._enabled:
            return
        self._swap_counter.labels(direction=direction, status="filled" if success else "failed").inc()
        if success and slippage_bps is not None:
            self._slippage_summary.labels(direction=direction).observe(float(slippage_bps))

    def record_aggregate(self, aggregate_balance: int, bank_cap: int) -> None:
        if not self._enabled:
            return
        self._aggregate_gauge.set(aggregate_balance)
        self._cap_utilization_gauge.set(aggregate_balance / bank_cap if bank_cap else 0.0)

    def record_reentrancy(self, entry_point: str) -> None:
        if not self._enabled:
            return
        self._reentrancy_counter.labels(entry_point=entry_point).inc()
