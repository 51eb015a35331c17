"""Prometheus metrics exporter utilities for pipeline observability."""

from __future__ import annotations

import threading

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, REGISTRY, start_http_server

from analytics.crowd_metrics import CrowdMetrics

_server_lock = threading.Lock()
_server_started_ports: set[int] = set()


class MetricsExporter:
    """Expose per-source crowd telemetry via Prometheus.

    Pass ``port=None`` to register the collectors without starting an HTTP
    server, and a private ``registry`` to keep several exporters apart.
    """

    def __init__(self, port: int | None = 9095, registry: CollectorRegistry | None = None) -> None:
        self.port = port
        registry = registry if registry is not None else REGISTRY
        if port is not None:
            with _server_lock:
                if port not in _server_started_ports:
                    start_http_server(port, registry=registry)
                    _server_started_ports.add(port)

        self.frame_latency = Histogram(
            "crowdsense_frame_latency_seconds",
            "Per-frame processing latency",
            ["source"],
            registry=registry,
        )
        self.frames = Counter(
            "crowdsense_frames_total",
            "Frames processed, by decode outcome",
            ["source", "status"],
            registry=registry,
        )
        self.people = Gauge(
            "crowdsense_people_count",
            "People detected in the latest frame",
            ["source"],
            registry=registry,
        )
        self.risk_level = Gauge(
            "crowdsense_risk_level",
            "Risk level of the latest frame (0=LOW .. 3=CRITICAL)",
            ["source"],
            registry=registry,
        )
        self.zone_violations = Gauge(
            "crowdsense_zone_violations",
            "People inside the restricted zone in the latest frame",
            ["source"],
            registry=registry,
        )
        self.skipped_ticks = Counter(
            "crowdsense_skipped_ticks_total",
            "Ticks skipped because the previous frame was still in flight",
            ["source"],
            registry=registry,
        )
        self.errors = Counter(
            "crowdsense_pipeline_errors_total",
            "Count of per-frame errors by type",
            ["source", "category"],
            registry=registry,
        )

    def record_frame(self, source_id: str, latency_s: float, status: str, metrics: CrowdMetrics) -> None:
        self.frame_latency.labels(source_id).observe(max(latency_s, 0.0))
        self.frames.labels(source_id, status).inc()
        self.people.labels(source_id).set(metrics.people_count)
        self.risk_level.labels(source_id).set(metrics.risk_level.severity)
        self.zone_violations.labels(source_id).set(metrics.zone_violations)

    def record_skip(self, source_id: str) -> None:
        self.skipped_ticks.labels(source_id).inc()

    def record_error(self, source_id: str, category: str) -> None:
        self.errors.labels(source_id, category).inc()
