"""Monitoring package.

Prometheus exporters for per-source pipeline health and crowd telemetry.
"""

from .metrics import MetricsExporter

__all__ = ["MetricsExporter"]
