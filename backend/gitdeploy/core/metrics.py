"""
Prometheus Metrics Collection for the build-and-deploy pipeline.

Each replica keeps its own registry which is scraped through /metrics.
"""

import logging
import time

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Pipeline Metrics
# =============================================================================

pipeline_runs_total = Counter(
    "gitdeploy_pipeline_runs_total",
    "Total pipeline runs by SCM and result",
    ["scm", "result"],
)

pipeline_duration_seconds = Histogram(
    "gitdeploy_pipeline_duration_seconds",
    "Pipeline run duration in seconds",
    buckets=(5, 10, 30, 60, 120, 300, 600, 1200),
)

functions_packaged_total = Counter(
    "gitdeploy_functions_packaged_total",
    "Build context archives created by result",
    ["result"],
)

functions_deployed_total = Counter(
    "gitdeploy_functions_deployed_total",
    "Deploy requests sent to the gateway by result",
    ["result"],
)

archive_size_bytes = Histogram(
    "gitdeploy_archive_size_bytes",
    "Size of build context archives in bytes",
    buckets=(1e4, 1e5, 1e6, 1e7, 5e7, 1e8, 5e8),
)

status_reports_total = Counter(
    "gitdeploy_status_reports_total",
    "Status reports sent by SCM and result",
    ["scm", "result"],
)

# =============================================================================
# Inbound Webhook Metrics
# =============================================================================

webhooks_received_total = Counter(
    "gitdeploy_webhooks_received_total",
    "Inbound push webhooks by outcome",
    ["outcome"],
)

# =============================================================================
# External API Metrics
# =============================================================================

external_api_requests_total = Counter(
    "external_api_requests_total",
    "Total external API requests by service",
    ["service"],
)

external_api_errors_total = Counter(
    "external_api_errors_total",
    "Total external API errors by service",
    ["service"],
)

external_api_duration_seconds = Histogram(
    "external_api_duration_seconds",
    "External API request duration in seconds",
    ["service"],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
)

# =============================================================================
# System Metrics
# =============================================================================

uptime_seconds = Gauge(
    "uptime_seconds",
    "Application uptime in seconds",
)

# Track startup time
startup_time = time.time()


def update_uptime():
    """Update the uptime metric."""
    uptime_seconds.set(time.time() - startup_time)


async def metrics_endpoint(request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    Meant to be scraped from inside the cluster only.
    """
    update_uptime()
    metrics_output = generate_latest(REGISTRY)
    return Response(content=metrics_output, media_type=CONTENT_TYPE_LATEST)
