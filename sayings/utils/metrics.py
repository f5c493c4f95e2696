"""
Prometheus Metrics Module

Provides application metrics using the prometheus_client library.
Metrics are exposed at /metrics endpoint for Prometheus scraping.
"""

import time
from collections.abc import Callable

from prometheus_client import Counter, Gauge, Histogram, Info
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# =============================================================================
# Application Info
# =============================================================================

APP_INFO = Info("sayings_app", "Sayings search application information")


def set_app_info(version: str, environment: str) -> None:
    """Set application info labels."""
    APP_INFO.info({"version": version, "environment": environment})


# =============================================================================
# HTTP Request Metrics
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "sayings_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "sayings_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "sayings_http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method"],
)

# =============================================================================
# Search Metrics
# =============================================================================

SEARCH_REQUESTS_TOTAL = Counter(
    "sayings_search_requests_total",
    "Orchestrated search requests",
    ["sort", "typeahead"],
)

SEARCH_DURATION_SECONDS = Histogram(
    "sayings_search_duration_seconds",
    "Orchestrated search duration in seconds",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

SEARCH_INDEX_FALLBACKS_TOTAL = Counter(
    "sayings_search_index_fallbacks_total",
    "Searches served by substring scanning because the full-text index was missing",
    ["entity"],
)

SEARCH_ADAPTER_FAILURES_TOTAL = Counter(
    "sayings_search_adapter_failures_total",
    "Entity search adapter failures",
    ["entity", "reason"],
)

SEARCH_ANALYTICS_WRITES_TOTAL = Counter(
    "sayings_search_analytics_writes_total",
    "Search analytics records written",
    ["kind", "outcome"],
)

# =============================================================================
# Cache Metrics
# =============================================================================

CACHE_HITS_TOTAL = Counter(
    "sayings_cache_hits_total",
    "Total cache hits",
    ["cache_type"],
)

CACHE_MISSES_TOTAL = Counter(
    "sayings_cache_misses_total",
    "Total cache misses",
    ["cache_type"],
)

# =============================================================================
# System Metrics
# =============================================================================

APP_UPTIME_SECONDS = Gauge(
    "sayings_app_uptime_seconds",
    "Application uptime in seconds",
)

HEALTH_CHECK_STATUS = Gauge(
    "sayings_health_check_status",
    "Health check status (1=healthy, 0=unhealthy)",
    ["service"],
)


# =============================================================================
# Middleware
# =============================================================================


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP request metrics for Prometheus.

    Tracks:
    - Request count by method, endpoint, and status code
    - Request duration by method and endpoint
    - In-progress requests by method
    """

    # Endpoints to exclude from metrics (to avoid noise)
    EXCLUDED_PATHS = {"/metrics", "/health", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        method = request.method
        endpoint = self._normalize_path(path)

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method).inc()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            duration = time.perf_counter() - start_time
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=endpoint).observe(duration)
            HTTP_REQUESTS_TOTAL.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method).dec()

        return response

    @staticmethod
    def _normalize_path(path: str) -> str:
        """
        Normalize URL path for metrics by replacing dynamic segments.

        Examples:
            /api/topics/123 -> /api/topics/{id}
        """
        return "/".join("{id}" if part.isdigit() else part for part in path.split("/"))


# =============================================================================
# Helper Functions
# =============================================================================


def record_cache_hit(cache_type: str = "default") -> None:
    """Record a cache hit."""
    CACHE_HITS_TOTAL.labels(cache_type=cache_type).inc()


def record_cache_miss(cache_type: str = "default") -> None:
    """Record a cache miss."""
    CACHE_MISSES_TOTAL.labels(cache_type=cache_type).inc()


def record_search(sort: str, typeahead: bool, duration_seconds: float) -> None:
    SEARCH_REQUESTS_TOTAL.labels(sort=sort, typeahead=str(typeahead).lower()).inc()
    SEARCH_DURATION_SECONDS.observe(duration_seconds)


def record_index_fallback(entity: str) -> None:
    """Record a search served without the full-text index."""
    SEARCH_INDEX_FALLBACKS_TOTAL.labels(entity=entity).inc()


def record_adapter_failure(entity: str, reason: str) -> None:
    """Record an adapter failure (reason: timeout/error)."""
    SEARCH_ADAPTER_FAILURES_TOTAL.labels(entity=entity, reason=reason).inc()


def record_analytics_write(kind: str, outcome: str) -> None:
    """Record an analytics write (kind: query/click, outcome: success/failure)."""
    SEARCH_ANALYTICS_WRITES_TOTAL.labels(kind=kind, outcome=outcome).inc()


def update_health_status(service: str, healthy: bool) -> None:
    """Update health check status for a service."""
    HEALTH_CHECK_STATUS.labels(service=service).set(1 if healthy else 0)


def update_uptime(start_time: float) -> None:
    """Update application uptime."""
    APP_UPTIME_SECONDS.set(time.time() - start_time)
