"""Prometheus metric inventory for the cache layer.

All metrics live here so there is one place to see what the service
measures.  The cache service increments them at the point of action;
``GET /metrics`` exposes them for scraping.

Hit rate over five minutes, across every instance:

  sum(rate(cache_operations_total{operation="get",result="hit"}[5m]))
    / sum(rate(cache_operations_total{operation="get"}[5m]))
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache service operations by outcome",
    # get: hit|miss|error   set/delete/invalidate: ok|error
    ["operation", "result"],
)

CACHE_PROVIDER_ERRORS = Counter(
    "cache_provider_errors_total",
    "Backing store failures absorbed by the cache service",
    ["operation"],
)

CACHE_LOADER_DURATION = Histogram(
    "cache_loader_duration_seconds",
    "Time spent in get_or_set loaders after a cache miss",
    # Loaders are database queries: 5ms for a primary-key lookup up to
    # multi-second analytics aggregates on the admin dashboard.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

CACHE_INVALIDATED_KEYS = Counter(
    "cache_invalidated_keys_total",
    "Keys removed by pattern invalidation",
)
