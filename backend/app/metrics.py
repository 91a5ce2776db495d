"""Prometheus metrics for monitoring.

Tracks request latency, GitHub API usage, scoring throughput and
the daily digest job.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram, Info

# Application info
APP_INFO = Info("gt_app", "gitTogether application info")

# HTTP metrics
HTTP_REQUESTS_TOTAL = Counter(
    "gt_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "gt_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# GitHub API metrics
GITHUB_API_CALLS = Counter(
    "gt_github_api_calls_total",
    "Total GitHub API calls",
    ["endpoint", "status"],
)

GITHUB_API_DURATION = Histogram(
    "gt_github_api_duration_seconds",
    "GitHub API call duration",
    ["endpoint"],
)

GITHUB_CACHE_HITS = Counter(
    "gt_github_cache_hits_total",
    "GitHub data cache hits",
)

GITHUB_CACHE_MISSES = Counter(
    "gt_github_cache_misses_total",
    "GitHub data cache misses",
)

UPSTREAM_DEGRADED = Counter(
    "gt_upstream_degraded_total",
    "Upstream fetches that failed and were treated as empty",
    ["source"],
)

# Rate limiting
RATE_LIMIT_HITS = Counter(
    "gt_rate_limit_hits_total",
    "Total rate limit hits",
    ["endpoint", "limit_type"],
)

# Scoring metrics
SCORING_DURATION = Histogram(
    "gt_scoring_duration_seconds",
    "Ranking duration per entity kind",
    ["entity"],
)

ITEMS_SCORED = Counter(
    "gt_items_scored_total",
    "Entities scored",
    ["entity"],
)

# Daily digest
DIGEST_RUNS = Counter(
    "gt_digest_runs_total",
    "Daily issue digest runs",
    ["outcome"],
)

DIGEST_EMAILS_SENT = Counter(
    "gt_digest_emails_total",
    "Digest emails attempted",
    ["status"],
)
