"""Prometheus metrics for the voting service."""
from prometheus_client import Counter, Histogram

votes_cast = Counter(
    "votes_cast_total",
    "Total number of votes recorded",
    ["candidate"]
)
vote_outcomes = Counter(
    "vote_outcomes_total",
    "Total number of vote attempts by outcome",
    ["outcome"]
)
vote_errors = Counter(
    "vote_errors_total",
    "Total number of vote and registration errors",
    ["error_type"]
)
registrations = Counter(
    "registrations_total",
    "Total number of registration attempts",
    ["status"]
)
request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"]
)
