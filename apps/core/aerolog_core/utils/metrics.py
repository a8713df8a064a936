"""Prometheus metrics."""

from prometheus_client import Counter, Gauge, Histogram

# Signature metrics
signatures_total = Counter(
    "aerolog_signatures_total",
    "Signature attempts",
    ["kind", "outcome"],
)

integrity_violations_total = Counter(
    "aerolog_integrity_violations_total",
    "Content hash mismatches detected during validation",
)

# Deadline metrics
overdue_records = Gauge(
    "aerolog_overdue_records",
    "Pilot-signed records past their operator signing deadline",
)

near_deadline_records = Gauge(
    "aerolog_near_deadline_records",
    "Pilot-signed records close to their operator signing deadline",
)

# Regulator sync metrics
sync_attempts_total = Counter(
    "aerolog_regulator_sync_attempts_total",
    "Regulator submissions",
    ["mode", "outcome"],
)

regulator_submit_duration = Histogram(
    "aerolog_regulator_submit_duration_seconds",
    "Regulator submission duration",
    ["mode"],
)

# Job metrics
job_runs_total = Counter(
    "aerolog_job_runs_total",
    "Background job runs",
    ["job", "status"],
)

# Cache metrics
cache_repairs_total = Counter(
    "aerolog_cache_repairs_total",
    "Compliance window cache entries rebuilt after a count mismatch",
)

cache_evictions_total = Counter(
    "aerolog_cache_evictions_total",
    "Cache keys removed by the eviction pass",
)
