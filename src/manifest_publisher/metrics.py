"""
Prometheus metrics definitions for the manifest publisher.

Counters and a histogram recording submission outcomes, rollbacks, branch
creation retries and fork sync results. The library only records; exposing
the registry (push gateway, HTTP endpoint) is left to the embedding process.

Naming conventions: snake_case, manifest_publisher_ prefix
"""

from prometheus_client import Counter, Histogram

# ==============================================================================
# COUNTERS - Monotonically increasing values
# ==============================================================================

submissions_total = Counter(
    "manifest_publisher_submissions_total",
    "Total pull request submissions",
    ["outcome", "mode"],
    # outcome: success, failed
    # mode: fork, direct
)

rollbacks_total = Counter(
    "manifest_publisher_rollbacks_total",
    "Cleanup actions taken after a failed submission",
    ["kind"],
    # kind: branch, fork, skipped_forbidden, failed
)

branch_create_retries_total = Counter(
    "manifest_publisher_branch_create_retries_total",
    "Branch creation attempts that failed and were retried",
    ["error"],
    # error: transient, non_fast_forward, fork_not_ready
)

fork_sync_total = Counter(
    "manifest_publisher_fork_sync_total",
    "Fork sync checks by outcome",
    ["outcome"],
    # outcome: up_to_date, fast_forwarded, diverged
)

# ==============================================================================
# HISTOGRAMS - Distribution of values
# ==============================================================================

submission_duration_seconds = Histogram(
    "manifest_publisher_submission_duration_seconds",
    "Wall time of one submit() call, including rollback",
    ["outcome"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0],
)
