from __future__ import annotations

from prometheus_client import Counter, Histogram

RECONCILE_TOTAL = Counter(
    "cronjob_trigger_reconcile_total",
    "Number of reconciliations",
    labelnames=("kind", "result"),
)

RECONCILE_DURATION = Histogram(
    "cronjob_trigger_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    labelnames=("kind",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)

CRONJOB_WRITES_TOTAL = Counter(
    "cronjob_trigger_cronjob_writes_total",
    "Number of CronJob write outcomes",
    labelnames=("action",),
)

SKIPPED_UPDATES_TOTAL = Counter(
    "cronjob_trigger_skipped_updates_total",
    "Number of CronJobTrigger updates ignored because nothing relevant changed",
)
