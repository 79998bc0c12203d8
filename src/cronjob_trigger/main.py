from __future__ import annotations

import copy
import os
from collections.abc import Callable, Mapping
from contextlib import suppress
from time import monotonic
from typing import Any

import kopf
from kubernetes import client, config
from prometheus_client import start_http_server

from . import logging as structured_logging
from . import metrics
from .config import load_runtime_config
from .constants import (
    API_GROUP,
    API_VERSION,
    FINALIZER,
    KOPF_ANNOTATION_PREFIX,
    METRICS_PORT_ENV,
    PLURAL_CRONJOB_TRIGGERS,
    PLURAL_FUNCTIONS,
)
from .controller import CronJobTriggerController, EventType
from .errors import (
    CronJobConflictError,
    FunctionNotFoundError,
    InvalidScheduleError,
    InvalidTimeoutError,
    InvalidTriggerError,
)

FUNCTION_RETRY_DELAY = 30
CONFLICT_RETRY_DELAY = 60


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **_: Any) -> None:
    structured_logging.setup_structured_logging()

    # Keep kopf's bookkeeping in annotations; the CRDs have no status subresource
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=KOPF_ANNOTATION_PREFIX
    )
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix=KOPF_ANNOTATION_PREFIX
    )
    # kopf blocks deletion with the same finalizer the controller puts on triggers
    settings.persistence.finalizer = FINALIZER
    settings.posting.level = 0
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = 4

    with suppress(Exception):
        start_http_server(int(os.getenv(METRICS_PORT_ENV, "8080")))

    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()

    runtime_config = load_runtime_config(client.CoreV1Api())
    memo.controller = CronJobTriggerController(
        batch_api=client.BatchV1Api(),
        custom_api=client.CustomObjectsApi(),
        runtime_config=runtime_config,
    )
    structured_logging.logger.info(
        "CronJobTrigger controller configured",
        controller="CronJobTrigger",
        event="startup",
        reason="Configured",
        runtime_image=runtime_config.image,
    )


def _run(kind: str, namespace: str, name: str, uid: str | None, action: Callable[[], Any]) -> Any:
    """Run one reconciliation with logging, metrics and kopf error mapping."""
    resource = f"{namespace}/{name}"
    started_at = monotonic()
    try:
        structured_logging.logger.info(
            f"Starting {kind} reconciliation",
            controller=kind,
            resource=resource,
            uid=uid,
            event="reconcile",
            reason="ReconcileStarted",
        )
        result = action()
        structured_logging.logger.info(
            f"{kind} reconciliation completed successfully",
            controller=kind,
            resource=resource,
            uid=uid,
            event="reconcile",
            reason="ReconcileSucceeded",
        )
        metrics.RECONCILE_TOTAL.labels(kind=kind, result="success").inc()
        return result
    except Exception as e:
        structured_logging.logger.error(
            f"{kind} reconciliation failed: {str(e)}",
            controller=kind,
            resource=resource,
            uid=uid,
            event="reconcile",
            reason="ReconcileFailed",
            error_type=type(e).__name__,
        )
        metrics.RECONCILE_TOTAL.labels(kind=kind, result="error").inc()
        if isinstance(e, (InvalidScheduleError, InvalidTimeoutError, InvalidTriggerError)):
            raise kopf.PermanentError(str(e)) from e
        if isinstance(e, FunctionNotFoundError):
            raise kopf.TemporaryError(str(e), delay=FUNCTION_RETRY_DELAY) from e
        if isinstance(e, CronJobConflictError):
            raise kopf.TemporaryError(str(e), delay=CONFLICT_RETRY_DELAY) from e
        raise
    finally:
        metrics.RECONCILE_DURATION.labels(kind=kind).observe(monotonic() - started_at)


def previous_version(body: Mapping[str, Any], old: Mapping[str, Any] | None) -> dict[str, Any]:
    """Rebuild the previous trigger from the current body and kopf's stored essence.

    kopf only keeps spec, labels and annotations of the last handled state, so
    the rest of the metadata is taken from the current body.
    """
    previous: dict[str, Any] = copy.deepcopy(dict(body))
    old = old or {}
    old_meta = old.get("metadata") or {}
    meta = previous.setdefault("metadata", {})
    meta["labels"] = copy.deepcopy(old_meta.get("labels") or {})
    meta["annotations"] = copy.deepcopy(old_meta.get("annotations") or {})
    previous["spec"] = copy.deepcopy(old.get("spec") or {})
    return previous


@kopf.on.create(API_GROUP, API_VERSION, PLURAL_CRONJOB_TRIGGERS)
@kopf.on.resume(API_GROUP, API_VERSION, PLURAL_CRONJOB_TRIGGERS)
def reconcile_cronjob_trigger(
    body: kopf.Body,
    name: str,
    namespace: str,
    uid: str,
    memo: kopf.Memo,
    **_: Any,
) -> None:
    _run(
        "CronJobTrigger",
        namespace,
        name,
        uid,
        lambda: memo.controller.on_trigger_event(EventType.ADDED, None, body),
    )


@kopf.on.update(API_GROUP, API_VERSION, PLURAL_CRONJOB_TRIGGERS)
def update_cronjob_trigger(
    body: kopf.Body,
    old: Any,
    name: str,
    namespace: str,
    uid: str,
    memo: kopf.Memo,
    **_: Any,
) -> None:
    _run(
        "CronJobTrigger",
        namespace,
        name,
        uid,
        lambda: memo.controller.on_trigger_event(
            EventType.UPDATED, previous_version(body, old), body
        ),
    )


# The finalizer keeps the trigger around until the CronJob is released
@kopf.on.delete(API_GROUP, API_VERSION, PLURAL_CRONJOB_TRIGGERS)
def delete_cronjob_trigger(
    body: kopf.Body,
    name: str,
    namespace: str,
    uid: str,
    memo: kopf.Memo,
    **_: Any,
) -> None:
    _run(
        "CronJobTrigger",
        namespace,
        name,
        uid,
        lambda: memo.controller.on_trigger_event(EventType.DELETED, None, body),
    )


@kopf.on.event(API_GROUP, API_VERSION, PLURAL_FUNCTIONS)
def handle_function_event(event: dict[str, Any], memo: kopf.Memo, **_: Any) -> None:
    """Re-sync or clean up CronJobs when a Function changes.

    Functions belong to the kubeless controller, so they are only watched, never
    patched (no finalizers, no kopf annotations).
    """
    function = event.get("object") or {}
    metadata = function.get("metadata") or {}
    name = metadata.get("name", "")
    namespace = metadata.get("namespace", "")
    if not name or not namespace:
        return

    is_deleted = event.get("type") == "DELETED"
    _run(
        "Function",
        namespace,
        name,
        metadata.get("uid"),
        lambda: memo.controller.on_function_event(function, is_deleted),
    )
