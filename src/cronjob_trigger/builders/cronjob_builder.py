from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from ..constants import (
    API_GROUP_VERSION,
    CONTAINER_NAME,
    CREATED_BY_VALUE,
    CRONJOB_NAME_PREFIX,
    EVENT_NAMESPACE,
    FAILED_JOBS_HISTORY_LIMIT,
    FUNCTION_PORT,
    KOPF_ANNOTATION_PREFIX,
    LABEL_CREATED_BY,
    LABEL_MANAGED_VERSION,
    MANAGED_VERSION,
    SUCCESSFUL_JOBS_HISTORY_LIMIT,
)
from ..errors import InvalidTimeoutError
from ..utils.labels import merge_maps, without_prefix

# Order matters: the generated command must be byte-for-byte stable
_EVENT_HEADERS = (
    ("Event-Id", "$(POD_UID)"),
    ("Event-Time", "$(date --rfc-3339=seconds --utc)"),
    ("Event-Namespace", EVENT_NAMESPACE),
    ("Event-Type", "application/json"),
    ("Content-Type", "application/json"),
)


def cronjob_name_for(function_name: str) -> str:
    return f"{CRONJOB_NAME_PREFIX}{function_name}"


def ownership_labels() -> dict[str, str]:
    return {
        LABEL_CREATED_BY: CREATED_BY_VALUE,
        LABEL_MANAGED_VERSION: MANAGED_VERSION,
    }


def is_owned(labels: Mapping[str, str] | None) -> bool:
    """Return True when ``labels`` carry the marker this controller puts on its CronJobs."""
    return (labels or {}).get(LABEL_CREATED_BY) == CREATED_BY_VALUE


def parse_timeout(timeout: Any) -> int | None:
    """Parse a Function timeout into activeDeadlineSeconds.

    An empty or missing timeout means no deadline. Anything else must be a
    non-negative integer, otherwise InvalidTimeoutError is raised.
    """
    if timeout is None:
        return None
    raw = str(timeout).strip()
    if not raw:
        return None
    try:
        seconds = int(raw)
    except ValueError:
        raise InvalidTimeoutError(f"function timeout {timeout!r} is not an integer") from None
    if seconds < 0:
        raise InvalidTimeoutError(f"function timeout {timeout!r} must not be negative")
    return seconds


def function_endpoint(function_name: str, namespace: str) -> str:
    return f"http://{function_name}.{namespace}.svc.cluster.local:{FUNCTION_PORT}"


def build_invocation_command(
    function_name: str, namespace: str, payload: Mapping[str, Any] | None = None
) -> str:
    """Render the curl command the CronJob container runs on every tick."""
    parts: list[str] = ["curl", "-Lv"]
    for header, value in _EVENT_HEADERS:
        parts.extend(["-H", f'"{header}: {value}"'])
    parts.append(function_endpoint(function_name, namespace))

    if payload:
        data = json.dumps(dict(payload), sort_keys=True, separators=(",", ":"))
        # Close, escape and reopen the single-quoted shell string
        data = data.replace("'", "'\\''")
        parts.extend(["-d", f"'{data}'"])

    return " ".join(parts)


def build_owner_references(function: Mapping[str, Any]) -> list[dict[str, Any]]:
    meta = function.get("metadata") or {}
    return [
        {
            "apiVersion": API_GROUP_VERSION,
            "kind": "Function",
            "name": meta.get("name"),
            "uid": meta.get("uid"),
            "blockOwnerDeletion": True,
        }
    ]


def build_job_template(
    *,
    function_name: str,
    namespace: str,
    payload: Mapping[str, Any] | None,
    runtime_image: str,
    active_deadline_seconds: int | None,
    image_pull_secrets: list[dict[str, str]] | None = None,
) -> dict[str, Any]:
    container: dict[str, Any] = {
        "name": CONTAINER_NAME,
        "image": runtime_image,
        "env": [
            {
                "name": "POD_UID",
                "valueFrom": {"fieldRef": {"fieldPath": "metadata.uid"}},
            }
        ],
        "command": ["/bin/sh", "-c"],
        "args": [build_invocation_command(function_name, namespace, payload)],
    }

    return {
        "spec": {
            **(
                {"activeDeadlineSeconds": active_deadline_seconds}
                if active_deadline_seconds is not None
                else {}
            ),
            "template": {
                "spec": {
                    "restartPolicy": "Never",
                    **(
                        {"imagePullSecrets": list(image_pull_secrets)}
                        if image_pull_secrets
                        else {}
                    ),
                    "containers": [container],
                }
            },
        }
    }


def build_cronjob(
    *,
    function: Mapping[str, Any],
    trigger: Mapping[str, Any],
    runtime_image: str,
    owner_references: list[dict[str, Any]],
    image_pull_secrets: list[dict[str, str]] | None = None,
    schedule: str | None = None,
) -> dict[str, Any]:
    """Render the CronJob manifest for a Function and one of its CronJobTriggers.

    Trigger labels and annotations override the Function's; the ownership labels
    are applied last so nothing can mask them. kopf bookkeeping annotations are
    not copied. This function is pure.
    """
    fn_meta = function.get("metadata") or {}
    fn_spec = function.get("spec") or {}
    trigger_meta = trigger.get("metadata") or {}
    trigger_spec = trigger.get("spec") or {}

    function_name: str = fn_meta["name"]
    namespace: str = fn_meta["namespace"]

    labels = merge_maps(
        merge_maps(fn_meta.get("labels"), trigger_meta.get("labels")), ownership_labels()
    )
    annotations = merge_maps(
        without_prefix(fn_meta.get("annotations"), KOPF_ANNOTATION_PREFIX),
        without_prefix(trigger_meta.get("annotations"), KOPF_ANNOTATION_PREFIX),
    )

    return {
        "apiVersion": "batch/v1",
        "kind": "CronJob",
        "metadata": {
            "name": cronjob_name_for(function_name),
            "namespace": namespace,
            "labels": labels,
            "annotations": annotations,
            "ownerReferences": owner_references,
        },
        "spec": {
            "schedule": schedule if schedule is not None else trigger_spec.get("schedule"),
            "successfulJobsHistoryLimit": SUCCESSFUL_JOBS_HISTORY_LIMIT,
            "failedJobsHistoryLimit": FAILED_JOBS_HISTORY_LIMIT,
            "jobTemplate": build_job_template(
                function_name=function_name,
                namespace=namespace,
                payload=trigger_spec.get("payload"),
                runtime_image=runtime_image,
                active_deadline_seconds=parse_timeout(fn_spec.get("timeout")),
                image_pull_secrets=image_pull_secrets,
            ),
        },
    }
