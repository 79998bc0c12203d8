"""Access to CronJobTrigger and Function custom resources."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kubernetes import client

from ..constants import (
    API_GROUP,
    API_VERSION,
    FIELD_MANAGER,
    FINALIZER,
    PLURAL_CRONJOB_TRIGGERS,
    PLURAL_FUNCTIONS,
)
from ..errors import FunctionNotFoundError
from ..logging import logger


def trigger_function_name(trigger: Mapping[str, Any]) -> str | None:
    """Name of the Function a CronJobTrigger points at."""
    spec = trigger.get("spec") or {}
    return spec.get("function-name") or spec.get("functionName")


class TriggerService:
    """Reads Functions and reads/writes CronJobTriggers through CustomObjectsApi."""

    def __init__(self, custom_api: client.CustomObjectsApi | None = None) -> None:
        self.custom_api = custom_api or client.CustomObjectsApi()

    def get_function(self, namespace: str, name: str) -> dict[str, Any]:
        try:
            return self.custom_api.get_namespaced_custom_object(
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=PLURAL_FUNCTIONS,
                name=name,
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                raise FunctionNotFoundError(namespace, name) from e
            raise

    def list_triggers_for_function(
        self, namespace: str, function_name: str
    ) -> list[dict[str, Any]]:
        """Return every CronJobTrigger in ``namespace`` referencing ``function_name``."""
        triggers = self.custom_api.list_namespaced_custom_object(
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=PLURAL_CRONJOB_TRIGGERS,
        )
        return [
            item
            for item in triggers.get("items", [])
            if trigger_function_name(item) == function_name
        ]

    def delete_trigger(self, namespace: str, name: str) -> bool:
        """Delete a CronJobTrigger. Returns False if it was already gone."""
        try:
            self.custom_api.delete_namespaced_custom_object(
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=PLURAL_CRONJOB_TRIGGERS,
                name=name,
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return False
            raise
        logger.info(
            "CronJobTrigger deleted",
            controller="CronJobTrigger",
            resource=f"{namespace}/{name}",
            event="delete",
            reason="TriggerDeleted",
        )
        return True

    def ensure_finalizer(self, trigger: Mapping[str, Any]) -> bool:
        """Add our finalizer to ``trigger``. Returns True if a patch was sent."""
        meta = trigger.get("metadata") or {}
        finalizers = list(meta.get("finalizers") or [])
        if FINALIZER in finalizers:
            return False
        finalizers.append(FINALIZER)
        self._patch_finalizers(meta, finalizers)
        return True

    def remove_finalizer(self, trigger: Mapping[str, Any]) -> bool:
        """Drop our finalizer from ``trigger``. Returns True if a patch was sent."""
        meta = trigger.get("metadata") or {}
        finalizers = list(meta.get("finalizers") or [])
        if FINALIZER not in finalizers:
            return False
        finalizers.remove(FINALIZER)
        try:
            self._patch_finalizers(meta, finalizers)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return False
            raise
        return True

    def _patch_finalizers(self, meta: Mapping[str, Any], finalizers: list[str]) -> None:
        body: dict[str, Any] = {"metadata": {"finalizers": finalizers}}
        # Merge patch with resourceVersion fails if the trigger changed since it was read
        if meta.get("resourceVersion"):
            body["metadata"]["resourceVersion"] = meta["resourceVersion"]
        self.custom_api.patch_namespaced_custom_object(
            group=API_GROUP,
            version=API_VERSION,
            namespace=meta.get("namespace"),
            plural=PLURAL_CRONJOB_TRIGGERS,
            name=meta.get("name"),
            body=body,
            field_manager=FIELD_MANAGER,
        )
