"""Reconciliation of Function and CronJobTrigger events into CronJobs."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from typing import Any

from kubernetes import client

from . import metrics
from .builders.cronjob_builder import build_owner_references
from .config import RuntimeConfig
from .constants import KOPF_ANNOTATION_PREFIX
from .errors import InvalidTriggerError
from .logging import logger
from .services.cronjob import CronJobService
from .services.triggers import TriggerService, trigger_function_name
from .utils.changes import cronjob_trigger_changed
from .utils.labels import without_prefix


class EventType(enum.Enum):
    ADDED = "ADDED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"


def _sync_inputs(trigger: Mapping[str, Any]) -> tuple[Any, ...]:
    meta = trigger.get("metadata") or {}
    spec = trigger.get("spec") or {}
    return (
        trigger_function_name(trigger),
        spec.get("payload") or {},
        meta.get("labels") or {},
        without_prefix(meta.get("annotations"), KOPF_ANNOTATION_PREFIX),
    )


def trigger_needs_sync(old: Mapping[str, Any], new: Mapping[str, Any]) -> bool:
    """True when an updated trigger must be written through to its CronJob.

    Besides the change detector, function name, payload, label and annotation
    edits also count because they are rendered into the CronJob. kopf's own
    annotations are not compared.
    """
    return cronjob_trigger_changed(old, new) or _sync_inputs(old) != _sync_inputs(new)


def _resource(obj: Mapping[str, Any]) -> str:
    meta = obj.get("metadata") or {}
    return f"{meta.get('namespace')}/{meta.get('name')}"


class CronJobTriggerController:
    """Keeps one ``trigger-<function>`` CronJob in line with its Function and trigger.

    All side effects go through the injected API clients, so a handler can be
    retried from scratch after any failure.
    """

    def __init__(
        self,
        batch_api: client.BatchV1Api | None = None,
        custom_api: client.CustomObjectsApi | None = None,
        runtime_config: RuntimeConfig | None = None,
    ) -> None:
        self.cronjobs = CronJobService(batch_api)
        self.triggers = TriggerService(custom_api)
        self.runtime_config = runtime_config or RuntimeConfig()

    def on_function_event(self, function: Mapping[str, Any], is_deleted: bool) -> None:
        meta = function.get("metadata") or {}
        namespace: str = meta["namespace"]
        function_name: str = meta["name"]

        if is_deleted:
            for trigger in self.triggers.list_triggers_for_function(namespace, function_name):
                self.triggers.delete_trigger(namespace, trigger["metadata"]["name"])
            self.cronjobs.delete_cronjob(function_name, namespace)
            logger.info(
                "Function deleted, trigger resources removed",
                controller="Function",
                resource=f"{namespace}/{function_name}",
                uid=meta.get("uid"),
                event="delete",
                reason="FunctionDeleted",
            )
            return

        triggers = self.triggers.list_triggers_for_function(namespace, function_name)
        for trigger in triggers:
            if (trigger.get("metadata") or {}).get("deletionTimestamp"):
                continue
            self._sync(function, trigger)
        logger.debug(
            "Function event processed",
            controller="Function",
            resource=f"{namespace}/{function_name}",
            uid=meta.get("uid"),
            event="sync",
            reason="FunctionSynced",
            triggers=len(triggers),
        )

    def on_trigger_event(
        self,
        event_type: EventType,
        old: Mapping[str, Any] | None,
        new: Mapping[str, Any],
    ) -> bool:
        """Handle a CronJobTrigger event.

        Returns:
            True if the CronJob was written or removed, False for a no-op.
        """
        meta = new.get("metadata") or {}

        if event_type is EventType.DELETED or meta.get("deletionTimestamp"):
            self._finalize(new)
            return True

        if event_type is EventType.UPDATED and old is not None and not trigger_needs_sync(old, new):
            metrics.SKIPPED_UPDATES_TOTAL.inc()
            logger.debug(
                "CronJobTrigger update carries no relevant change",
                controller="CronJobTrigger",
                resource=_resource(new),
                uid=meta.get("uid"),
                event="update",
                reason="UpdateSkipped",
            )
            return False

        function_name = trigger_function_name(new)
        if not function_name:
            raise InvalidTriggerError(
                f"CronJobTrigger {_resource(new)} does not reference a function"
            )
        function = self.triggers.get_function(meta["namespace"], function_name)

        self._sync(function, new)
        self.triggers.ensure_finalizer(new)

        previous_function = trigger_function_name(old) if old is not None else None
        if previous_function and previous_function != function_name:
            # Reassigned: the old function's CronJob may now be orphaned
            self._release_cronjob(meta["namespace"], previous_function, meta.get("name"))
        return True

    def _sync(self, function: Mapping[str, Any], trigger: Mapping[str, Any]) -> None:
        self.cronjobs.ensure_cronjob(
            function,
            trigger,
            self.runtime_config.image,
            build_owner_references(function),
            self.runtime_config.image_pull_secrets,
        )

    def _release_cronjob(
        self, namespace: str, function_name: str, trigger_name: str | None
    ) -> bool:
        """Delete the function's CronJob unless another live trigger still uses it."""
        # The CronJob is shared by every trigger of the function
        remaining = [
            t
            for t in self.triggers.list_triggers_for_function(namespace, function_name)
            if t["metadata"]["name"] != trigger_name
            and not t["metadata"].get("deletionTimestamp")
        ]
        if remaining:
            return False
        return self.cronjobs.delete_cronjob(function_name, namespace)

    def _finalize(self, trigger: Mapping[str, Any]) -> None:
        meta = trigger.get("metadata") or {}
        function_name = trigger_function_name(trigger)
        if function_name:
            self._release_cronjob(meta["namespace"], function_name, meta.get("name"))
        self.triggers.remove_finalizer(trigger)
        logger.info(
            "CronJobTrigger finalized",
            controller="CronJobTrigger",
            resource=_resource(trigger),
            uid=meta.get("uid"),
            event="delete",
            reason="TriggerFinalized",
        )
