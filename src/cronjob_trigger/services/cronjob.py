"""CronJob synchronization for CronJobTriggers."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kubernetes import client

from .. import metrics
from ..builders.cronjob_builder import build_cronjob, cronjob_name_for, is_owned
from ..constants import FIELD_MANAGER
from ..errors import CronJobConflictError
from ..logging import logger
from ..utils.schedule import validate_schedule


def _to_dict(obj: Any) -> dict[str, Any]:
    """Serialize a client model (or pass through a dict) into its JSON form."""
    return client.ApiClient().sanitize_for_serialization(obj)


class CronJobService:
    """Creates, updates and deletes the CronJob derived from a Function's trigger."""

    def __init__(self, batch_api: client.BatchV1Api | None = None) -> None:
        self.batch_api = batch_api or client.BatchV1Api()

    def ensure_cronjob(
        self,
        function: Mapping[str, Any],
        trigger: Mapping[str, Any],
        runtime_image: str,
        owner_references: list[dict[str, Any]],
        image_pull_secrets: list[dict[str, str]] | None = None,
    ) -> dict[str, Any]:
        """Create the CronJob for ``function`` or update the one we already own.

        Input is validated before the API is touched, so a malformed schedule or
        timeout never leaves a partial object behind. An existing CronJob without
        our ownership marker raises CronJobConflictError and is left untouched.

        Returns:
            The manifest sent to the API server.
        """
        fn_meta = function.get("metadata") or {}
        namespace: str = fn_meta["namespace"]
        name = cronjob_name_for(fn_meta["name"])
        resource = f"{namespace}/{name}"

        schedule = validate_schedule((trigger.get("spec") or {}).get("schedule"))
        desired = build_cronjob(
            function=function,
            trigger=trigger,
            runtime_image=runtime_image,
            owner_references=owner_references,
            image_pull_secrets=image_pull_secrets,
            schedule=schedule,
        )

        try:
            existing = self.batch_api.read_namespaced_cron_job(name=name, namespace=namespace)
        except client.exceptions.ApiException as e:
            if e.status != 404:
                raise
            existing = None

        if existing is None:
            try:
                self.batch_api.create_namespaced_cron_job(
                    namespace=namespace,
                    body=desired,
                    field_manager=FIELD_MANAGER,
                )
            except client.exceptions.ApiException as e:
                if e.status == 409:
                    # Someone created it between our read and create
                    metrics.CRONJOB_WRITES_TOTAL.labels(action="conflict").inc()
                    raise CronJobConflictError(namespace, name, "created concurrently") from e
                raise
            metrics.CRONJOB_WRITES_TOTAL.labels(action="created").inc()
            logger.info(
                "CronJob created",
                controller="CronJobTrigger",
                resource=resource,
                event="sync",
                reason="CronJobCreated",
                schedule=schedule,
            )
            return desired

        current = _to_dict(existing)
        current_meta = current.setdefault("metadata", {})
        if not is_owned(current_meta.get("labels")):
            metrics.CRONJOB_WRITES_TOTAL.labels(action="conflict").inc()
            logger.warning(
                "Refusing to overwrite CronJob not created by this controller",
                controller="CronJobTrigger",
                resource=resource,
                event="sync",
                reason="CronJobConflict",
            )
            raise CronJobConflictError(
                namespace, name, "object exists and is not managed by kubeless"
            )

        updated = self._merge_into(current, desired)
        try:
            self.batch_api.replace_namespaced_cron_job(
                name=name,
                namespace=namespace,
                body=updated,
                field_manager=FIELD_MANAGER,
            )
        except client.exceptions.ApiException as e:
            if e.status == 409:
                metrics.CRONJOB_WRITES_TOTAL.labels(action="conflict").inc()
                raise CronJobConflictError(
                    namespace, name, "resourceVersion changed while updating"
                ) from e
            raise
        metrics.CRONJOB_WRITES_TOTAL.labels(action="updated").inc()
        logger.info(
            "CronJob updated",
            controller="CronJobTrigger",
            resource=resource,
            event="sync",
            reason="CronJobUpdated",
            schedule=schedule,
        )
        return updated

    @staticmethod
    def _merge_into(current: dict[str, Any], desired: dict[str, Any]) -> dict[str, Any]:
        """Overlay the fields this controller owns onto the stored object.

        Identity, ownerReferences and resourceVersion stay as stored so the update is
        rejected if the object moved since we read it.
        """
        meta = current["metadata"]
        meta["labels"] = desired["metadata"]["labels"]
        meta["annotations"] = desired["metadata"]["annotations"]

        spec = current.setdefault("spec", {})
        for key in (
            "schedule",
            "successfulJobsHistoryLimit",
            "failedJobsHistoryLimit",
            "jobTemplate",
        ):
            spec[key] = desired["spec"][key]

        # Server-populated status is not part of a spec update
        current.pop("status", None)
        return current

    def delete_cronjob(self, function_name: str, namespace: str) -> bool:
        """Delete the CronJob for ``function_name`` if we own it.

        Returns False when there was nothing of ours to delete.
        """
        name = cronjob_name_for(function_name)
        try:
            existing = self.batch_api.read_namespaced_cron_job(name=name, namespace=namespace)
            if not is_owned((_to_dict(existing).get("metadata") or {}).get("labels")):
                logger.warning(
                    "Leaving CronJob not created by this controller in place",
                    controller="CronJobTrigger",
                    resource=f"{namespace}/{name}",
                    event="delete",
                    reason="CronJobNotOwned",
                )
                return False
            self.batch_api.delete_namespaced_cron_job(
                name=name,
                namespace=namespace,
                propagation_policy="Background",
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                logger.info(
                    "CronJob not found (already deleted)",
                    controller="CronJobTrigger",
                    resource=f"{namespace}/{name}",
                    event="delete",
                    reason="CronJobNotFound",
                )
                return False
            raise
        metrics.CRONJOB_WRITES_TOTAL.labels(action="deleted").inc()
        logger.info(
            "CronJob deleted",
            controller="CronJobTrigger",
            resource=f"{namespace}/{name}",
            event="delete",
            reason="CronJobDeleted",
        )
        return True
