"""In-memory stand-ins for the Kubernetes API clients used by the controller."""

from __future__ import annotations

import copy
from typing import Any

import pytest
from kubernetes import client


def _not_found(name: str) -> client.exceptions.ApiException:
    return client.exceptions.ApiException(status=404, reason=f"{name} not found")


def _conflict(reason: str) -> client.exceptions.ApiException:
    return client.exceptions.ApiException(status=409, reason=reason)


class FakeBatchApi:
    """Stores CronJobs as dicts and enforces resourceVersion on replace."""

    def __init__(self) -> None:
        self.cronjobs: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[str] = []
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def add(self, body: dict[str, Any]) -> None:
        """Seed an object directly, bypassing call tracking."""
        stored = copy.deepcopy(body)
        meta = stored.setdefault("metadata", {})
        meta["resourceVersion"] = self._next_version()
        self.cronjobs[(meta["namespace"], meta["name"])] = stored

    def get(self, namespace: str, name: str) -> dict[str, Any] | None:
        return self.cronjobs.get((namespace, name))

    def read_namespaced_cron_job(self, name: str, namespace: str, **_: Any) -> dict[str, Any]:
        self.calls.append("read")
        if (namespace, name) not in self.cronjobs:
            raise _not_found(name)
        return copy.deepcopy(self.cronjobs[(namespace, name)])

    def create_namespaced_cron_job(self, namespace: str, body: dict[str, Any], **_: Any) -> None:
        self.calls.append("create")
        name = body["metadata"]["name"]
        if (namespace, name) in self.cronjobs:
            raise _conflict("already exists")
        stored = copy.deepcopy(body)
        stored["metadata"]["resourceVersion"] = self._next_version()
        self.cronjobs[(namespace, name)] = stored

    def replace_namespaced_cron_job(
        self, name: str, namespace: str, body: dict[str, Any], **_: Any
    ) -> None:
        self.calls.append("replace")
        current = self.cronjobs.get((namespace, name))
        if current is None:
            raise _not_found(name)
        if body["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise _conflict("resourceVersion mismatch")
        stored = copy.deepcopy(body)
        stored["metadata"]["resourceVersion"] = self._next_version()
        self.cronjobs[(namespace, name)] = stored

    def delete_namespaced_cron_job(self, name: str, namespace: str, **_: Any) -> None:
        self.calls.append("delete")
        if self.cronjobs.pop((namespace, name), None) is None:
            raise _not_found(name)


class FakeCustomObjectsApi:
    """Stores custom resources per plural; deletion honours finalizers."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def add(self, plural: str, body: dict[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(body)
        meta = stored.setdefault("metadata", {})
        meta["resourceVersion"] = self._next_version()
        self.objects[(plural, meta["namespace"], meta["name"])] = stored
        return copy.deepcopy(stored)

    def get(self, plural: str, namespace: str, name: str) -> dict[str, Any] | None:
        return self.objects.get((plural, namespace, name))

    def get_namespaced_custom_object(
        self, group: str, version: str, namespace: str, plural: str, name: str, **_: Any
    ) -> dict[str, Any]:
        if (plural, namespace, name) not in self.objects:
            raise _not_found(name)
        return copy.deepcopy(self.objects[(plural, namespace, name)])

    def list_namespaced_custom_object(
        self, group: str, version: str, namespace: str, plural: str, **_: Any
    ) -> dict[str, Any]:
        items = [
            copy.deepcopy(obj)
            for (p, ns, _name), obj in sorted(self.objects.items())
            if p == plural and ns == namespace
        ]
        return {"items": items}

    def delete_namespaced_custom_object(
        self, group: str, version: str, namespace: str, plural: str, name: str, **_: Any
    ) -> None:
        key = (plural, namespace, name)
        obj = self.objects.get(key)
        if obj is None:
            raise _not_found(name)
        if obj["metadata"].get("finalizers"):
            obj["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
            obj["metadata"]["resourceVersion"] = self._next_version()
        else:
            del self.objects[key]

    def patch_namespaced_custom_object(
        self,
        group: str,
        version: str,
        namespace: str,
        plural: str,
        name: str,
        body: dict[str, Any],
        **_: Any,
    ) -> None:
        key = (plural, namespace, name)
        obj = self.objects.get(key)
        if obj is None:
            raise _not_found(name)
        patch_meta = body.get("metadata") or {}
        expected = patch_meta.get("resourceVersion")
        if expected and expected != obj["metadata"]["resourceVersion"]:
            raise _conflict("resourceVersion mismatch")
        if "finalizers" in patch_meta:
            obj["metadata"]["finalizers"] = list(patch_meta["finalizers"])
        obj["metadata"]["resourceVersion"] = self._next_version()
        if obj["metadata"].get("deletionTimestamp") and not obj["metadata"].get("finalizers"):
            del self.objects[key]


def make_function(
    name: str = "func1",
    namespace: str = "default",
    timeout: str | None = "120",
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
) -> dict[str, Any]:
    spec: dict[str, Any] = {}
    if timeout is not None:
        spec["timeout"] = timeout
    return {
        "apiVersion": "kubeless.io/v1beta1",
        "kind": "Function",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": f"{name}-uid",
            "labels": labels or {},
            "annotations": annotations or {},
        },
        "spec": spec,
    }


def make_trigger(
    name: str = "func1",
    namespace: str = "default",
    function_name: str = "func1",
    schedule: str = "* * * * *",
    payload: dict[str, str] | None = None,
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    resource_version: str | None = None,
) -> dict[str, Any]:
    spec: dict[str, Any] = {"function-name": function_name, "schedule": schedule}
    if payload is not None:
        spec["payload"] = payload
    meta: dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "uid": f"{name}-trigger-uid",
        "labels": labels or {},
        "annotations": annotations or {},
    }
    if resource_version is not None:
        meta["resourceVersion"] = resource_version
    return {
        "apiVersion": "kubeless.io/v1beta1",
        "kind": "CronJobTrigger",
        "metadata": meta,
        "spec": spec,
    }


@pytest.fixture
def batch_api() -> FakeBatchApi:
    return FakeBatchApi()


@pytest.fixture
def custom_api() -> FakeCustomObjectsApi:
    return FakeCustomObjectsApi()
