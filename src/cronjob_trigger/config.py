"""Runtime configuration shared with the kubeless installation."""

from __future__ import annotations

import os
from dataclasses import dataclass

from kubernetes import client

from .constants import (
    CONFIG_KEY_PROVISION_IMAGE,
    CONFIG_KEY_PROVISION_IMAGE_SECRET,
    DEFAULT_KUBELESS_CONFIG,
    DEFAULT_KUBELESS_NAMESPACE,
    DEFAULT_RUNTIME_IMAGE,
    KUBELESS_CONFIG_ENV,
    KUBELESS_NAMESPACE_ENV,
    RUNTIME_IMAGE_ENV,
)
from .logging import logger


@dataclass(frozen=True)
class RuntimeConfig:
    """Image used to issue the HTTP call, plus the pull secret it needs."""

    image: str = DEFAULT_RUNTIME_IMAGE
    image_pull_secret: str | None = None

    @property
    def image_pull_secrets(self) -> list[dict[str, str]]:
        if not self.image_pull_secret:
            return []
        return [{"name": self.image_pull_secret}]


def load_runtime_config(core_api: client.CoreV1Api | None = None) -> RuntimeConfig:
    """Resolve the runtime image from the kubeless ConfigMap and the environment.

    ``CRONJOB_TRIGGER_RUNTIME_IMAGE`` wins over the ConfigMap's ``provision-image``.
    A missing ConfigMap falls back to defaults; other API errors propagate.
    """
    namespace = os.getenv(KUBELESS_NAMESPACE_ENV, DEFAULT_KUBELESS_NAMESPACE)
    config_name = os.getenv(KUBELESS_CONFIG_ENV, DEFAULT_KUBELESS_CONFIG)

    data: dict[str, str] = {}
    try:
        config_map = (core_api or client.CoreV1Api()).read_namespaced_config_map(
            config_name, namespace
        )
        data = config_map.data or {}
    except client.exceptions.ApiException as e:
        if e.status != 404:
            raise
        logger.warning(
            "kubeless ConfigMap not found, using default runtime image",
            controller="CronJobTrigger",
            resource=f"{namespace}/{config_name}",
            event="startup",
            reason="ConfigMapNotFound",
        )

    image = (
        os.getenv(RUNTIME_IMAGE_ENV)
        or data.get(CONFIG_KEY_PROVISION_IMAGE)
        or DEFAULT_RUNTIME_IMAGE
    )
    secret = data.get(CONFIG_KEY_PROVISION_IMAGE_SECRET) or None
    return RuntimeConfig(image=image, image_pull_secret=secret)
