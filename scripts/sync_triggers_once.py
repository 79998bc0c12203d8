#!/usr/bin/env python3
from __future__ import annotations

import argparse
from contextlib import suppress

from kubernetes import client, config

from cronjob_trigger.config import load_runtime_config
from cronjob_trigger.constants import API_GROUP, API_VERSION, PLURAL_CRONJOB_TRIGGERS
from cronjob_trigger.controller import CronJobTriggerController, EventType
from cronjob_trigger.errors import CronJobTriggerError


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync CronJobs for all CronJobTriggers once")
    parser.add_argument("--namespace", required=True)
    args = parser.parse_args()

    # Load kube config (in-cluster or local)
    with suppress(Exception):
        config.load_incluster_config()
    with suppress(Exception):
        config.load_kube_config()

    co_api = client.CustomObjectsApi()
    controller = CronJobTriggerController(
        batch_api=client.BatchV1Api(),
        custom_api=co_api,
        runtime_config=load_runtime_config(client.CoreV1Api()),
    )

    triggers = co_api.list_namespaced_custom_object(
        group=API_GROUP,
        version=API_VERSION,
        namespace=args.namespace,
        plural=PLURAL_CRONJOB_TRIGGERS,
    )

    failures = 0
    for item in triggers.get("items", []):
        name = item["metadata"]["name"]
        try:
            controller.on_trigger_event(EventType.ADDED, None, item)
            print(f"Synced CronJobTrigger {args.namespace}/{name}")
        except CronJobTriggerError as e:
            failures += 1
            print(f"Skipped CronJobTrigger {args.namespace}/{name}: {e}")

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
