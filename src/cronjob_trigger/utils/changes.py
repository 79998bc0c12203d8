from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def cronjob_trigger_changed(old: Mapping[str, Any], new: Mapping[str, Any]) -> bool:
    """Decide whether an update to a CronJobTrigger needs a reconcile.

    A trigger counts as changed when it entered (or left) pending deletion, when its
    resourceVersion moved, or when its schedule differs. Anything else is a no-op.
    """
    old_meta = old.get("metadata") or {}
    new_meta = new.get("metadata") or {}

    if old_meta.get("deletionTimestamp") != new_meta.get("deletionTimestamp"):
        return True
    if old_meta.get("resourceVersion") != new_meta.get("resourceVersion"):
        return True

    old_schedule = (old.get("spec") or {}).get("schedule")
    new_schedule = (new.get("spec") or {}).get("schedule")
    return old_schedule != new_schedule
