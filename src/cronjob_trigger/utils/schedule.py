from __future__ import annotations

from croniter import croniter

from ..errors import InvalidScheduleError

# Macros accepted by the Kubernetes CronJob controller
_MACROS = {
    "@yearly",
    "@annually",
    "@monthly",
    "@weekly",
    "@daily",
    "@midnight",
    "@hourly",
}


def validate_schedule(schedule: str | None) -> str:
    """Return the trimmed schedule, raising InvalidScheduleError when it is malformed.

    Only the standard five-field syntax and the Kubernetes ``@`` macros are allowed;
    croniter's optional seconds field is rejected because CronJobs do not support it.
    """
    s = (schedule or "").strip()
    if not s:
        raise InvalidScheduleError("schedule must be set")

    if s.startswith("@"):
        if s not in _MACROS:
            raise InvalidScheduleError(f"unsupported schedule macro: {s}")
        return s

    if len(s.split()) != 5 or not croniter.is_valid(s):
        raise InvalidScheduleError(f"invalid cron expression: {s}")
    return s
