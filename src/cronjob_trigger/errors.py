"""Exceptions raised by the CronJobTrigger controller."""

from __future__ import annotations


class CronJobTriggerError(Exception):
    """Base class for controller errors."""

    pass


class CronJobConflictError(CronJobTriggerError):
    """Raised when the target CronJob exists but is not ours, or changed under us."""

    def __init__(self, namespace: str, name: str, detail: str):
        self.namespace = namespace
        self.name = name
        self.detail = detail
        super().__init__(f"conflicting object {namespace}/{name}: {detail}")


class InvalidTimeoutError(CronJobTriggerError):
    """Raised when a Function timeout is not a non-negative integer."""

    pass


class InvalidScheduleError(CronJobTriggerError):
    """Raised when a CronJobTrigger schedule is not a valid cron expression."""

    pass


class FunctionNotFoundError(CronJobTriggerError):
    """Raised when a CronJobTrigger references a Function that does not exist."""

    def __init__(self, namespace: str, name: str):
        self.namespace = namespace
        self.name = name
        super().__init__(f"function {namespace}/{name} not found")


class InvalidTriggerError(CronJobTriggerError):
    """Raised when a CronJobTrigger does not name the Function it belongs to."""

    pass
