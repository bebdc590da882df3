"""Exception types raised by the task tracker."""

from __future__ import annotations


class PlanTrackerError(Exception):
    """Base class for tracker errors."""


class ConfigurationError(PlanTrackerError):
    """A call arrived without the session or principal it must be scoped to."""


class StoreError(PlanTrackerError):
    """The durable task store could not complete an operation."""


class StoreReadError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass
