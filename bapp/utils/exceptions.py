"""
Domain errors raised by the period engine.

Every error is raised synchronously from a pure service function. The HTTP
layer translates them in ``bapp.main``; nothing in the service layer catches
them.
"""

from __future__ import annotations


class PeriodEngineError(ValueError):
    """Base class for caller errors detected by the period engine."""


class InvalidPeriodError(PeriodEngineError):
    """A period value or label is outside the supported domain."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(
            f"Unsupported reporting period {value!r}. "
            "Valid values: 0.5, 1, 2, 3, 4, 6, 12."
        )


class NoOpMigrationError(PeriodEngineError):
    """The requested migration would not change the period."""

    def __init__(self, period: object) -> None:
        self.period = period
        super().__init__(f"Contract already uses period {period!s}; nothing to migrate.")


class IncompleteStrategyError(PeriodEngineError):
    """A merge or split plan exists but the strategy does not cover it."""


class StrategyMismatchError(PeriodEngineError):
    """The strategy or analysis refers to buckets outside this migration."""


class InvalidRecordSetError(PeriodEngineError):
    """Progress records do not match the partition or the signature list."""


class MigrationInProgressError(RuntimeError):
    """Another migration for the same contract and year has not resolved yet."""

    def __init__(self, contract_id: str, year: int) -> None:
        self.contract_id = contract_id
        self.year = year
        super().__init__(
            f"A period migration for contract {contract_id!r} ({year}) is already running."
        )
