"""
Migration coordinator.

Runs a period migration end to end for one contract year: compute the new
record set with the pure executor, then hand it to a ``ProgressStore`` that
replaces the old set atomically. At most one migration per contract and year
may be in flight; a second request while the first is unresolved is rejected
with ``MigrationInProgressError``.

A failed persist propagates unchanged and is not retried. Because the new
records are computed before the store is touched, nothing is written when
computation fails.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from typing import Protocol

from bapp.schemas.migration import MigrationAnalysis, MigrationStrategy
from bapp.schemas.period import Period
from bapp.schemas.progress import ProgressRecord, Signature
from bapp.services.migration_executor import execute_migration
from bapp.utils.exceptions import MigrationInProgressError

logger = logging.getLogger(__name__)

ContractYear = tuple[str, int]


class ProgressStore(Protocol):
    """Persistence collaborator receiving migrated record sets."""

    def replace_records(
        self,
        contract_id: str,
        year: int,
        period: Period,
        records: Sequence[ProgressRecord],
    ) -> None:
        """Replace the whole record set and the period of a contract year atomically."""
        ...


class InMemoryProgressStore:
    """Dictionary-backed ``ProgressStore`` for development and tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._periods: dict[ContractYear, Period] = {}
        self._records: dict[ContractYear, list[ProgressRecord]] = {}

    def replace_records(
        self,
        contract_id: str,
        year: int,
        period: Period,
        records: Sequence[ProgressRecord],
    ) -> None:
        with self._lock:
            self._periods[(contract_id, year)] = period
            self._records[(contract_id, year)] = list(records)

    def get_period(self, contract_id: str, year: int) -> Period | None:
        with self._lock:
            return self._periods.get((contract_id, year))

    def get_records(self, contract_id: str, year: int) -> list[ProgressRecord]:
        with self._lock:
            return list(self._records.get((contract_id, year), []))


class MigrationCoordinator:
    """Serialises period migrations per contract year and persists their result."""

    def __init__(self, store: ProgressStore) -> None:
        self._store = store
        self._guard = threading.Lock()
        self._in_flight: set[ContractYear] = set()

    def is_running(self, contract_id: str, year: int) -> bool:
        with self._guard:
            return (contract_id, year) in self._in_flight

    def _acquire(self, key: ContractYear) -> None:
        with self._guard:
            if key in self._in_flight:
                raise MigrationInProgressError(*key)
            self._in_flight.add(key)

    def _release(self, key: ContractYear) -> None:
        with self._guard:
            self._in_flight.discard(key)

    def migrate(
        self,
        contract_id: str,
        year: int,
        old_period: Period | float | str,
        new_period: Period | float | str,
        records: Sequence[ProgressRecord],
        strategy: MigrationStrategy | None = None,
        *,
        analysis: MigrationAnalysis | None = None,
        signatures: Sequence[Signature] | None = None,
    ) -> list[ProgressRecord]:
        """Migrate and persist one contract year.

        Args:
            contract_id: Contract identifier.
            year: Calendar year of the record set.
            old_period: Current period.
            new_period: Target period.
            records: Current records of the contract year.
            strategy: Caller choices for merge/split/half-month handling.
            analysis: Analysis the strategy was configured from, if any.
            signatures: Current contract signatures.

        Returns:
            The persisted record set.

        Raises:
            MigrationInProgressError: If another migration of the same contract
                year has not resolved.
            PeriodEngineError: Any executor error; nothing is persisted.
            Exception: Whatever the store raises, unchanged.
        """
        key = (contract_id, year)
        self._acquire(key)
        try:
            migrated = execute_migration(
                old_period,
                new_period,
                records,
                strategy,
                analysis=analysis,
                signatures=signatures,
            )
            target = Period.parse(new_period)
            logger.info(
                "Persisting %d records for contract %s (%d) as %s",
                len(migrated),
                contract_id,
                year,
                target.label,
            )
            try:
                self._store.replace_records(contract_id, year, target, migrated)
            except Exception:
                logger.exception(
                    "Persisting migrated records failed for contract %s (%d); period left unchanged",
                    contract_id,
                    year,
                )
                raise
            return migrated
        finally:
            self._release(key)
