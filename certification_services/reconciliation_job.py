"""
certification_services.reconciliation_job -- recompute monthly counters from ground truth.

Responsibility:
    Rebuild the monthly certified counters (overall and by category) for a
    window of months from the customer table, report every difference
    against the stored values, and persist an immutable record of the run.

Architecture position:
    Services -- out-of-band operational component.  Composes kernel models
    and MonthlyAggregateStore; owns its transaction boundaries (one
    transaction per phase) through an injected session factory.

Invariants enforced:
    - Ground truth: current_status == CERTIFIED, certified_at set, not
      soft-deleted.  A customer counts in the month of certified_at.
    - Single flight: a ReconciliationLock row is taken under
      SELECT ... FOR UPDATE in its own committed transaction.  A second run
      fails fast with ReconciliationInProgressError.  A guard held longer
      than the configured timeout is treated as abandoned and taken over.
    - The main pass locks the stored window before reading truth, so live
      increments for those months wait for the rewrite to commit.  A
      verification pass in a fresh transaction corrects anything that
      slipped in between (e.g. a first increment of a brand new month row).
    - Every pass reads the stored counters before ground truth.  An increment
      committed between the two reads then looks like missing truth (fixed
      by the next pass) and is never deleted as surplus.
    - Idempotent: a second run with no intervening writes reports zero
      drift and writes no counter rows.
    - Dry runs write nothing except the ReconciliationRun record.

Failure modes:
    - ReconciliationInProgressError: another run holds the guard.
    - ReconciliationNotHeldError: the guard was taken over mid-run.
    - AggregateInconsistencyError: raised by verify() on drift.
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Mapping
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from certification_kernel.config import CertificationConfig
from certification_kernel.domain.clock import Clock, SystemClock
from certification_kernel.domain.months import first_day, first_day_after, month_of
from certification_kernel.domain.status import CustomerStatus, category_of
from certification_kernel.exceptions import (
    AggregateInconsistencyError,
    ReconciliationInProgressError,
    ReconciliationNotHeldError,
)
from certification_kernel.logging_config import LogContext, get_logger
from certification_kernel.models.customer import Customer
from certification_kernel.models.reconciliation import ReconciliationLock, ReconciliationRun
from certification_kernel.services.aggregate_store import MonthlyAggregateStore
from certification_kernel.utils.hashing import hash_payload
from certification_services._reconciliation_types import (
    AggregateDiff,
    ReconciliationReport,
    ReconciliationScope,
)

logger = get_logger("services.reconciliation")

DEFAULT_LOCK_NAME = "monthly_certified_count"


def compute_diffs(
    stored_totals: Mapping[str, int],
    stored_by_category: Mapping[tuple[str, str], int],
    truth_totals: Mapping[str, int],
    truth_by_category: Mapping[tuple[str, str], int],
) -> tuple[AggregateDiff, ...]:
    """
    Pair stored and recomputed values for every key present on either side.

    Month totals come first (by month), then the category breakdown (by
    month, category).  Missing values count as zero.
    """
    diffs = [
        AggregateDiff(
            month=month,
            category=None,
            previous=stored_totals.get(month, 0),
            recomputed=truth_totals.get(month, 0),
        )
        for month in sorted(set(stored_totals) | set(truth_totals))
    ]
    diffs.extend(
        AggregateDiff(
            month=month,
            category=category,
            previous=stored_by_category.get((month, category), 0),
            recomputed=truth_by_category.get((month, category), 0),
        )
        for month, category in sorted(set(stored_by_category) | set(truth_by_category))
    )
    return tuple(diffs)


class ReconciliationJob:
    """
    Recomputes the monthly counters and corrects drift.

    Usage::

        job = ReconciliationJob(get_session_factory(), config=config)
        report = job.run(ReconciliationScope.recent(12), actor="ops")
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        config: CertificationConfig | None = None,
        lock_name: str = DEFAULT_LOCK_NAME,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or CertificationConfig()
        self._lock_name = lock_name

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        scope: ReconciliationScope | None = None,
        actor: str = "system",
        dry_run: bool = False,
    ) -> ReconciliationReport:
        """
        Execute one reconciliation run.

        Args:
            scope: Months to recompute.  Defaults to the configured
                rolling window (``reconciliation_recent_months``).
            actor: Who triggered the run; recorded on the guard and the run.
            dry_run: Report differences without touching the counters.

        Returns:
            ReconciliationReport with every key in scope and any
            verification corrections.
        """
        if scope is None:
            scope = ReconciliationScope.recent(self._config.reconciliation_recent_months)
        run_id = uuid4()

        with LogContext.bind(run_id=str(run_id), actor=actor):
            self._acquire(run_id, actor)
            try:
                report = self._execute(run_id, scope, actor, dry_run)
            except Exception:
                self._release(run_id, strict=False)
                raise
            self._release(run_id)
        return report

    def verify(self, scope: ReconciliationScope | None = None) -> tuple[AggregateDiff, ...]:
        """
        Read-only comparison of stored counters with ground truth.

        Returns:
            Every key in scope when all of them agree.

        Raises:
            AggregateInconsistencyError: at least one key has drifted.
        """
        if scope is None:
            scope = ReconciliationScope.recent(self._config.reconciliation_recent_months)
        start, end = scope.resolve(self._clock.today())

        with self._session_factory() as session:
            diffs = self._compare(session, start, end)
            session.rollback()

        drift = [d for d in diffs if d.is_drift]
        if drift:
            self._log_drift(drift, phase="verify")
            raise AggregateInconsistencyError([d.to_dict() for d in drift])
        logger.info(
            "aggregate_verification_clean",
            extra={"start": start, "end": end, "keys_checked": len(diffs)},
        )
        return diffs

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _execute(
        self,
        run_id: UUID,
        scope: ReconciliationScope,
        actor: str,
        dry_run: bool,
    ) -> ReconciliationReport:
        t0 = time.monotonic()
        started_at = self._clock.now()
        start, end = scope.resolve(self._clock.today())

        logger.info(
            "reconciliation_started",
            extra={
                "scope": scope.kind,
                "start": start,
                "end": end,
                "dry_run": dry_run,
            },
        )

        diffs = self._main_pass(start, end, dry_run)
        corrections: tuple[AggregateDiff, ...] = ()
        if not dry_run:
            corrections = self._verification_pass(start, end)

        drift = [d for d in diffs if d.is_drift]
        if drift:
            self._log_drift(drift, phase="main")
        if corrections:
            self._log_drift(list(corrections), phase="verification")

        report = ReconciliationReport(
            run_id=run_id,
            scope=scope,
            start_month=start,
            end_month=end,
            dry_run=dry_run,
            actor=actor,
            started_at=started_at,
            finished_at=self._clock.now(),
            diffs=diffs,
            corrections=corrections,
        )
        self._record(report)

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "reconciliation_completed",
            extra={
                "scope": scope.kind,
                "start": start,
                "end": end,
                "dry_run": dry_run,
                "keys_checked": len(diffs),
                "drift_count": report.drift_count,
                "corrections_count": len(corrections),
                "duration_ms": duration_ms,
            },
        )
        return report

    def _main_pass(
        self,
        start: str | None,
        end: str | None,
        dry_run: bool,
    ) -> tuple[AggregateDiff, ...]:
        with self._session_factory() as session:
            store = MonthlyAggregateStore(session, self._clock)
            if not dry_run:
                store.lock_window(start, end)
            stored_totals, stored_by_category = store.snapshot(start, end)
            truth_totals, truth_by_category = self._ground_truth(session, start, end)
            diffs = compute_diffs(
                stored_totals, stored_by_category, truth_totals, truth_by_category,
            )
            if dry_run:
                session.rollback()
                return diffs
            if any(d.is_drift for d in diffs):
                store.replace(start, end, truth_totals, truth_by_category)
            session.commit()
        return diffs

    def _verification_pass(
        self,
        start: str | None,
        end: str | None,
    ) -> tuple[AggregateDiff, ...]:
        with self._session_factory() as session:
            store = MonthlyAggregateStore(session, self._clock)
            store.lock_window(start, end)
            stored_totals, stored_by_category = store.snapshot(start, end)
            truth_totals, truth_by_category = self._ground_truth(session, start, end)
            drift = tuple(
                d
                for d in compute_diffs(
                    stored_totals, stored_by_category, truth_totals, truth_by_category,
                )
                if d.is_drift
            )
            if drift:
                store.replace(start, end, truth_totals, truth_by_category)
                session.commit()
            else:
                session.rollback()
        return drift

    def _record(self, report: ReconciliationReport) -> None:
        payload = report.to_dict()
        with self._session_factory() as session:
            session.add(
                ReconciliationRun(
                    run_id=report.run_id,
                    scope=report.scope.kind,
                    start_month=report.start_month,
                    end_month=report.end_month,
                    dry_run=report.dry_run,
                    actor=report.actor,
                    started_at=report.started_at,
                    finished_at=report.finished_at,
                    drift_count=report.drift_count,
                    corrections_count=len(report.corrections),
                    report=payload,
                    report_hash=hash_payload(payload),
                )
            )
            session.commit()

    # ------------------------------------------------------------------
    # Ground truth
    # ------------------------------------------------------------------

    def _ground_truth(
        self,
        session: Session,
        start: str | None,
        end: str | None,
    ) -> tuple[dict[str, int], dict[tuple[str, str], int]]:
        stmt = (
            select(Customer.certified_at, Customer.certificate_type, func.count())
            .where(
                Customer.current_status == CustomerStatus.CERTIFIED,
                Customer.certified_at.is_not(None),
                Customer.deleted_at.is_(None),
            )
            .group_by(Customer.certified_at, Customer.certificate_type)
        )
        if start is not None:
            stmt = stmt.where(Customer.certified_at >= first_day(start))
        if end is not None:
            stmt = stmt.where(Customer.certified_at < first_day_after(end))

        totals: Counter[str] = Counter()
        by_category: Counter[tuple[str, str]] = Counter()
        for certified_at, certificate_type, count in session.execute(stmt).all():
            month = month_of(certified_at)
            totals[month] += count
            by_category[(month, category_of(certificate_type))] += count
        return dict(totals), dict(by_category)

    def _compare(
        self,
        session: Session,
        start: str | None,
        end: str | None,
    ) -> tuple[AggregateDiff, ...]:
        store = MonthlyAggregateStore(session, self._clock)
        stored_totals, stored_by_category = store.snapshot(start, end)
        truth_totals, truth_by_category = self._ground_truth(session, start, end)
        return compute_diffs(stored_totals, stored_by_category, truth_totals, truth_by_category)

    # ------------------------------------------------------------------
    # Single-flight guard
    # ------------------------------------------------------------------

    def _lock_row(self, session: Session) -> ReconciliationLock | None:
        return session.execute(
            select(ReconciliationLock)
            .where(ReconciliationLock.name == self._lock_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _acquire(self, run_id: UUID, actor: str) -> None:
        with self._session_factory() as session:
            lock = self._lock_row(session)
            if lock is None:
                try:
                    with session.begin_nested():
                        lock = ReconciliationLock(name=self._lock_name)
                        session.add(lock)
                        session.flush()
                except IntegrityError:
                    # Another run created the row first
                    lock = self._lock_row(session)

            now = self._clock.now()
            if lock.is_held:
                held_for = (
                    (now - lock.acquired_at).total_seconds()
                    if lock.acquired_at is not None
                    else None
                )
                timeout = self._config.reconciliation_lock_timeout_seconds
                if held_for is not None and held_for < timeout:
                    logger.warning(
                        "reconciliation_lock_busy",
                        extra={
                            "lock_name": self._lock_name,
                            "holder_run_id": str(lock.run_id),
                            "held_for_seconds": held_for,
                        },
                    )
                    raise ReconciliationInProgressError(self._lock_name, str(lock.run_id))
                logger.warning(
                    "reconciliation_lock_taken_over",
                    extra={
                        "lock_name": self._lock_name,
                        "stale_run_id": str(lock.run_id),
                        "stale_acquired_by": lock.acquired_by,
                        "held_for_seconds": held_for,
                    },
                )

            lock.run_id = run_id
            lock.acquired_at = now
            lock.acquired_by = actor
            session.commit()

        logger.info("reconciliation_lock_acquired", extra={"lock_name": self._lock_name})

    def _release(self, run_id: UUID, strict: bool = True) -> None:
        """
        Clear the guard if this run still holds it.

        With ``strict`` a lost guard raises ReconciliationNotHeldError;
        otherwise (release on the error path) it is only logged so the
        original exception propagates.
        """
        with self._session_factory() as session:
            lock = self._lock_row(session)
            if lock is None or lock.run_id != run_id:
                session.rollback()
                if strict:
                    raise ReconciliationNotHeldError(self._lock_name, str(run_id))
                logger.warning(
                    "reconciliation_lock_lost",
                    extra={"lock_name": self._lock_name},
                )
                return
            lock.run_id = None
            lock.acquired_at = None
            lock.acquired_by = None
            session.commit()

        logger.info("reconciliation_lock_released", extra={"lock_name": self._lock_name})

    # ------------------------------------------------------------------

    def _log_drift(self, drift: list[AggregateDiff], phase: str) -> None:
        for d in drift:
            logger.warning(
                "aggregate_inconsistency",
                extra={
                    "phase": phase,
                    "month": d.month,
                    "category": d.category,
                    "previous": d.previous,
                    "recomputed": d.recomputed,
                    "delta": d.delta,
                },
            )
