"""
Recurring Processing Orchestrator

This module ties the components together for one processing pass over
the recurring schedule note:

    schedule table -> due selection -> record generation
        -> monthly note writes -> schedule write-back

DESIGN DECISION: The orchestrator enforces the ordering boundaries:
- A schedule is only committed after at least one of its records was
  written to a monthly note
- One broken schedule or one failed month never aborts the batch
- Nothing raises out of process_all; failures come back in the result

A crash between "records written" and "schedule committed" can make the
next pass regenerate the same occurrence. That is accepted: the pass is
idempotent apart from this window, and exhausted commits are reported as
critical errors so a human can check the schedule.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Sequence, Union

from pydantic import ValidationError
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from expense_notes.config import RecurringSettings, Settings, get_settings
from expense_notes.dates import TimezonePolicy, ensure_aware, now_in
from expense_notes.log import get_logger
from expense_notes.models.expense import (
    ExpenseRecord,
    ProcessingResult,
    RecurrencePeriod,
    RecurringSchedule,
)
from expense_notes.recurrence import (
    is_due,
    missed_occurrences,
    next_occurrence,
    next_occurrence_after,
)
from expense_notes.services.expenses import ExpenseService
from expense_notes.services.storage import (
    DocumentStore,
    FileSystemDocumentStore,
    FolderTargetResolver,
    TargetResolver,
)
from expense_notes.tables.codec import (
    expense_to_row,
    parse_amount,
    row_to_schedule,
    schedule_to_row,
)
from expense_notes.tables.schema import EXPENSE_TABLE, RECURRING_TABLE
from expense_notes.tables.store import TableDocumentStore
from expense_notes.validation import ExpenseValidator


logger = get_logger(__name__)


ScheduleKey = tuple[Decimal, str, str, str]


def schedule_key(record: ExpenseRecord) -> ScheduleKey:
    """
    Identity used to find a schedule's row again.

    Amount, description, category and counterparty. Two schedules that
    agree on all four are indistinguishable.
    """
    return (record.amount, record.description, record.category, record.counterparty)


def _row_key(cells: Sequence[str]) -> ScheduleKey:
    return (parse_amount(cells[0]), cells[1], cells[2], cells[4])


class RecurringProcessingCoordinator:
    """
    Runs processing passes over the recurring schedule note.

    Per schedule and pass:
    Idle -> Evaluating -> Generating -> Writing -> Committing -> Idle | Failed

    Schedules are handled one at a time, in table order. Every read-modify-
    write of a note goes through TableDocumentStore.replace_all.
    """

    def __init__(
        self,
        store: DocumentStore,
        resolver: TargetResolver,
        tables: Optional[TableDocumentStore] = None,
        settings: Optional[RecurringSettings] = None,
        policy: Optional[TimezonePolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            store: Note bodies
            resolver: Locates the schedule note and monthly notes
            tables: Table locator/rewriter
            settings: Backfill cap and commit retry policy
            policy: How naive timestamps in the notes are read
            clock: Source of "now" when process_all isn't given one
        """
        self._store = store
        self._resolver = resolver
        self._tables = tables or TableDocumentStore()
        self._settings = settings or get_settings().recurring
        self._policy = policy or TimezonePolicy.parse(get_settings().ledger.default_timezone)
        self._clock = clock or (lambda: now_in(self._policy))

    # =========================================================================
    # SCHEDULE TABLE
    # =========================================================================

    async def get_schedules(self) -> list[RecurringSchedule]:
        """All readable schedules; unreadable rows are skipped with a warning."""
        ref = await self._resolver.recurring_document()
        body = await self._store.read_body(ref)

        schedules = []
        for cells in self._tables.parse_rows(body, RECURRING_TABLE):
            try:
                schedules.append(row_to_schedule(cells, self._policy))
            except ValidationError as e:
                logger.warning("schedule_row_skipped", row=cells, error=str(e))
        return schedules

    def convert_to_schedule(
        self,
        record: ExpenseRecord,
        period: Union[RecurrencePeriod, str, None] = None,
        origin_id: Optional[str] = None,
    ) -> RecurringSchedule:
        """
        Turn a user-entered record into a schedule that has never run.

        The record's date becomes the anchor and the first due occurrence
        is one period after it. Without an explicit period the record's
        recurrence tag is used.
        """
        if isinstance(period, RecurrencePeriod):
            resolved = period
        else:
            resolved = RecurrencePeriod.parse(period or record.recurrence_tag)

        anchor = self._policy.localize(record.timestamp)
        fields = record.model_dump()
        fields.update(
            timestamp=anchor,
            period=resolved,
            recurrence_tag=resolved.value,
            last_processed=None,
            next_due=next_occurrence(anchor, resolved),
            enabled=True,
            origin_id=origin_id,
        )
        return RecurringSchedule(**fields)

    async def upsert_schedule(self, schedule: RecurringSchedule) -> None:
        """
        Replace the schedule's row, or append it if no row matches.

        Rows are matched by schedule_key. Other rows are written back
        exactly as they were read.

        Raises:
            StorageError: If the schedule note can't be read or written
        """
        await self._write_schedule(schedule, replace=True)

    async def add_schedule(self, schedule: RecurringSchedule) -> bool:
        """
        Append a new schedule unless a matching row already exists.

        An existing row is left untouched: its state belongs to the
        processing passes. Returns True if a row was appended.

        Raises:
            StorageError: If the schedule note can't be read or written
        """
        return await self._write_schedule(schedule, replace=False)

    async def _write_schedule(self, schedule: RecurringSchedule, replace: bool) -> bool:
        ref = await self._resolver.recurring_document()
        body = await self._store.read_body(ref)
        rows = self._tables.parse_rows(body, RECURRING_TABLE)

        key = schedule_key(schedule)
        new_row = schedule_to_row(schedule)
        for index, cells in enumerate(rows):
            if _row_key(cells) == key:
                if not replace:
                    logger.info("schedule_exists", description=schedule.description)
                    return False
                rows[index] = new_row
                break
        else:
            rows.append(new_row)

        await self._store.write_body(
            ref, self._tables.replace_all(body, RECURRING_TABLE, rows)
        )
        return True

    # =========================================================================
    # PROCESSING PASS
    # =========================================================================

    async def process_all(self, now: Optional[datetime] = None) -> ProcessingResult:
        """
        Process every due schedule once.

        Args:
            now: Evaluation time (default: the injected clock)

        Returns:
            ProcessingResult. Never raises: if the schedule note itself
            can't be processed the result carries a single error and
            zero counts.
        """
        now = ensure_aware(now or self._clock(), self._policy)
        result = ProcessingResult()

        try:
            logger.info("recurring_processing_started", now=now.isoformat())

            ref = await self._resolver.recurring_document()
            body = await self._store.read_body(ref)
            rows = self._tables.parse_rows(body, RECURRING_TABLE)

            if not rows:
                logger.info("no_recurring_schedules")
                return result

            for cells in rows:
                await self._process_row(cells, now, result)

        except Exception as e:
            logger.error("recurring_processing_failed", error=str(e))
            return ProcessingResult(errors=[f"Processing failed: {e}"])

        logger.info(
            "recurring_processing_completed",
            processed=result.processed,
            created=result.created,
            errors=len(result.errors),
            critical_errors=len(result.critical_errors),
        )
        return result

    async def _process_row(
        self,
        cells: list[str],
        now: datetime,
        result: ProcessingResult,
    ) -> None:
        label = cells[1] if len(cells) > 1 else "?"
        try:
            schedule = row_to_schedule(cells, self._policy, now)

            # Evaluating
            if not is_due(schedule, now):
                return
            result.processed += 1
            logger.info("processing_due_schedule", description=schedule.description)

            # Generating
            occurrences = self.occurrences_to_generate(schedule, now)
            if not occurrences:
                return

            # Writing
            written = await self._write_records(
                schedule, [schedule.occurrence(when) for when in occurrences], result
            )
        except Exception as e:
            logger.error("schedule_failed", description=label, error=str(e))
            result.errors.append(f'Error processing recurring expense "{label}": {e}')
            return

        if not written:
            return

        # Committing
        updated = self.advance(schedule, written, now)
        await self._commit(schedule, updated, result)

    def occurrences_to_generate(
        self,
        schedule: RecurringSchedule,
        now: datetime,
    ) -> list[datetime]:
        """
        Occurrence dates a due schedule produces in this pass.

        First run: every missed occurrence after the anchor (bounded by
        the backfill cap), plus the occurrence that is currently due, plus
        next_due itself if it is due and its date isn't already covered.
        Steady state: exactly next_due.
        """
        if not schedule.is_first_run:
            return [schedule.next_due]

        period = schedule.period
        occurrences = missed_occurrences(
            schedule.anchor, period, now, self._settings.backfill_cap
        )

        current = next_occurrence(occurrences[-1] if occurrences else schedule.anchor, period)
        if current <= now < next_occurrence(current, period):
            occurrences.append(current)

        produced = {when.date() for when in occurrences}
        if schedule.next_due <= now and schedule.next_due.date() not in produced:
            occurrences.append(schedule.next_due)

        return sorted(occurrences)

    def advance(
        self,
        schedule: RecurringSchedule,
        written: Sequence[ExpenseRecord],
        now: datetime,
    ) -> RecurringSchedule:
        """
        Schedule state after a pass that wrote `written`.

        First run advances from the anchor to the first occurrence after
        `now`; steady state advances one period from the last written
        occurrence.
        """
        if schedule.is_first_run:
            next_due = next_occurrence_after(schedule.anchor, schedule.period, now)
        else:
            last = max(record.timestamp for record in written)
            next_due = next_occurrence(last, schedule.period)

        return schedule.model_copy(update={"last_processed": now, "next_due": next_due})

    async def _write_records(
        self,
        schedule: RecurringSchedule,
        records: list[ExpenseRecord],
        result: ProcessingResult,
    ) -> list[ExpenseRecord]:
        """Write records grouped by month; returns the ones that landed."""
        groups: dict[str, list[ExpenseRecord]] = defaultdict(list)
        for record in records:
            groups[record.year_month].append(record)

        written = []
        for year_month, group in groups.items():
            try:
                await self._append_to_month(year_month, group)
            except Exception as e:
                logger.error(
                    "month_write_failed",
                    description=schedule.description,
                    year_month=year_month,
                    records=len(group),
                    error=str(e),
                )
                result.errors.append(
                    f'Failed to write {len(group)} record(s) for "{schedule.description}" '
                    f"to {year_month}: {e}"
                )
                continue

            written.extend(group)
            result.created += len(group)
            result.new_expenses.extend(group)

        return written

    async def _append_to_month(self, year_month: str, records: list[ExpenseRecord]) -> None:
        ref = await self._resolver.target_document_for(year_month)
        body = await self._store.read_body(ref)
        rows = self._tables.parse_rows(body, EXPENSE_TABLE)
        rows.extend(expense_to_row(record) for record in records)
        await self._store.write_body(ref, self._tables.replace_all(body, EXPENSE_TABLE, rows))
        logger.info("month_records_written", year_month=year_month, records=len(records))

    async def _commit(
        self,
        original: RecurringSchedule,
        updated: RecurringSchedule,
        result: ProcessingResult,
    ) -> None:
        attempts = self._settings.commit_attempts
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(attempts),
                wait=wait_exponential(
                    multiplier=self._settings.commit_backoff_seconds,
                    max=self._settings.commit_backoff_max_seconds,
                ),
                reraise=True,
            ):
                with attempt:
                    await self.upsert_schedule(updated)
        except Exception as e:
            message = (
                f'CRITICAL: records for "{original.description}" were written but the '
                f"schedule could not be updated after {attempts} attempt(s): {e}. "
                "It may be processed again on the next run."
            )
            logger.critical(
                "schedule_commit_failed",
                description=original.description,
                attempts=attempts,
                error=str(e),
            )
            result.errors.append(message)
            result.critical_errors.append(message)
            return

        logger.info(
            "schedule_committed",
            description=updated.description,
            next_due=updated.next_due.isoformat(),
        )


def create_app_components(
    store: Optional[DocumentStore] = None,
    settings: Optional[Settings] = None,
) -> tuple[RecurringProcessingCoordinator, ExpenseService, DocumentStore]:
    """
    Factory function to create all application components.

    Args:
        store: Note storage. Defaults to markdown files under
               NOTES_ROOT_PATH.
        settings: Application settings (default: get_settings())

    Returns:
        (coordinator, expense_service, store)
    """
    settings = settings or get_settings()
    ledger = settings.ledger
    policy = TimezonePolicy.parse(ledger.default_timezone)

    store = store or FileSystemDocumentStore(settings=settings.storage)
    resolver = FolderTargetResolver(store, ledger)
    tables = TableDocumentStore()

    coordinator = RecurringProcessingCoordinator(
        store,
        resolver,
        tables=tables,
        settings=settings.recurring,
        policy=policy,
    )
    expense_service = ExpenseService(
        store,
        resolver,
        coordinator,
        tables=tables,
        validator=ExpenseValidator(ledger, policy),
        settings=ledger,
        policy=policy,
    )

    return coordinator, expense_service, store
