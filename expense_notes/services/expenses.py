"""
Expense Service

Manages the new-expenses inbox and the monthly notes:
1. add_new_expense      validate -> append to the inbox
2. process_new_expenses inbox -> schedules + monthly notes
3. edits                update / delete rows in a monthly note

DESIGN DECISION: Rows have no identity column. A row is found by value:
the stored record must equal the one the caller passes in. Only the first
equal row is touched, so exact duplicates are edited one at a time.

Inbox rows are removed only once they have landed somewhere. A failed
month or schedule leaves its rows in the inbox for the next run.
"""

from collections import defaultdict
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional, Union

from pydantic import ValidationError

from expense_notes.config import LedgerSettings, get_settings
from expense_notes.dates import TimezonePolicy, ensure_aware, now_in
from expense_notes.log import get_logger
from expense_notes.models.expense import (
    ExpenseProcessingResult,
    ExpenseRecord,
    ExpenseSummary,
    OperationResult,
    RecurrencePeriod,
)
from expense_notes.queries import summarize
from expense_notes.services.storage import DocumentRef, DocumentStore, TargetResolver
from expense_notes.tables.codec import expense_to_row, row_to_expense
from expense_notes.tables.schema import EXPENSE_TABLE
from expense_notes.tables.store import TableDocumentStore
from expense_notes.validation import ExpenseValidator

if TYPE_CHECKING:
    from expense_notes.orchestrator import RecurringProcessingCoordinator


logger = get_logger(__name__)


class ExpenseService:
    """Inbox and monthly-note operations."""

    def __init__(
        self,
        store: DocumentStore,
        resolver: TargetResolver,
        coordinator: "RecurringProcessingCoordinator",
        tables: Optional[TableDocumentStore] = None,
        validator: Optional[ExpenseValidator] = None,
        settings: Optional[LedgerSettings] = None,
        policy: Optional[TimezonePolicy] = None,
    ):
        self._store = store
        self._resolver = resolver
        self._coordinator = coordinator
        self._tables = tables or TableDocumentStore()
        self._settings = settings or get_settings().ledger
        self._policy = policy or TimezonePolicy.parse(self._settings.default_timezone)
        self._validator = validator or ExpenseValidator(self._settings, self._policy)

    # =========================================================================
    # NOTE HELPERS
    # =========================================================================

    async def _read_rows(self, ref: DocumentRef) -> tuple[str, list[list[str]]]:
        body = await self._store.read_body(ref)
        return body, self._tables.parse_rows(body, EXPENSE_TABLE)

    async def _write_rows(self, ref: DocumentRef, body: str, rows: list[list[str]]) -> None:
        await self._store.write_body(ref, self._tables.replace_all(body, EXPENSE_TABLE, rows))

    def _find(self, rows: list[list[str]], record: ExpenseRecord) -> Optional[int]:
        for index, cells in enumerate(rows):
            try:
                if row_to_expense(cells, self._policy) == record:
                    return index
            except ValidationError:
                continue
        return None

    async def _append_to_month(self, year_month: str, rows: list[list[str]]) -> None:
        ref = await self._resolver.target_document_for(year_month)
        body, existing = await self._read_rows(ref)
        await self._write_rows(ref, body, existing + rows)
        logger.info("expenses_moved", year_month=year_month, count=len(rows))

    # =========================================================================
    # INBOX
    # =========================================================================

    async def add_new_expense(
        self,
        data: dict[str, Any],
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """
        Sanitize, validate and append one entry to the inbox.

        Args:
            data: Raw values keyed by column name (price, description, ...)
            now: Reference time for an empty date

        Returns:
            OperationResult with validation or storage errors
        """
        validation = self._validator.validate(data, now)
        if not validation.is_valid:
            return OperationResult(success=False, errors=validation.error_messages)

        for issue in validation.issues:
            if issue.severity == "warning":
                logger.warning("expense_input_warning", field=issue.field, message=issue.message)

        try:
            ref = await self._resolver.new_expenses_document()
            body, rows = await self._read_rows(ref)
            rows.append(expense_to_row(validation.record))
            await self._write_rows(ref, body, rows)
        except Exception as e:
            logger.error("add_expense_failed", error=str(e))
            return OperationResult(success=False, errors=[f"Failed to add expense: {e}"])

        logger.info("expense_added", description=validation.record.description)

        if self._settings.auto_process_new_expenses:
            processing = await self.process_new_expenses(now)
            if processing.errors:
                return OperationResult(success=True, errors=processing.errors)

        return OperationResult(success=True)

    async def process_new_expenses(self, now: Optional[datetime] = None) -> ExpenseProcessingResult:
        """
        Move every inbox entry to its monthly note.

        Entries tagged daily/weekly/monthly/yearly also become schedules;
        the entry itself is filed as the schedule's first occurrence.
        Rows that fail to parse, to schedule, or to file stay in the inbox.
        """
        now = ensure_aware(now, self._policy) if now else now_in(self._policy)
        result = ExpenseProcessingResult()

        try:
            inbox = await self._resolver.new_expenses_document()
            _, rows = await self._read_rows(inbox)

            if not rows:
                logger.info("no_new_expenses")
                return result

            by_month: dict[str, list[tuple[int, ExpenseRecord]]] = defaultdict(list)

            for index, cells in enumerate(rows):
                try:
                    record = row_to_expense(cells, self._policy, now)
                except ValidationError as e:
                    result.failed += 1
                    result.errors.append(f'Invalid expense "{cells[1]}": {e}')
                    continue

                if RecurrencePeriod.parse(record.recurrence_tag) != RecurrencePeriod.NONE:
                    # A row left behind by a failed month may already have its schedule.
                    try:
                        schedule = self._coordinator.convert_to_schedule(record, origin_id=inbox)
                        created = await self._coordinator.add_schedule(schedule)
                    except Exception as e:
                        result.failed += 1
                        result.errors.append(
                            f'Failed to create recurring expense "{record.description}": {e}'
                        )
                        continue
                    if created:
                        result.schedules_created += 1
                        logger.info(
                            "schedule_created",
                            description=record.description,
                            period=record.recurrence_tag,
                        )

                by_month[record.year_month].append((index, record))

            filed: set[int] = set()
            for year_month, group in by_month.items():
                try:
                    await self._append_to_month(
                        year_month, [expense_to_row(record) for _, record in group]
                    )
                except Exception as e:
                    result.failed += len(group)
                    result.errors.append(f"Failed to move expenses for {year_month}: {e}")
                    continue
                result.processed += len(group)
                result.moved.extend(record for _, record in group)
                filed.update(index for index, _ in group)

            if filed:
                body = await self._store.read_body(inbox)
                remaining = [cells for index, cells in enumerate(rows) if index not in filed]
                await self._write_rows(inbox, body, remaining)

        except Exception as e:
            logger.error("process_new_expenses_failed", error=str(e))
            result.errors.append(f"Processing failed: {e}")
            return result

        logger.info(
            "new_expenses_processed",
            processed=result.processed,
            failed=result.failed,
            schedules_created=result.schedules_created,
        )
        return result

    # =========================================================================
    # MONTHLY NOTES
    # =========================================================================

    async def get_monthly_expenses(self, year_month: str) -> list[ExpenseRecord]:
        """Valid records in the monthly note for YYYY-MM."""
        ref = await self._resolver.target_document_for(year_month)
        _, rows = await self._read_rows(ref)

        records = []
        for cells in rows:
            try:
                records.append(row_to_expense(cells, self._policy))
            except ValidationError as e:
                logger.warning("expense_row_skipped", row=cells, error=str(e))
        return records

    async def get_monthly_summary(self, year_month: str) -> ExpenseSummary:
        return summarize(await self.get_monthly_expenses(year_month))

    async def update_expense(
        self,
        original: ExpenseRecord,
        updated: Union[ExpenseRecord, dict[str, Any]],
    ) -> OperationResult:
        """
        Replace a record, moving it to another month if its date changed.

        `updated` may be a record or raw column values; raw values are
        validated first.
        """
        if isinstance(updated, dict):
            validation = self._validator.validate(updated)
            if not validation.is_valid:
                return OperationResult(success=False, errors=validation.error_messages)
            updated = validation.record

        try:
            ref = await self._resolver.target_document_for(original.year_month)
            body, rows = await self._read_rows(ref)
            index = self._find(rows, original)
            if index is None:
                return OperationResult(success=False, errors=["Original expense entry not found"])

            if updated.year_month == original.year_month:
                rows[index] = expense_to_row(updated)
                await self._write_rows(ref, body, rows)
            else:
                await self._append_to_month(updated.year_month, [expense_to_row(updated)])
                del rows[index]
                await self._write_rows(ref, body, rows)
        except Exception as e:
            logger.error("update_expense_failed", error=str(e))
            return OperationResult(success=False, errors=[f"Failed to update expense: {e}"])

        logger.info("expense_updated", description=updated.description)
        return OperationResult(success=True)

    async def delete_expense(self, record: ExpenseRecord) -> OperationResult:
        """Remove the first row equal to `record` from its monthly note."""
        try:
            ref = await self._resolver.target_document_for(record.year_month)
            body, rows = await self._read_rows(ref)
            index = self._find(rows, record)
            if index is None:
                return OperationResult(success=False, errors=["Expense entry not found"])

            del rows[index]
            await self._write_rows(ref, body, rows)
        except Exception as e:
            logger.error("delete_expense_failed", error=str(e))
            return OperationResult(success=False, errors=[f"Failed to delete expense: {e}"])

        logger.info("expense_deleted", description=record.description)
        return OperationResult(success=True)
