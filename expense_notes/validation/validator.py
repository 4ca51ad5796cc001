"""
Two-Stage Input Validation

DESIGN DECISION: User-entered rows go through two stages before they
touch a note:

STAGE 1 - SANITIZATION:
- HTML tags and markup characters are stripped
- Text fields are trimmed and length-bounded
- Attachments are reduced to safe links or relative paths

STAGE 2 - VALIDATION:
- Required fields present after sanitization
- Amount is a number within bounds
- Date is readable and within a sane range
- Category is known (warning only)

Sanitization changes values; validation only reports. Each change that
drops user content is reported as a warning so nothing disappears silently.
"""

import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional
from urllib.parse import urlparse

from dateutil.relativedelta import relativedelta

from expense_notes.config import LedgerSettings, get_settings
from expense_notes.dates import (
    FellBackToNow,
    TimezonePolicy,
    ensure_aware,
    now_in,
    parse_datetime,
)
from expense_notes.models.expense import (
    PLACEHOLDER,
    ExpenseRecord,
    RecurrencePeriod,
    ValidationIssue,
    ValidationResult,
)


MAX_DESCRIPTION_LENGTH = 200
MAX_CATEGORY_LENGTH = 50
MAX_COUNTERPARTY_LENGTH = 100
MAX_URL_LENGTH = 2048
AMOUNT_LIMIT = Decimal("1000000")
EARLIEST_YEAR = 2000
FUTURE_YEARS = 10

_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_MARKUP_CHARS_RE = re.compile(r"[<>\"'&]")
_MARKDOWN_LINK_RE = re.compile(r"^\[([^\]]*)\]\(([^)]+)\)$")
_RELATIVE_PATH_RE = re.compile(r"^\.?/[\w\-./]+$")
_DANGEROUS_URL_RE = re.compile(
    r"javascript:|data:|vbscript:|about:|chrome:|chrome-extension:|"
    r"moz-extension:|<script|on\w+=",
    re.IGNORECASE,
)
_ALLOWED_SCHEMES = ("http", "https", "file")
_BLOCKED_FILE_PATHS = ("/etc/", "/proc/", "/sys/", "/dev/", "/root/", "/home/")


def strip_html(value: str) -> str:
    value = _SCRIPT_RE.sub("", value)
    return _TAG_RE.sub("", value)


def sanitize_description(value: str) -> str:
    return strip_html(value).strip()[:MAX_DESCRIPTION_LENGTH]


def sanitize_category(value: str) -> str:
    return _MARKUP_CHARS_RE.sub("", strip_html(value)).strip()[:MAX_CATEGORY_LENGTH]


def sanitize_counterparty(value: str) -> str:
    return _MARKUP_CHARS_RE.sub("", value).strip()[:MAX_COUNTERPARTY_LENGTH]


def is_safe_url(value: str) -> bool:
    """http, https or file URL without script-ish content."""
    if len(value) > MAX_URL_LENGTH or _DANGEROUS_URL_RE.search(value):
        return False
    parsed = urlparse(value)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        return False
    if parsed.scheme == "file":
        path = parsed.path.lower()
        return not any(blocked in path for blocked in _BLOCKED_FILE_PATHS)
    return bool(parsed.netloc)


def sanitize_attachment(value: str) -> str:
    """
    Keep a safe URL, a markdown link to one, or a relative path.

    Returns '' for anything else.
    """
    text = (value or "").strip()
    if not text:
        return ""

    link = _MARKDOWN_LINK_RE.match(text)
    if link:
        label, url = link.groups()
        if is_safe_url(url):
            return f"[{_MARKUP_CHARS_RE.sub('', label)}]({url})"
        return ""

    if is_safe_url(text):
        return text

    if _RELATIVE_PATH_RE.match(text):
        return _MARKUP_CHARS_RE.sub("", text)

    return ""


class ExpenseValidator:
    """
    Sanitizes and validates raw expense input.

    Input is a mapping using the table's column names: price, description,
    category, date, shop, attachment, recurring.
    """

    def __init__(
        self,
        settings: Optional[LedgerSettings] = None,
        policy: Optional[TimezonePolicy] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._policy = policy or TimezonePolicy.parse(self._settings.default_timezone)

    def _validate_amount(self, raw: Any) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        issues = []
        text = str(raw).strip() if raw is not None else ""
        if not text:
            issues.append(ValidationIssue(
                field="price",
                issue_type="missing",
                message="Price cannot be empty",
                severity="error",
            ))
            return None, issues

        try:
            amount = Decimal(text)
        except InvalidOperation:
            amount = None
        if amount is None or not amount.is_finite():
            issues.append(ValidationIssue(
                field="price",
                issue_type="invalid_format",
                message="Price must be a valid number",
                severity="error",
            ))
            return None, issues

        if abs(amount) > AMOUNT_LIMIT:
            issues.append(ValidationIssue(
                field="price",
                issue_type="out_of_range",
                message="Price must be between -1,000,000 and 1,000,000",
                severity="error",
            ))
            return None, issues

        # Cents at most; shorter inputs keep their own precision.
        if amount.as_tuple().exponent < -2:
            amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
            issues.append(ValidationIssue(
                field="price",
                issue_type="rounded",
                message=f"Price rounded to {amount}",
                severity="info",
            ))

        return amount, issues

    def _validate_date(
        self,
        raw: Any,
        now: datetime,
    ) -> tuple[Optional[datetime], list[ValidationIssue]]:
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return now, [ValidationIssue(
                field="date",
                issue_type="defaulted",
                message="No date given, using the current time",
                severity="info",
            )]

        outcome = parse_datetime(raw, self._policy, now)
        if isinstance(outcome, FellBackToNow):
            return None, [ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message="Invalid date format",
                severity="error",
            )]

        instant = outcome.instant
        earliest = ensure_aware(datetime(EARLIEST_YEAR, 1, 1), self._policy)
        latest = ensure_aware(
            datetime(now.year + FUTURE_YEARS, 12, 31, 23, 59, 59), self._policy
        )
        if instant < earliest or instant > latest:
            return None, [ValidationIssue(
                field="date",
                issue_type="out_of_range",
                message=f"Date must be between {EARLIEST_YEAR} and {FUTURE_YEARS} years from now",
                severity="error",
            )]

        issues = []
        if instant > now + relativedelta(days=1):
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({instant.date()}) is in the future",
                severity="warning",
            ))
        return instant, issues

    def _validate_text(self, data: dict[str, Any]) -> tuple[dict[str, str], list[ValidationIssue]]:
        issues = []
        raw_description = str(data.get("description") or "")
        raw_category = str(data.get("category") or "")
        raw_shop = str(data.get("shop") or "")
        raw_attachment = str(data.get("attachment") or "")

        clean = {
            "description": sanitize_description(raw_description),
            "category": sanitize_category(raw_category),
            "shop": sanitize_counterparty(raw_shop),
            "attachment": sanitize_attachment(raw_attachment),
        }

        for field, raw in (("description", raw_description), ("category", raw_category)):
            if not raw.strip():
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"{field.capitalize()} is required",
                    severity="error",
                ))
            elif not clean[field] or clean[field] == PLACEHOLDER:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="empty_after_sanitization",
                    message=f"{field.capitalize()} cannot be empty after sanitization",
                    severity="error",
                ))

        if raw_attachment.strip() and not clean["attachment"]:
            issues.append(ValidationIssue(
                field="attachment",
                issue_type="invalid_format",
                message="Attachment must be an http(s)/file URL or a relative path; it was dropped",
                severity="warning",
            ))

        known = [c.casefold() for c in self._settings.categories_list]
        if clean["category"] and known and clean["category"].casefold() not in known:
            issues.append(ValidationIssue(
                field="category",
                issue_type="unknown_category",
                message=f"Category '{clean['category']}' is not in the configured list",
                severity="warning",
            ))

        return clean, issues

    def validate(
        self,
        data: dict[str, Any],
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """
        Run both stages and build the sanitized record.

        Args:
            data: Raw column values
            now: Reference time for defaults and range checks

        Returns:
            ValidationResult; `record` is set only when there are no errors
        """
        now = now or now_in(self._policy)

        text, issues = self._validate_text(data)
        amount, amount_issues = self._validate_amount(data.get("price"))
        timestamp, date_issues = self._validate_date(data.get("date"), now)
        issues = issues + amount_issues + date_issues

        raw_period = str(data.get("recurring") or "").strip()
        period = RecurrencePeriod.parse(raw_period)
        if raw_period and period == RecurrencePeriod.NONE:
            issues.append(ValidationIssue(
                field="recurring",
                issue_type="invalid_value",
                message=f"Unknown recurrence '{raw_period}', entry will not repeat",
                severity="warning",
            ))

        if any(issue.severity == "error" for issue in issues):
            return ValidationResult(is_valid=False, issues=issues)

        record = ExpenseRecord(
            amount=amount,
            description=text["description"],
            category=text["category"],
            timestamp=timestamp,
            counterparty=text["shop"],
            attachment_ref=text["attachment"],
            recurrence_tag=period,
        )
        return ValidationResult(is_valid=True, issues=issues, record=record)
