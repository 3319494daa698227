"""
Entry normalization.

Turns loosely typed statement entries (JSON rows from a bank statement or an
AI extraction) into NormalizedRecord instances. Exactly one record is
produced per entry; validation problems are attached to the record as typed
errors and never raised.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .ledger.interfaces import AccountLookup, CategoryLookup
from .schemas.records import (
    DEFAULT_DESCRIPTION,
    DESCRIPTION_MAX_LENGTH,
    Account,
    Category,
    InvalidAmount,
    InvalidDate,
    InvalidType,
    NormalizedRecord,
    RecordError,
    TransactionType,
    UnresolvedAccount,
    UnresolvedCategory,
)

logger = logging.getLogger(__name__)

# Accepted input date formats, tried in order
DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y")

CENTS = Decimal("0.01")

# Amounts must stay below 10**MAX_AMOUNT_DIGITS
MAX_AMOUNT_DIGITS = 15

# Ids longer than this many digits are rejected before int() conversion
MAX_ID_DIGITS = 18


# ============================================================================
# Coercion helpers
# ============================================================================


def to_string(value: Any) -> str | None:
    """Trimmed string form of a scalar; blank or non-scalar values become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float, Decimal)):
        text = str(value).strip()
        return text or None
    return None


def to_int(value: Any) -> int | None:
    """
    Parse an integer id.

    Accepts ints, integral floats and numeric strings. Booleans are rejected.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = to_string(value)
    if text is None:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    # Bound the magnitude first: "1e50000000" would build a 50M-digit int
    if not number.is_finite() or number.adjusted() >= MAX_ID_DIGITS:
        return None
    if number != number.to_integral_value():
        return None
    return int(number)


def to_bool(value: Any) -> bool:
    """Loose boolean: True, 1, 1.0 and "1"/"true"/"yes"/"si"/"sí" are true."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "si", "sí")
    if isinstance(value, (int, float)):
        return float(value) == 1.0
    return False


def to_int_list(value: Any) -> list[int]:
    """Positive unique integers from a list, in first-seen order."""
    if not isinstance(value, (list, tuple)):
        return []
    result: list[int] = []
    for item in value:
        number = to_int(item)
        if number is not None and number > 0 and number not in result:
            result.append(number)
    return result


def parse_amount(value: Any) -> Decimal | None:
    """
    Parse a positive amount rounded to cents.

    Returns:
        Decimal with 2 decimal places, or None if the value is missing,
        non-numeric, non-finite, not greater than zero or not below
        10 ** MAX_AMOUNT_DIGITS
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None

    text = to_string(value)
    if text is None:
        return None

    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None

    if not amount.is_finite() or amount.adjusted() >= MAX_AMOUNT_DIGITS:
        return None

    try:
        amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    if amount <= 0:
        return None
    return amount


def parse_date(value: Any) -> str | None:
    """
    Parse a date into YYYY-MM-DD.

    Formats are tried in DATE_FORMATS order and a format only matches when
    formatting the parsed date reproduces the input exactly, so "2024-1-5"
    is rejected.

    Examples:
        >>> parse_date("05/03/2024")
        '2024-03-05'
        >>> parse_date("2024-1-5") is None
        True
    """
    text = to_string(value)
    if text is None:
        return None

    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if parsed.strftime(fmt) == text:
            return parsed.strftime("%Y-%m-%d")

    return None


# ============================================================================
# Normalizer
# ============================================================================


@dataclass(frozen=True)
class RunDefaults:
    """Account and categories resolved once per import run."""

    account: Account | None = None
    expense_category: Category | None = None
    income_category: Category | None = None

    def category_for(self, type_: TransactionType) -> Category | None:
        if type_ == TransactionType.INCOME:
            return self.income_category
        return self.expense_category


class EntryNormalizer:
    """
    Normalizes raw statement entries against a user's accounts and categories.

    Usage:
        normalizer = EntryNormalizer(accounts, categories)
        defaults = normalizer.resolve_defaults(account_name="Checking")
        records = normalizer.normalize_all(entries, defaults)
    """

    def __init__(
        self,
        accounts: AccountLookup,
        categories: CategoryLookup,
        user_id: int | None = None,
        strict_dates: bool = False,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize the normalizer.

        Args:
            accounts: Account lookup collaborator
            categories: Category lookup collaborator
            user_id: Owner of the ledger (passed through to lookups)
            strict_dates: Record InvalidDate instead of defaulting to today
            today: Clock used for the default date
        """
        self.accounts = accounts
        self.categories = categories
        self.user_id = user_id
        self.strict_dates = strict_dates
        self.today = today

    # ------------------------------------------------------------------
    # Reference resolution
    # ------------------------------------------------------------------

    def resolve_account(self, account_id: int | None, name: str | None) -> Account | None:
        """Resolve by id first, then by case-insensitive exact name."""
        if account_id is not None:
            account = self.accounts.find_by_id(self.user_id, account_id)
            if account is not None:
                return account

        if name is None:
            return None
        return self.accounts.find_by_exact_name(self.user_id, name)

    def resolve_category(
        self,
        category_id: int | None,
        name: str | None,
        expected_type: TransactionType,
    ) -> Category | None:
        """Resolve by id, then exact name, then name substring (alphabetically first)."""
        if category_id is not None:
            category = self.categories.find_by_id(self.user_id, category_id, expected_type)
            if category is not None:
                return category

        if name is None:
            return None

        category = self.categories.find_by_exact_name(self.user_id, name, expected_type)
        if category is not None:
            return category
        return self.categories.find_by_name_substring(self.user_id, name, expected_type)

    def resolve_defaults(
        self,
        account_id: Any = None,
        account_name: Any = None,
        default_expense_category_id: Any = None,
        default_expense_category_name: Any = None,
        default_income_category_id: Any = None,
        default_income_category_name: Any = None,
    ) -> RunDefaults:
        """Resolve the run-level account and per-type default categories."""
        defaults = RunDefaults(
            account=self.resolve_account(to_int(account_id), to_string(account_name)),
            expense_category=self.resolve_category(
                to_int(default_expense_category_id),
                to_string(default_expense_category_name),
                TransactionType.EXPENSE,
            ),
            income_category=self.resolve_category(
                to_int(default_income_category_id),
                to_string(default_income_category_name),
                TransactionType.INCOME,
            ),
        )
        logger.debug(
            "Run defaults: account=%s expense_category=%s income_category=%s",
            defaults.account.id if defaults.account else None,
            defaults.expense_category.id if defaults.expense_category else None,
            defaults.income_category.id if defaults.income_category else None,
        )
        return defaults

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def normalize(self, raw: Any, index: int, defaults: RunDefaults) -> NormalizedRecord:
        """
        Normalize one raw entry.

        Args:
            raw: Entry mapping (anything else is treated as an empty mapping)
            index: 1-based position of the entry in the batch
            defaults: Run-level defaults from resolve_defaults()

        Returns:
            NormalizedRecord; check ``is_valid`` / ``errors``
        """
        entry: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
        errors: list[RecordError] = []

        # Type
        raw_type = entry.get("type")
        type_text = to_string(raw_type)
        if type_text is None and (raw_type is None or isinstance(raw_type, str)):
            type_ = TransactionType.EXPENSE
        else:
            try:
                type_ = TransactionType((type_text or "").lower())
            except ValueError:
                errors.append(InvalidType(value=type_text))
                type_ = TransactionType.EXPENSE

        # Amount
        amount = parse_amount(entry.get("amount"))
        if amount is None:
            errors.append(InvalidAmount(value=to_string(entry.get("amount"))))
            amount = Decimal("0.00")

        # Date
        raw_date = entry.get("transaction_date")
        if raw_date is None:
            raw_date = entry.get("posted_date")
        transaction_date = parse_date(raw_date)
        if transaction_date is None:
            if self.strict_dates:
                errors.append(InvalidDate(value=to_string(raw_date)))
            transaction_date = self.today().isoformat()

        # Account
        account = self.resolve_account(
            to_int(entry.get("account_id")), to_string(entry.get("account_name"))
        )
        if account is None:
            account = defaults.account
        if account is None:
            errors.append(UnresolvedAccount())

        # Category
        category = self.resolve_category(
            to_int(entry.get("category_id")),
            to_string(entry.get("category_name")),
            type_,
        )
        if category is None:
            category = defaults.category_for(type_)
        if category is None:
            errors.append(UnresolvedCategory(expected_type=type_))

        # Description
        merchant = to_string(entry.get("merchant"))
        description = to_string(entry.get("description")) or merchant or DEFAULT_DESCRIPTION
        reference = to_string(entry.get("reference"))
        if reference is not None:
            description = f"{description} | ref {reference}"
        description = description[:DESCRIPTION_MAX_LENGTH]

        record = NormalizedRecord(
            display_index=index,
            source_indexes=[index],
            type=type_,
            amount=amount,
            transaction_date=transaction_date,
            description=description,
            merchant=merchant,
            group_key=to_string(entry.get("group_key")),
            group_description=to_string(entry.get("group_description")),
            account=account,
            category=category,
            errors=errors,
        )

        if errors:
            logger.debug("Entry #%d invalid: %s", index, "; ".join(record.error_messages))

        return record

    def normalize_all(
        self, raw_entries: Iterable[Any], defaults: RunDefaults
    ) -> list[NormalizedRecord]:
        """Normalize a batch; indexes are 1-based positions in the batch."""
        return [
            self.normalize(raw, index, defaults)
            for index, raw in enumerate(raw_entries, start=1)
        ]
