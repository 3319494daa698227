"""
Canonical import record (SSOT).

Every statement entry is normalized into exactly one NormalizedRecord.
Grouping, duplicate search and the import executor all consume this shape;
no other module may invent a parallel "entry" structure.

Key invariants:
- A record with errors is never grouped, matched or created
- display_index always refers to an index present in source_indexes
- amount is a positive Decimal with 2 decimals (0 only when invalid)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

# Maximum stored description length
DESCRIPTION_MAX_LENGTH = 255

# Fallback description when neither description nor merchant is supplied
DEFAULT_DESCRIPTION = "Imported transaction"


class TransactionType(str, Enum):
    """Transaction types accepted by the statement import."""

    EXPENSE = "expense"
    INCOME = "income"


@dataclass(frozen=True)
class Account:
    """Ledger account a record is booked against."""

    id: int
    name: str
    currency_code: str | None = None


@dataclass(frozen=True)
class Category:
    """Ledger category; its type must agree with the record type."""

    id: int
    name: str
    type: TransactionType


@dataclass(frozen=True)
class DuplicateCandidate:
    """Read-only view of an existing ledger transaction."""

    id: int
    account_id: int
    type: TransactionType
    amount: Decimal
    transaction_date: str  # YYYY-MM-DD
    category_id: int | None = None
    description: str | None = None
    created_at: datetime | None = None


# ============================================================================
# Validation errors (per record, never raised)
# ============================================================================


class RecordError:
    """Base class for validation problems attached to a record."""

    @property
    def message(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class InvalidType(RecordError):
    """Entry type is neither expense nor income."""

    value: str | None = None

    @property
    def message(self) -> str:
        return "invalid type, use expense or income"


@dataclass(frozen=True)
class InvalidAmount(RecordError):
    """Amount missing, not numeric, or not greater than zero."""

    value: str | None = None

    @property
    def message(self) -> str:
        return "invalid amount, must be greater than zero"


@dataclass(frozen=True)
class InvalidDate(RecordError):
    """Date could not be parsed (strict date mode only)."""

    value: str | None = None

    @property
    def message(self) -> str:
        return "invalid date, use YYYY-MM-DD, DD/MM/YYYY or DD-MM-YYYY"


@dataclass(frozen=True)
class UnresolvedAccount(RecordError):
    """Neither the entry nor the run defaults resolved to an account."""

    @property
    def message(self) -> str:
        return "could not resolve account"


@dataclass(frozen=True)
class UnresolvedCategory(RecordError):
    """No category of the expected type could be resolved."""

    expected_type: TransactionType = TransactionType.EXPENSE

    @property
    def message(self) -> str:
        return f"missing category of type {self.expected_type.value}"


@dataclass
class NormalizedRecord:
    """Validated (or partially invalid), possibly grouped statement entry."""

    display_index: int
    source_indexes: list[int]
    type: TransactionType
    amount: Decimal
    transaction_date: str  # YYYY-MM-DD
    description: str
    merchant: str | None = None
    group_key: str | None = None
    group_description: str | None = None
    account: Account | None = None
    category: Category | None = None
    errors: list[RecordError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """Return True if the record carries no validation errors."""
        return not self.errors

    @property
    def is_grouped(self) -> bool:
        """Return True if more than one source entry was merged into this record."""
        return len(self.source_indexes) > 1

    @property
    def account_id(self) -> int | None:
        return self.account.id if self.account else None

    @property
    def category_id(self) -> int | None:
        return self.category.id if self.category else None

    @property
    def error_messages(self) -> list[str]:
        return [error.message for error in self.errors]
