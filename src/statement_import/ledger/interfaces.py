"""
Ledger collaborator interfaces.

The import engine never talks to storage directly. It consumes these four
narrow capabilities, which the surrounding system implements (see
FireflyLedger for the bundled Firefly III backend).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from ..schemas.records import Account, Category, DuplicateCandidate, TransactionType

# Maximum candidates consulted per duplicate search
DEFAULT_CANDIDATE_LIMIT = 20


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range (YYYY-MM-DD strings compare lexicographically)."""

    start: str
    end: str

    def contains(self, date: str) -> bool:
        return self.start <= date[:10] <= self.end


@dataclass(frozen=True)
class AmountRange:
    """Inclusive amount range."""

    minimum: Decimal
    maximum: Decimal

    def contains(self, amount: Decimal) -> bool:
        return self.minimum <= amount <= self.maximum


class AccountLookup(ABC):
    """Resolves account references for a user."""

    @abstractmethod
    def find_by_id(self, user_id: int | None, account_id: int) -> Account | None:
        """Return the user's account with this id, or None."""
        pass

    @abstractmethod
    def find_by_exact_name(self, user_id: int | None, name: str) -> Account | None:
        """Return the user's account whose name equals ``name`` (case-insensitive)."""
        pass


class CategoryLookup(ABC):
    """Resolves category references of a given type for a user."""

    @abstractmethod
    def find_by_id(
        self,
        user_id: int | None,
        category_id: int,
        expected_type: TransactionType,
    ) -> Category | None:
        """Return the category with this id if it has the expected type."""
        pass

    @abstractmethod
    def find_by_exact_name(
        self,
        user_id: int | None,
        name: str,
        expected_type: TransactionType,
    ) -> Category | None:
        """Return the category whose name equals ``name`` (case-insensitive)."""
        pass

    @abstractmethod
    def find_by_name_substring(
        self,
        user_id: int | None,
        name: str,
        expected_type: TransactionType,
    ) -> Category | None:
        """Return the alphabetically first category whose name contains ``name``."""
        pass


class DuplicateCandidateSource(ABC):
    """Read-only query over persisted ledger transactions."""

    @abstractmethod
    def find_candidates(
        self,
        account_id: int,
        type_: TransactionType,
        date_range: DateRange,
        amount_range: AmountRange,
        limit: int = DEFAULT_CANDIDATE_LIMIT,
    ) -> list[DuplicateCandidate]:
        """
        Find transactions that could duplicate an incoming record.

        Args:
            account_id: Only transactions booked on this account
            type_: Only transactions of this type
            date_range: Inclusive transaction date window
            amount_range: Inclusive amount band
            limit: Maximum number of candidates

        Returns:
            Candidates ordered by most recent date, then most recent creation
        """
        pass


class TransactionWriter(ABC):
    """Creates ledger transactions (atomic per call)."""

    @abstractmethod
    def create(
        self,
        account: Account,
        type_: TransactionType,
        amount: Decimal,
        date: str,
        description: str,
        category: Category | None,
        conversion_rate: float = 1.0,
        ai_assisted: bool = True,
    ) -> None:
        """
        Create one transaction and update the account balance.

        Raises:
            Exception: Any failure; the caller reports it per record.
        """
        pass
