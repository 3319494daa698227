"""
Firefly III ledger backend.

Implements the four ledger collaborators on top of FireflyClient so the
import engine can run against a live Firefly III instance.

Firefly III is single-user per token, so ``user_id`` is accepted and
ignored. Firefly categories carry no expense/income type; any category
satisfies the expected type and is reported back with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..firefly_client import FireflyClient, FireflyTransaction
from ..schemas.firefly_payload import FIREFLY_TYPES, build_firefly_payload
from ..schemas.records import Account, Category, DuplicateCandidate, TransactionType
from .interfaces import (
    DEFAULT_CANDIDATE_LIMIT,
    AccountLookup,
    AmountRange,
    CategoryLookup,
    DateRange,
    DuplicateCandidateSource,
    TransactionWriter,
)

logger = logging.getLogger(__name__)


def _parse_created_at(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Unparsable created_at from Firefly: %s", value)
        return None


class FireflyAccounts(AccountLookup):
    """Asset accounts, fetched once and cached."""

    def __init__(self, client: FireflyClient, account_type: str = "asset"):
        self.client = client
        self.account_type = account_type
        self._accounts: list[Account] | None = None

    def _load(self) -> list[Account]:
        if self._accounts is None:
            self._accounts = [
                Account(
                    id=acc["id"],
                    name=acc.get("name") or "",
                    currency_code=acc.get("currency_code"),
                )
                for acc in self.client.list_accounts(account_type=self.account_type)
                if acc.get("id") is not None
            ]
            logger.debug("Loaded %d Firefly accounts", len(self._accounts))
        return self._accounts

    def find_by_id(self, user_id: int | None, account_id: int) -> Account | None:
        for account in self._load():
            if account.id == account_id:
                return account

        # Not in the listed pages: ask Firefly directly
        raw = self.client.get_account(account_id)
        if raw is None or raw.get("id") is None:
            return None
        if raw.get("type") and raw["type"] != self.account_type:
            logger.debug(
                "Account %s has type %s, expected %s", account_id, raw["type"], self.account_type
            )
            return None
        return Account(
            id=raw["id"], name=raw.get("name") or "", currency_code=raw.get("currency_code")
        )

    def find_by_exact_name(self, user_id: int | None, name: str) -> Account | None:
        wanted = name.strip().lower()
        for account in self._load():
            if account.name.strip().lower() == wanted:
                return account
        return None


class FireflyCategories(CategoryLookup):
    """Firefly categories (untyped), fetched once and cached."""

    def __init__(self, client: FireflyClient):
        self.client = client
        self._categories: list[tuple[int, str]] | None = None

    def _load(self) -> list[tuple[int, str]]:
        if self._categories is None:
            self._categories = [(cat.id, cat.name) for cat in self.client.list_categories()]
            logger.debug("Loaded %d Firefly categories", len(self._categories))
        return self._categories

    def find_by_id(
        self, user_id: int | None, category_id: int, expected_type: TransactionType
    ) -> Category | None:
        for cat_id, cat_name in self._load():
            if cat_id == category_id:
                return Category(id=cat_id, name=cat_name, type=expected_type)
        return None

    def find_by_exact_name(
        self, user_id: int | None, name: str, expected_type: TransactionType
    ) -> Category | None:
        wanted = name.strip().lower()
        for cat_id, cat_name in self._load():
            if cat_name.strip().lower() == wanted:
                return Category(id=cat_id, name=cat_name, type=expected_type)
        return None

    def find_by_name_substring(
        self, user_id: int | None, name: str, expected_type: TransactionType
    ) -> Category | None:
        wanted = name.strip().lower()
        if not wanted:
            return None
        matches = sorted(
            (cat_name, cat_id) for cat_id, cat_name in self._load() if wanted in cat_name.lower()
        )
        if not matches:
            return None
        cat_name, cat_id = matches[0]
        return Category(id=cat_id, name=cat_name, type=expected_type)


class FireflyCandidates(DuplicateCandidateSource):
    """Duplicate candidates read from an account's Firefly transactions."""

    def __init__(self, client: FireflyClient):
        self.client = client

    def find_candidates(
        self,
        account_id: int,
        type_: TransactionType,
        date_range: DateRange,
        amount_range: AmountRange,
        limit: int = DEFAULT_CANDIDATE_LIMIT,
    ) -> list[DuplicateCandidate]:
        """
        Query Firefly for the account's transactions in the date window.

        Firefly cannot filter by amount, so the amount band, ordering and
        limit are applied locally.
        """
        firefly_type = FIREFLY_TYPES[type_]
        transactions = self.client.list_account_transactions(
            account_id=account_id,
            start_date=date_range.start,
            end_date=date_range.end,
            type_filter=firefly_type,
        )

        candidates = [
            self._to_candidate(tx, account_id, type_)
            for tx in transactions
            if tx.type == firefly_type
            and date_range.contains(tx.date)
            and amount_range.contains(tx.amount)
        ]
        candidates.sort(
            key=lambda c: (
                c.transaction_date,
                c.created_at.isoformat() if c.created_at else "",
            ),
            reverse=True,
        )

        logger.debug(
            "Firefly returned %d transactions for account %s, %d in amount band",
            len(transactions),
            account_id,
            len(candidates),
        )
        return candidates[:limit]

    @staticmethod
    def _to_candidate(
        tx: FireflyTransaction, account_id: int, type_: TransactionType
    ) -> DuplicateCandidate:
        return DuplicateCandidate(
            id=tx.id,
            account_id=account_id,
            type=type_,
            amount=tx.amount.quantize(Decimal("0.01")),
            transaction_date=tx.date,
            category_id=tx.category_id,
            description=tx.description,
            created_at=_parse_created_at(tx.created_at),
        )


class FireflyWriter(TransactionWriter):
    """Creates transactions through the Firefly API."""

    def __init__(self, client: FireflyClient):
        self.client = client

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
        Create the transaction in Firefly.

        Raises:
            ValueError: If the payload cannot be built
            FireflyError: If Firefly rejects the transaction
        """
        payload = build_firefly_payload(
            account=account,
            type_=type_,
            amount=amount,
            date=date,
            description=description,
            category=category,
            conversion_rate=conversion_rate,
            ai_assisted=ai_assisted,
        )
        firefly_id = self.client.create_transaction(payload)
        logger.info(
            "Created %s of %s on account %s (firefly id=%s)",
            FIREFLY_TYPES[type_],
            payload.transactions[0].amount,
            account.id,
            firefly_id,
        )


@dataclass
class FireflyLedger:
    """The four collaborators wired to one Firefly client."""

    accounts: FireflyAccounts
    categories: FireflyCategories
    candidates: FireflyCandidates
    writer: FireflyWriter

    @classmethod
    def from_client(cls, client: FireflyClient, account_type: str = "asset") -> FireflyLedger:
        return cls(
            accounts=FireflyAccounts(client, account_type=account_type),
            categories=FireflyCategories(client),
            candidates=FireflyCandidates(client),
            writer=FireflyWriter(client),
        )
