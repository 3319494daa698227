"""In-memory ledger collaborators for tests."""

from datetime import datetime, timedelta
from decimal import Decimal

from statement_import.ledger.interfaces import (
    DEFAULT_CANDIDATE_LIMIT,
    AccountLookup,
    AmountRange,
    CategoryLookup,
    DateRange,
    DuplicateCandidateSource,
    TransactionWriter,
)
from statement_import.schemas.records import (
    Account,
    Category,
    DuplicateCandidate,
    TransactionType,
)


class FakeAccounts(AccountLookup):
    def __init__(self, accounts: list[Account]):
        self.accounts = list(accounts)

    def find_by_id(self, user_id, account_id):
        return next((a for a in self.accounts if a.id == account_id), None)

    def find_by_exact_name(self, user_id, name):
        wanted = name.lower()
        return next((a for a in self.accounts if a.name.lower() == wanted), None)


class FakeCategories(CategoryLookup):
    def __init__(self, categories: list[Category]):
        self.categories = list(categories)

    def _of_type(self, expected_type):
        return [c for c in self.categories if c.type == expected_type]

    def find_by_id(self, user_id, category_id, expected_type):
        return next((c for c in self._of_type(expected_type) if c.id == category_id), None)

    def find_by_exact_name(self, user_id, name, expected_type):
        wanted = name.lower()
        return next((c for c in self._of_type(expected_type) if c.name.lower() == wanted), None)

    def find_by_name_substring(self, user_id, name, expected_type):
        wanted = name.lower()
        matches = sorted(
            (c for c in self._of_type(expected_type) if wanted in c.name.lower()),
            key=lambda c: c.name,
        )
        return matches[0] if matches else None


class FakeCandidates(DuplicateCandidateSource):
    """Stored transactions, queried the way a SQL ledger would."""

    def __init__(self):
        self.transactions: list[DuplicateCandidate] = []
        self.calls: list[dict] = []
        self._clock = datetime(2024, 1, 1, 12, 0, 0)

    def add(
        self,
        account_id: int,
        amount: str,
        transaction_date: str,
        description: str | None = None,
        category_id: int | None = None,
        type_: TransactionType = TransactionType.EXPENSE,
    ) -> DuplicateCandidate:
        self._clock += timedelta(minutes=1)
        candidate = DuplicateCandidate(
            id=len(self.transactions) + 1,
            account_id=account_id,
            type=type_,
            amount=Decimal(amount),
            transaction_date=transaction_date,
            category_id=category_id,
            description=description,
            created_at=self._clock,
        )
        self.transactions.append(candidate)
        return candidate

    def find_candidates(
        self,
        account_id,
        type_,
        date_range: DateRange,
        amount_range: AmountRange,
        limit=DEFAULT_CANDIDATE_LIMIT,
    ):
        self.calls.append(
            {
                "account_id": account_id,
                "type": type_,
                "date_range": date_range,
                "amount_range": amount_range,
                "limit": limit,
            }
        )
        matches = [
            t
            for t in self.transactions
            if t.account_id == account_id
            and t.type == type_
            and date_range.contains(t.transaction_date)
            and amount_range.contains(t.amount)
        ]
        matches.sort(key=lambda t: (t.transaction_date, t.created_at), reverse=True)
        return matches[:limit]


class FakeWriter(TransactionWriter):
    """Records created transactions and books them into the candidate store."""

    def __init__(self, candidates: FakeCandidates):
        self.candidates = candidates
        self.created: list[dict] = []
        self.fail_on: dict[str, Exception] = {}

    def create(
        self,
        account,
        type_,
        amount,
        date,
        description,
        category,
        conversion_rate=1.0,
        ai_assisted=True,
    ):
        if description in self.fail_on:
            raise self.fail_on[description]

        self.created.append(
            {
                "account": account,
                "type": type_,
                "amount": amount,
                "date": date,
                "description": description,
                "category": category,
                "conversion_rate": conversion_rate,
                "ai_assisted": ai_assisted,
            }
        )
        self.candidates.add(
            account_id=account.id,
            amount=str(amount),
            transaction_date=date,
            description=description,
            category_id=category.id if category else None,
            type_=type_,
        )


class InMemoryLedger:
    """The four collaborators sharing one transaction store."""

    def __init__(self, accounts: list[Account], categories: list[Category]):
        self.accounts = FakeAccounts(accounts)
        self.categories = FakeCategories(categories)
        self.candidates = FakeCandidates()
        self.writer = FakeWriter(self.candidates)
