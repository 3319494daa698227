"""Test fixtures and utilities."""

from datetime import date

import pytest
from fakes import InMemoryLedger

from statement_import.config import Config, FireflyConfig
from statement_import.normalization import EntryNormalizer
from statement_import.schemas.records import Account, Category, TransactionType
from statement_import.services.importer import StatementImportService

CHECKING = Account(id=1, name="Checking", currency_code="MXN")
CREDIT_CARD = Account(id=2, name="Credit Card", currency_code=None)

GROCERIES = Category(id=10, name="Groceries", type=TransactionType.EXPENSE)
RESTAURANTS = Category(id=11, name="Restaurants", type=TransactionType.EXPENSE)
SALARY = Category(id=20, name="Salary", type=TransactionType.INCOME)
FREELANCE = Category(id=21, name="Freelance Work", type=TransactionType.INCOME)

FIXED_TODAY = date(2024, 2, 15)


@pytest.fixture
def ledger() -> InMemoryLedger:
    """In-memory ledger with two accounts and expense/income categories."""
    return InMemoryLedger(
        accounts=[CHECKING, CREDIT_CARD],
        categories=[GROCERIES, RESTAURANTS, SALARY, FREELANCE],
    )


@pytest.fixture
def config() -> Config:
    """Default configuration pointing at a fake Firefly."""
    return Config(firefly=FireflyConfig(base_url="http://firefly.test:8080", token="test-token"))


@pytest.fixture
def normalizer(ledger) -> EntryNormalizer:
    """Normalizer with a fixed clock."""
    return EntryNormalizer(ledger.accounts, ledger.categories, today=lambda: FIXED_TODAY)


@pytest.fixture
def service(ledger, config) -> StatementImportService:
    """Import service wired to the in-memory ledger."""
    return StatementImportService(
        accounts=ledger.accounts,
        categories=ledger.categories,
        candidates=ledger.candidates,
        writer=ledger.writer,
        config=config,
    )


@pytest.fixture
def sample_payload() -> dict:
    """Statement payload with run defaults for the checking account."""
    return {
        "account_id": 1,
        "default_expense_category_name": "Groceries",
        "default_income_category_id": 20,
        "entries": [
            {
                "type": "expense",
                "amount": "50.00",
                "transaction_date": "2024-01-05",
                "description": "Coffee",
            },
        ],
    }
