"""
Tests for the Firefly payload builder.

The builder is the only place that maps import records onto Firefly's
TransactionStore shape.
"""

from decimal import Decimal

import pytest
from conftest import CHECKING, GROCERIES, SALARY

from statement_import.schemas.firefly_payload import (
    AI_ASSISTED_TAG,
    IMPORT_TAG,
    FireflyTransactionSplit,
    FireflyTransactionStore,
    build_firefly_payload,
    validate_firefly_payload,
)
from statement_import.schemas.records import TransactionType


class TestBuildFireflyPayload:
    """Tests for build_firefly_payload."""

    def test_expense_payload(self):
        """Test an expense becomes a withdrawal from the account."""
        payload = build_firefly_payload(
            account=CHECKING,
            type_=TransactionType.EXPENSE,
            amount=Decimal("50"),
            date="2024-01-06",
            description="Coffee",
            category=GROCERIES,
        )

        assert len(payload.transactions) == 1
        split = payload.transactions[0]
        assert split.type == "withdrawal"
        assert split.amount == "50.00"
        assert split.source_id == "1"
        assert split.destination_id is None
        assert split.currency_code == "MXN"
        assert split.category_id == "10"
        assert split.tags == [IMPORT_TAG, AI_ASSISTED_TAG]
        assert split.notes is None
        assert validate_firefly_payload(payload) == []

    def test_income_payload(self):
        """Test income becomes a deposit into the account."""
        payload = build_firefly_payload(
            account=CHECKING,
            type_=TransactionType.INCOME,
            amount=Decimal("1200.5"),
            date="2024-01-31",
            description="Salary",
            category=SALARY,
            ai_assisted=False,
        )

        split = payload.transactions[0]
        assert split.type == "deposit"
        assert split.amount == "1200.50"
        assert split.destination_id == "1"
        assert split.source_id is None
        assert split.tags == [IMPORT_TAG]

    def test_conversion_rate_noted(self):
        """Test a non-unit conversion rate is kept in the notes."""
        payload = build_firefly_payload(
            account=CHECKING,
            type_=TransactionType.EXPENSE,
            amount=Decimal("10"),
            date="2024-01-06",
            description="Books",
            category=None,
            conversion_rate=17.25,
        )

        split = payload.transactions[0]
        assert split.notes == "conversion_rate=17.25"
        assert split.category_id is None

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"date": ""}, "date is required"),
            ({"amount": Decimal("0")}, "amount must be positive"),
            ({"description": ""}, "description is required"),
        ],
    )
    def test_missing_fields_raise(self, overrides, message):
        """Test required fields are enforced."""
        kwargs = {
            "account": CHECKING,
            "type_": TransactionType.EXPENSE,
            "amount": Decimal("10"),
            "date": "2024-01-06",
            "description": "Books",
            "category": None,
        }
        kwargs.update(overrides)

        with pytest.raises(ValueError, match=message):
            build_firefly_payload(**kwargs)

    def test_json_shape(self):
        """Test optional fields are omitted from the JSON body."""
        payload = build_firefly_payload(
            account=CHECKING,
            type_=TransactionType.EXPENSE,
            amount=Decimal("9.99"),
            date="2024-01-06",
            description="Café",
            category=None,
            ai_assisted=False,
        )

        body = payload.to_dict()

        assert body["error_if_duplicate_hash"] is False
        assert body["apply_rules"] is True
        assert "group_title" not in body
        assert body["transactions"][0] == {
            "type": "withdrawal",
            "date": "2024-01-06",
            "amount": "9.99",
            "description": "Café",
            "source_id": "1",
            "currency_code": "MXN",
            "tags": [IMPORT_TAG],
        }


class TestValidateFireflyPayload:
    """Tests for validate_firefly_payload."""

    def test_empty_store(self):
        """Test a store without splits is invalid."""
        assert validate_firefly_payload(FireflyTransactionStore(transactions=[])) == [
            "transactions array is empty"
        ]

    def test_every_problem_reported(self):
        """Test all split problems are listed."""
        store = FireflyTransactionStore(
            transactions=[
                FireflyTransactionSplit(type="transfer", date="", amount="abc", description="")
            ]
        )

        errors = validate_firefly_payload(store)

        assert errors == [
            "transactions[0].type must be withdrawal/deposit, got: transfer",
            "transactions[0].date is required",
            "transactions[0].amount must be a valid decimal, got: abc",
            "transactions[0].description is required",
            "transactions[0] needs a source_id or destination_id",
        ]

    def test_negative_amount(self):
        """Test non-positive amounts are rejected."""
        store = FireflyTransactionStore(
            transactions=[
                FireflyTransactionSplit(
                    type="deposit",
                    date="2024-01-06",
                    amount="-1.00",
                    description="Refund",
                    destination_id="1",
                )
            ]
        )

        assert validate_firefly_payload(store) == [
            "transactions[0].amount must be positive, got: -1.00"
        ]
