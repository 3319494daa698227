"""Tests for grouping repeated charges."""

from decimal import Decimal

import pytest
from conftest import CHECKING, CREDIT_CARD, GROCERIES, RESTAURANTS, SALARY

from statement_import.grouping import (
    GroupStrategy,
    composite_key,
    derive_group_key,
    group_records,
    is_supermarket_description,
)
from statement_import.schemas.records import (
    InvalidAmount,
    NormalizedRecord,
    TransactionType,
)


def make_record(
    index: int,
    amount: str,
    transaction_date: str = "2024-03-10",
    description: str = "Charge",
    group_key: str | None = None,
    group_description: str | None = None,
    account=CHECKING,
    category=GROCERIES,
    type_: TransactionType = TransactionType.EXPENSE,
) -> NormalizedRecord:
    return NormalizedRecord(
        display_index=index,
        source_indexes=[index],
        type=type_,
        amount=Decimal(amount),
        transaction_date=transaction_date,
        description=description,
        group_key=group_key,
        group_description=group_description,
        account=account,
        category=category,
    )


class TestGroupStrategy:
    """Tests for strategy parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("manual_keys", GroupStrategy.MANUAL_KEYS),
            (" Supermarket_Monthly ", GroupStrategy.SUPERMARKET_MONTHLY),
            ("none", GroupStrategy.NONE),
            ("weekly", GroupStrategy.NONE),
            (None, GroupStrategy.NONE),
            (GroupStrategy.MANUAL_KEYS, GroupStrategy.MANUAL_KEYS),
        ],
    )
    def test_parse(self, value, expected):
        """Test unknown strategies mean no grouping."""
        assert GroupStrategy.parse(value) == expected


class TestGroupKeys:
    """Tests for key derivation."""

    @pytest.mark.parametrize(
        "description",
        ["WALMART SUPERCENTER 123", "Bodega Aurrerá Express", "Súper Mercado Local", "HEB #45"],
    )
    def test_supermarket_descriptions(self, description):
        """Test supermarket keywords match after normalization."""
        assert is_supermarket_description(description)

    @pytest.mark.parametrize("description", ["Netflix", "Gas station", "", None])
    def test_non_supermarket_descriptions(self, description):
        """Test unrelated descriptions do not match."""
        assert not is_supermarket_description(description)

    def test_manual_key_is_lowercased(self):
        """Test manual keys are case-insensitive."""
        record = make_record(1, "10", group_key="NetFlix")
        assert derive_group_key(record, GroupStrategy.MANUAL_KEYS) == "netflix"

    def test_manual_strategy_without_key(self):
        """Test records without group_key are not grouped."""
        assert derive_group_key(make_record(1, "10"), GroupStrategy.MANUAL_KEYS) is None

    def test_supermarket_key(self):
        """Test the supermarket key pins account, category and month."""
        record = make_record(1, "10", "2024-03-10", description="Soriana 12")
        assert (
            derive_group_key(record, GroupStrategy.SUPERMARKET_MONTHLY)
            == "supermarket:1:10:2024-03"
        )

    def test_supermarket_ignores_income(self):
        """Test only expenses are supermarket purchases."""
        record = make_record(
            1, "10", description="Walmart refund", category=SALARY, type_=TransactionType.INCOME
        )
        assert derive_group_key(record, GroupStrategy.SUPERMARKET_MONTHLY) is None

    def test_composite_key(self):
        """Test the composite key format."""
        record = make_record(1, "10", category=None)
        assert composite_key("netflix", record) == "netflix|expense|1|0"


class TestGroupRecords:
    """Tests for group_records."""

    def test_none_is_passthrough(self):
        """Test the none strategy returns the records unchanged."""
        records = [make_record(1, "10", group_key="a"), make_record(2, "10", group_key="a")]
        assert group_records(records, GroupStrategy.NONE) == records

    def test_manual_keys_merge(self):
        """Test two entries tagged "netflix" merge into one record of 20."""
        records = [
            make_record(1, "10", "2024-03-01", group_key="netflix"),
            make_record(2, "10", "2024-03-15", group_key="Netflix"),
        ]
        grouped = group_records(records, GroupStrategy.MANUAL_KEYS)

        assert len(grouped) == 1
        merged = grouped[0]
        assert merged.amount == Decimal("20.00")
        assert merged.source_indexes == [1, 2]
        assert merged.display_index == 1
        assert merged.transaction_date == "2024-03-15"
        assert merged.is_grouped
        assert merged.type == TransactionType.EXPENSE
        assert merged.account == CHECKING
        assert merged.category == GROCERIES

    def test_amount_sum_is_rounded(self):
        """Test merged amounts are rounded to cents."""
        records = [
            make_record(1, "0.10", group_key="x"),
            make_record(2, "0.20", group_key="x"),
            make_record(3, "19.99", group_key="x"),
        ]
        merged = group_records(records, "manual_keys")[0]
        assert merged.amount == Decimal("20.29")
        assert merged.source_indexes == [1, 2, 3]

    def test_large_sums_stay_exact(self):
        """Test sums past the default Decimal precision keep every cent."""
        records = [
            make_record(1, "900000000000000000000000000.01", group_key="x"),
            make_record(2, "900000000000000000000000000.02", group_key="x"),
        ]
        merged = group_records(records, "manual_keys")[0]
        assert merged.amount == Decimal("1800000000000000000000000000.03")

    def test_inputs_not_mutated(self):
        """Test grouping returns new records."""
        first = make_record(1, "10", group_key="x")
        second = make_record(2, "5", group_key="x")
        group_records([first, second], GroupStrategy.MANUAL_KEYS)
        assert first.amount == Decimal("10")
        assert first.source_indexes == [1]

    def test_different_account_or_category_not_merged(self):
        """Test the same key on another account or category stays separate."""
        records = [
            make_record(1, "10", group_key="x"),
            make_record(2, "10", group_key="x", account=CREDIT_CARD),
            make_record(3, "10", group_key="x", category=RESTAURANTS),
        ]
        assert len(group_records(records, GroupStrategy.MANUAL_KEYS)) == 3

    def test_invalid_records_pass_through(self):
        """Test records with errors are never merged."""
        invalid = make_record(2, "0", group_key="x")
        invalid.errors.append(InvalidAmount())
        records = [make_record(1, "10", group_key="x"), invalid, make_record(3, "5", group_key="x")]

        grouped = group_records(records, GroupStrategy.MANUAL_KEYS)

        assert len(grouped) == 2
        assert grouped[0].source_indexes == [1, 3]
        assert grouped[0].amount == Decimal("15.00")
        assert grouped[1] is invalid

    def test_stable_order(self):
        """Test a group keeps the position of its first record."""
        records = [
            make_record(1, "1", group_key="b"),
            make_record(2, "1"),
            make_record(3, "1", group_key="a"),
            make_record(4, "1", group_key="b"),
        ]
        grouped = group_records(records, GroupStrategy.MANUAL_KEYS)
        assert [r.source_indexes for r in grouped] == [[1, 4], [2], [3]]

    def test_existing_group_description_wins(self):
        """Test the first record's group_description becomes the description."""
        records = [
            make_record(1, "10", group_key="x", group_description="Streaming"),
            make_record(2, "10", group_key="x", group_description="Other"),
        ]
        assert group_records(records, GroupStrategy.MANUAL_KEYS)[0].description == "Streaming"

    def test_incoming_group_description_used(self):
        """Test the incoming group_description applies when the first has none."""
        records = [
            make_record(1, "10", description="NFLX", group_key="x"),
            make_record(2, "10", group_key="x", group_description="Netflix plan"),
        ]
        merged = group_records(records, GroupStrategy.MANUAL_KEYS)[0]
        assert merged.description == "Netflix plan"
        # The group keeps its own (absent) group_description
        assert merged.group_description is None

    def test_description_kept_without_group_description(self):
        """Test the first description survives when no group_description exists."""
        records = [
            make_record(1, "10", description="NFLX 1", group_key="x"),
            make_record(2, "10", description="NFLX 2", group_key="x"),
        ]
        assert group_records(records, GroupStrategy.MANUAL_KEYS)[0].description == "NFLX 1"

    def test_supermarket_monthly(self):
        """Test supermarket purchases of one month collapse into one record."""
        records = [
            make_record(1, "120.50", "2024-03-02", description="WALMART 001"),
            make_record(2, "35.00", "2024-03-05", description="Gas station"),
            make_record(3, "80.25", "2024-03-20", description="Soriana Hiper"),
            make_record(4, "60.00", "2024-04-01", description="Chedraui"),
        ]
        grouped = group_records(records, GroupStrategy.SUPERMARKET_MONTHLY)

        assert len(grouped) == 3
        march = grouped[0]
        assert march.source_indexes == [1, 3]
        assert march.amount == Decimal("200.75")
        assert march.transaction_date == "2024-03-20"
        assert march.description == "Grouped supermarket purchases 2024-03"
        assert grouped[1].description == "Gas station"
        assert grouped[2].description == "Chedraui"
        assert not grouped[2].is_grouped

    def test_grouping_is_idempotent_per_key(self):
        """Test any two entries with the same composite key merge into one sum."""
        for first, second in [("10", "10"), ("0.01", "99.99"), ("12.345", "0.005")]:
            records = [
                make_record(1, first, group_key="k"),
                make_record(2, second, group_key="k"),
            ]
            grouped = group_records(records, GroupStrategy.MANUAL_KEYS)
            assert len(grouped) == 1
            expected = (Decimal(first) + Decimal(second)).quantize(Decimal("0.01"))
            assert grouped[0].amount == expected
