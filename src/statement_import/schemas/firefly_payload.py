"""
Firefly III transaction payload builder (SSOT).

Every accepted import record reaches Firefly through build_firefly_payload;
nothing else assembles TransactionStore bodies.

Rules:
- One record is one single-split transaction group
- expense records are withdrawals from the account, income records are
  deposits into it
- Every transaction carries IMPORT_TAG; AI-assisted ones also AI_ASSISTED_TAG
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation
from typing import Any

from .records import Account, Category, TransactionType

IMPORT_TAG = "statement-import"
AI_ASSISTED_TAG = "ai-assisted"

# Importer type → Firefly transaction type
FIREFLY_TYPES = {
    TransactionType.EXPENSE: "withdrawal",
    TransactionType.INCOME: "deposit",
}


def _present(value: Any) -> bool:
    return value is not None and value != []


@dataclass
class FireflyTransactionSplit:
    """TransactionSplitStore body; unset optional fields are left out."""

    type: str  # withdrawal | deposit
    date: str  # YYYY-MM-DD
    amount: str  # two decimals, dot separator
    description: str

    # The asset account sits on one side only
    source_id: str | None = None
    destination_id: str | None = None

    currency_code: str | None = None
    category_id: str | None = None
    tags: list[str] = field(default_factory=list)
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        return {name: value for name, value in values.items() if _present(value)}


@dataclass
class FireflyTransactionStore:
    """TransactionStore body posted to /api/v1/transactions."""

    transactions: list[FireflyTransactionSplit]
    error_if_duplicate_hash: bool = False
    apply_rules: bool = True
    fire_webhooks: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "transactions": [split.to_dict() for split in self.transactions],
            "error_if_duplicate_hash": self.error_if_duplicate_hash,
            "apply_rules": self.apply_rules,
            "fire_webhooks": self.fire_webhooks,
        }


def build_firefly_payload(
    account: Account,
    type_: TransactionType,
    amount: Decimal,
    date: str,
    description: str,
    category: Category | None,
    conversion_rate: float = 1.0,
    ai_assisted: bool = True,
) -> FireflyTransactionStore:
    """
    Map one accepted record onto a Firefly transaction group.

    Args:
        account: Asset account the record is booked against
        type_: expense or income
        amount: Positive amount in the account currency
        date: Record date (YYYY-MM-DD)
        description: Final record description
        category: Resolved category, if any
        conversion_rate: Rate into the account currency; any value other
            than 1.0 is kept in the notes
        ai_assisted: Whether the entries were extracted with AI help

    Raises:
        ValueError: If date, amount or description is unusable
    """
    if not date:
        raise ValueError("date is required but empty")
    if amount is None or amount <= 0:
        raise ValueError(f"amount must be positive, got: {amount}")
    if not description:
        raise ValueError("description is required but empty")

    account_ref = str(account.id)
    is_expense = type_ == TransactionType.EXPENSE

    split = FireflyTransactionSplit(
        type=FIREFLY_TYPES[type_],
        date=date,
        amount=f"{amount:.2f}",
        description=description,
        source_id=account_ref if is_expense else None,
        destination_id=None if is_expense else account_ref,
        currency_code=account.currency_code,
        category_id=str(category.id) if category else None,
        tags=[IMPORT_TAG, AI_ASSISTED_TAG] if ai_assisted else [IMPORT_TAG],
        notes=f"conversion_rate={conversion_rate}" if conversion_rate != 1.0 else None,
    )
    return FireflyTransactionStore(transactions=[split])


def validate_firefly_payload(payload: FireflyTransactionStore) -> list[str]:
    """
    Check a payload before it is posted.

    Returns:
        Problems found, in split order (empty if valid)
    """
    if not payload.transactions:
        return ["transactions array is empty"]

    errors: list[str] = []
    for i, split in enumerate(payload.transactions):
        prefix = f"transactions[{i}]"

        if not split.type:
            errors.append(f"{prefix}.type is required")
        elif split.type not in FIREFLY_TYPES.values():
            errors.append(f"{prefix}.type must be withdrawal/deposit, got: {split.type}")

        if not split.date:
            errors.append(f"{prefix}.date is required")

        if not split.amount:
            errors.append(f"{prefix}.amount is required")
        else:
            try:
                if Decimal(split.amount) <= 0:
                    errors.append(f"{prefix}.amount must be positive, got: {split.amount}")
            except InvalidOperation:
                errors.append(f"{prefix}.amount must be a valid decimal, got: {split.amount}")

        if not split.description:
            errors.append(f"{prefix}.description is required")

        if split.source_id is None and split.destination_id is None:
            errors.append(f"{prefix} needs a source_id or destination_id")

    return errors
