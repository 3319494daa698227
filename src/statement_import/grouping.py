"""
Grouping of repeated micro-charges.

Optionally merges records that share a derived key into one record before
the duplicate search, e.g. a month of supermarket tickets booked as a single
expense.

Rules:
- Records with errors pass through untouched; they are never merge targets
- Only records with the same type, account and category are merged
- Output order is stable: a group sits where its first record was
- Input records are never mutated
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum

from .schemas.records import DESCRIPTION_MAX_LENGTH, NormalizedRecord, TransactionType
from .schemas.text import normalize_text

logger = logging.getLogger(__name__)

SUM_PRECISION = 60

# Merchant/description keywords that mark a supermarket purchase
SUPERMARKET_KEYWORDS = (
    "supermercado",
    "super market",
    "supermarket",
    "walmart",
    "costco",
    "chedraui",
    "soriana",
    "la comer",
    "fresko",
    "heb",
    "bodega aurrera",
    "mercado",
)

SUPERMARKET_GROUP_LABEL = "Grouped supermarket purchases {month}"


class GroupStrategy(str, Enum):
    """How statement records are merged before duplicate search."""

    NONE = "none"
    MANUAL_KEYS = "manual_keys"
    SUPERMARKET_MONTHLY = "supermarket_monthly"

    @classmethod
    def parse(cls, value: object) -> GroupStrategy:
        """Parse a strategy name; anything unknown means NONE."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NONE


def is_supermarket_description(description: str | None) -> bool:
    """Return True if the normalized description contains a supermarket keyword."""
    normalized = normalize_text(description)
    if not normalized:
        return False
    return any(normalize_text(keyword) in normalized for keyword in SUPERMARKET_KEYWORDS)


def derive_group_key(record: NormalizedRecord, strategy: GroupStrategy) -> str | None:
    """
    Derive the grouping key of a record, or None if it is not grouped.

    Args:
        record: Normalized record
        strategy: Active grouping strategy

    Returns:
        manual_keys: the lower-cased group_key;
        supermarket_monthly: "supermarket:<account>:<category>:<YYYY-MM>"
        for supermarket expenses
    """
    if strategy == GroupStrategy.MANUAL_KEYS:
        key = (record.group_key or "").strip()
        return key.lower() if key else None

    if strategy != GroupStrategy.SUPERMARKET_MONTHLY:
        return None

    if record.type != TransactionType.EXPENSE:
        return None
    if not is_supermarket_description(record.description):
        return None

    month = record.transaction_date[:7]
    return f"supermarket:{record.account_id or 0}:{record.category_id or 0}:{month}"


def composite_key(derived_key: str, record: NormalizedRecord) -> str:
    """Key that also pins type, account and category."""
    return f"{derived_key}|{record.type.value}|{record.account_id or 0}|{record.category_id or 0}"


def _merge(
    existing: NormalizedRecord, incoming: NormalizedRecord, strategy: GroupStrategy
) -> NormalizedRecord:
    # Exact for cent sums below 10**58
    with localcontext() as ctx:
        ctx.prec = SUM_PRECISION
        amount = (existing.amount + incoming.amount).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
    transaction_date = max(existing.transaction_date, incoming.transaction_date)

    source_indexes = list(existing.source_indexes)
    for index in incoming.source_indexes:
        if index not in source_indexes:
            source_indexes.append(index)

    # The first record's group_description wins and is kept on the group
    description = existing.description
    if existing.group_description is not None:
        description = existing.group_description[:DESCRIPTION_MAX_LENGTH]
    elif incoming.group_description is not None:
        description = incoming.group_description[:DESCRIPTION_MAX_LENGTH]

    if strategy == GroupStrategy.SUPERMARKET_MONTHLY:
        description = SUPERMARKET_GROUP_LABEL.format(month=transaction_date[:7])

    return replace(
        existing,
        amount=amount,
        transaction_date=transaction_date,
        source_indexes=source_indexes,
        description=description[:DESCRIPTION_MAX_LENGTH],
    )


def group_records(
    records: Sequence[NormalizedRecord],
    strategy: GroupStrategy | str = GroupStrategy.NONE,
) -> list[NormalizedRecord]:
    """
    Merge records sharing a grouping key.

    Args:
        records: Normalized records in batch order
        strategy: Grouping strategy (enum or its string value)

    Returns:
        New list of records. Grouped records have sorted source_indexes and
        display_index = min(source_indexes).
    """
    strategy = GroupStrategy.parse(strategy)
    if strategy == GroupStrategy.NONE:
        return list(records)

    grouped: list[NormalizedRecord] = []
    positions: dict[str, int] = {}

    for record in records:
        if not record.is_valid:
            grouped.append(record)
            continue

        derived = derive_group_key(record, strategy)
        if derived is None:
            grouped.append(record)
            continue

        key = composite_key(derived, record)
        if key not in positions:
            positions[key] = len(grouped)
            grouped.append(record)
            continue

        position = positions[key]
        grouped[position] = _merge(grouped[position], record, strategy)

    result = []
    for record in grouped:
        if record.is_grouped:
            indexes = sorted(record.source_indexes)
            record = replace(record, source_indexes=indexes, display_index=indexes[0])
        result.append(record)

    merged = sum(1 for record in result if record.is_grouped)
    if merged:
        logger.info(
            "Grouping (%s): %d records -> %d (%d groups)",
            strategy.value,
            len(records),
            len(result),
            merged,
        )

    return result
