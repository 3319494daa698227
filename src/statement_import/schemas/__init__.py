"""
SSOT (Single Source of Truth) schemas for the statement import.

These canonical schemas are the ONLY models used across all modules.
No duplicated "near-same" models allowed.
"""

from .firefly_payload import (
    AI_ASSISTED_TAG,
    IMPORT_TAG,
    FireflyTransactionSplit,
    FireflyTransactionStore,
    build_firefly_payload,
    validate_firefly_payload,
)
from .records import (
    DEFAULT_DESCRIPTION,
    DESCRIPTION_MAX_LENGTH,
    Account,
    Category,
    DuplicateCandidate,
    InvalidAmount,
    InvalidDate,
    InvalidType,
    NormalizedRecord,
    RecordError,
    TransactionType,
    UnresolvedAccount,
    UnresolvedCategory,
)
from .text import description_similarity, normalize_text

__all__ = [
    # Import records (canonical shape)
    "NormalizedRecord",
    "TransactionType",
    "Account",
    "Category",
    "DuplicateCandidate",
    "DESCRIPTION_MAX_LENGTH",
    "DEFAULT_DESCRIPTION",
    # Validation errors
    "RecordError",
    "InvalidType",
    "InvalidAmount",
    "InvalidDate",
    "UnresolvedAccount",
    "UnresolvedCategory",
    # Text normalization (SSOT)
    "normalize_text",
    "description_similarity",
    # Firefly payload (canonical output schema)
    "FireflyTransactionStore",
    "FireflyTransactionSplit",
    "build_firefly_payload",
    "validate_firefly_payload",
    "IMPORT_TAG",
    "AI_ASSISTED_TAG",
]
