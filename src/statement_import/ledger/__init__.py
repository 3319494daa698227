"""
Ledger collaborators consumed by the import engine.
"""

from .firefly import (
    FireflyAccounts,
    FireflyCandidates,
    FireflyCategories,
    FireflyLedger,
    FireflyWriter,
)
from .interfaces import (
    DEFAULT_CANDIDATE_LIMIT,
    AccountLookup,
    AmountRange,
    CategoryLookup,
    DateRange,
    DuplicateCandidateSource,
    TransactionWriter,
)

__all__ = [
    "AccountLookup",
    "CategoryLookup",
    "DuplicateCandidateSource",
    "TransactionWriter",
    "DateRange",
    "AmountRange",
    "DEFAULT_CANDIDATE_LIMIT",
    "FireflyLedger",
    "FireflyAccounts",
    "FireflyCategories",
    "FireflyCandidates",
    "FireflyWriter",
]
