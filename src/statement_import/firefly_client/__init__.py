"""
Firefly III API Client.

Provides:
- Create transactions (POST /api/v1/transactions)
- List an account's transactions in a date window
- List accounts and categories

Treats Firefly errors as loud failures with actionable messages.
"""

from .client import (
    FireflyAPIError,
    FireflyCategory,
    FireflyClient,
    FireflyConnectionError,
    FireflyError,
    FireflyTransaction,
)

__all__ = [
    "FireflyClient",
    "FireflyError",
    "FireflyAPIError",
    "FireflyConnectionError",
    "FireflyTransaction",
    "FireflyCategory",
]
