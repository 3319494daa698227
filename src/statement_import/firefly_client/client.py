"""
Firefly III REST client used by the ledger backend.

Only the endpoints the importer needs are wrapped: the about check,
asset accounts, categories, an account's transactions in a date window
and transaction creation. Collection endpoints are paged; every page is
read up to ``max_pages``.
"""

import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..schemas.firefly_payload import FireflyTransactionStore, validate_firefly_payload

logger = logging.getLogger(__name__)

# Statuses worth another attempt (rate limit and gateway hiccups)
RETRY_STATUSES = (429, 500, 502, 503, 504)


class FireflyError(Exception):
    """Base exception for Firefly client errors."""

    pass


class FireflyAPIError(FireflyError):
    """Firefly answered with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        response_body: str | None = None,
        errors: dict | None = None,
    ):
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        self.errors = errors or {}
        super().__init__(f"Firefly API error {status_code}: {self._summary()}")

    def _summary(self) -> str:
        # Laravel validation errors: {"field": ["msg", ...]}
        details = []
        for field_name, messages in self.errors.items():
            if not isinstance(messages, list):
                messages = [messages]
            details.extend(f"{field_name}: {m}" for m in messages)
        return "; ".join(details) or self.message


class FireflyConnectionError(FireflyError):
    """Firefly could not be reached (refused, DNS, timeout)."""

    pass


@dataclass
class FireflyTransaction:
    """One Firefly transaction group, flattened.

    Multi-split groups are summed into ``amount``; description, date and
    category come from the first split and ``split_count`` records how many
    splits were folded in.
    """

    id: int
    type: str
    date: str
    amount: Decimal
    description: str
    source_id: int | None = None
    destination_id: int | None = None
    category_id: int | None = None
    category_name: str | None = None
    created_at: str | None = None
    split_count: int = 1


@dataclass
class FireflyCategory:
    id: int
    name: str
    notes: str | None = None


def _to_int(value: object) -> int | None:
    """Parse Firefly's string ids."""
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_decimal(value: object) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def _account_dict(item: dict) -> dict:
    attrs = item.get("attributes", {})
    return {
        "id": _to_int(item.get("id")),
        "name": attrs.get("name"),
        "type": attrs.get("type"),
        "currency_code": attrs.get("currency_code"),
    }


def _flatten_group(item: dict) -> FireflyTransaction | None:
    attrs = item.get("attributes", {})
    splits = attrs.get("transactions") or []
    if not splits:
        return None

    primary = splits[0]
    return FireflyTransaction(
        id=int(item.get("id", 0)),
        type=primary.get("type", ""),
        date=(primary.get("date") or "")[:10],
        amount=sum((_to_decimal(s.get("amount", 0)) for s in splits), Decimal("0")),
        description=primary.get("description", ""),
        source_id=_to_int(primary.get("source_id")),
        destination_id=_to_int(primary.get("destination_id")),
        category_id=_to_int(primary.get("category_id")),
        category_name=primary.get("category_name"),
        created_at=attrs.get("created_at"),
        split_count=len(splits),
    )


class FireflyClient:
    """
    Client for the Firefly III API.

    Features:
    - Asset account and category lookup
    - Account transactions in a date window (duplicate candidates)
    - Transaction creation with local payload validation
    - Retry with backoff on GET requests
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Args:
            base_url: Firefly III URL reachable from this process
            token: Personal access token
            timeout: Per-request timeout in seconds
            max_retries: Attempts for retryable GET failures
            backoff_factor: urllib3 backoff factor between attempts
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = self._build_session(token, max_retries, backoff_factor)

    @staticmethod
    def _build_session(token: str, max_retries: int, backoff_factor: float) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )

        # POST is left out so a timed-out create is never replayed
        adapter = HTTPAdapter(
            max_retries=Retry(
                total=max_retries,
                backoff_factor=backoff_factor,
                status_forcelist=RETRY_STATUSES,
                allowed_methods=["GET"],
            )
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict | None = None,
        json_data: dict | None = None,
    ) -> requests.Response:
        """Send one request and map transport and HTTP failures to FireflyError."""
        url = f"{self.base_url}{endpoint}"
        logger.debug("Firefly %s %s params=%s", method, url, params)
        if json_data:
            logger.debug("Firefly request body: %s", json.dumps(json_data, indent=2))

        try:
            response = self.session.request(
                method, url, params=params, json=json_data, timeout=self.timeout
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            logger.error("Cannot reach Firefly at %s: %s", url, e)
            raise FireflyConnectionError(f"Cannot reach Firefly at {self.base_url}: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error("Firefly request %s %s failed: %s", method, url, e)
            raise FireflyError(f"Request failed: {e}") from e

        if response.ok:
            return response

        message = response.reason
        errors: dict = {}
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message", message)
            errors = body.get("errors") or {}

        logger.error(
            "Firefly answered %s for %s %s: %s", response.status_code, method, url, message
        )
        raise FireflyAPIError(
            status_code=response.status_code,
            message=message,
            response_body=response.text,
            errors=errors,
        )

    def _paginate(
        self, endpoint: str, params: dict[str, Any] | None = None, max_pages: int = 10
    ) -> Iterator[dict]:
        """Yield the ``data`` items of every page, stopping at ``max_pages``."""
        page = 1
        while True:
            data = self._request("GET", endpoint, params={**(params or {}), "page": page}).json()
            yield from data.get("data", [])

            total_pages = data.get("meta", {}).get("pagination", {}).get("total_pages", 1)
            if page >= total_pages:
                return
            if page >= max_pages:
                logger.warning(
                    "Stopped reading %s after %d of %d pages", endpoint, max_pages, total_pages
                )
                return
            page += 1

    def test_connection(self) -> bool:
        """Return True when the about endpoint answers."""
        try:
            self._request("GET", "/api/v1/about")
            return True
        except FireflyError:
            return False

    def create_transaction(self, payload: FireflyTransactionStore) -> int | None:
        """
        Create a transaction group.

        Returns:
            The new group's id, if Firefly reports one

        Raises:
            ValueError: If the payload fails local validation
            FireflyAPIError: If Firefly rejects it
        """
        problems = validate_firefly_payload(payload)
        if problems:
            raise ValueError(f"Invalid payload: {'; '.join(problems)}")

        response = self._request("POST", "/api/v1/transactions", json_data=payload.to_dict())
        group_id = _to_int(response.json().get("data", {}).get("id"))
        logger.debug("Firefly created transaction group %s", group_id)
        return group_id

    def list_accounts(self, account_type: str = "asset", max_pages: int = 10) -> list[dict]:
        """List accounts of one type as dicts with id, name, type and currency_code."""
        return [
            _account_dict(item)
            for item in self._paginate(
                "/api/v1/accounts", params={"type": account_type}, max_pages=max_pages
            )
        ]

    def get_account(self, account_id: int) -> dict | None:
        """Fetch one account, or None when Firefly does not know the id."""
        try:
            response = self._request("GET", f"/api/v1/accounts/{account_id}")
        except FireflyAPIError as e:
            if e.status_code == 404:
                return None
            raise
        return _account_dict(response.json().get("data", {}))

    def list_account_transactions(
        self,
        account_id: int,
        start_date: str,
        end_date: str,
        type_filter: str | None = None,
        max_pages: int = 10,
    ) -> list[FireflyTransaction]:
        """
        List an account's transaction groups between two dates.

        Args:
            account_id: Firefly account ID
            start_date: First day, YYYY-MM-DD (inclusive)
            end_date: Last day, YYYY-MM-DD (inclusive)
            type_filter: withdrawal, deposit or transfer
            max_pages: Page cap

        Returns:
            One FireflyTransaction per group; groups without splits are skipped
        """
        params: dict[str, Any] = {"start": start_date, "end": end_date}
        if type_filter:
            params["type"] = type_filter

        items = self._paginate(
            f"/api/v1/accounts/{account_id}/transactions", params=params, max_pages=max_pages
        )
        return [tx for tx in map(_flatten_group, items) if tx is not None]

    def list_categories(self, max_pages: int = 10) -> list[FireflyCategory]:
        """List all categories."""
        return [
            FireflyCategory(
                id=int(item.get("id", 0)),
                name=item.get("attributes", {}).get("name", ""),
                notes=item.get("attributes", {}).get("notes"),
            )
            for item in self._paginate("/api/v1/categories", max_pages=max_pages)
        ]
