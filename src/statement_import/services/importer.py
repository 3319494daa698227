"""Statement import orchestration service.

Runs one statement batch through the import pipeline:
- Normalizes raw entries against the user's accounts and categories
- Optionally groups repeated micro-charges
- Searches the ledger for a possible duplicate of every valid record
- In commit mode, creates accepted records through the transaction writer
- Aggregates counters and a human-readable report

Preview mode never writes. A record with a possible duplicate is only
created in commit mode when it is forced (globally or by index). Failures
are reported per record; the batch always runs to the end.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from statement_import.grouping import GroupStrategy, group_records
from statement_import.matching.engine import DuplicateMatcher, MatchResult, clamp_window_days
from statement_import.normalization import (
    EntryNormalizer,
    RunDefaults,
    to_bool,
    to_int,
    to_int_list,
    to_string,
)
from statement_import.schemas.records import NormalizedRecord

if TYPE_CHECKING:
    from statement_import.config import Config, ImporterConfig
    from statement_import.ledger.interfaces import (
        AccountLookup,
        CategoryLookup,
        DuplicateCandidateSource,
        TransactionWriter,
    )

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 120
DEFAULT_REPORT_LINE_LIMIT = 12
DESCRIPTION_PREVIEW_LENGTH = 120

EMPTY_BATCH_MESSAGE = (
    "No entries were received to import. Send entries with at least one record."
)
PREVIEW_HINT = (
    "To record the new entries automatically use mode=commit. To allow detected "
    "duplicates use create_if_duplicate=true or force_duplicate_indexes."
)
SKIPPED_DUPLICATES_HINT = (
    "Skipped duplicates can still be created with create_if_duplicate=true or "
    "force_duplicate_indexes."
)


class ImportMode(str, Enum):
    """Execution mode of an import run."""

    PREVIEW = "preview"
    COMMIT = "commit"

    @classmethod
    def parse(cls, value: object) -> ImportMode:
        """Only an explicit "commit" commits; anything else previews."""
        if isinstance(value, cls):
            return value
        return cls.COMMIT if to_string(value) == cls.COMMIT.value else cls.PREVIEW


@dataclass
class ImportRequest:
    """One import invocation: raw entries plus run options."""

    entries: list[Any]
    mode: ImportMode = ImportMode.PREVIEW
    group_strategy: GroupStrategy = GroupStrategy.NONE
    duplicate_window_days: int = 7
    create_if_duplicate: bool = False
    force_duplicate_indexes: list[int] = field(default_factory=list)

    # Run defaults (ids win over names)
    account_id: int | None = None
    account_name: str | None = None
    default_expense_category_id: int | None = None
    default_expense_category_name: str | None = None
    default_income_category_id: int | None = None
    default_income_category_name: str | None = None

    @classmethod
    def from_dict(
        cls,
        payload: Mapping[str, Any],
        defaults: ImporterConfig | None = None,
    ) -> ImportRequest:
        """Build a request from a loosely typed payload.

        Missing options fall back to the importer configuration, and so does
        a window that is not an integer. Unknown modes preview, unknown
        strategies mean no grouping, the window is
        clamped to 1..30 days, and force indexes keep positive unique ints.

        Args:
            payload: Mapping with "entries" and optional options.
            defaults: Importer configuration supplying fallbacks.

        Returns:
            ImportRequest (entries is empty when "entries" is not a list).
        """
        entries = payload.get("entries")
        if not isinstance(entries, (list, tuple)):
            entries = []

        def option(key: str, config_attr: str | None = None) -> Any:
            value = payload.get(key)
            if value is None and defaults is not None:
                value = getattr(defaults, config_attr or key)
            return value

        window = to_int(payload.get("duplicate_window_days"))
        if window is None and defaults is not None:
            window = to_int(defaults.duplicate_window_days)

        return cls(
            entries=list(entries),
            mode=ImportMode.parse(option("mode", "default_mode")),
            group_strategy=GroupStrategy.parse(option("group_strategy")),
            duplicate_window_days=clamp_window_days(window),
            create_if_duplicate=to_bool(payload.get("create_if_duplicate", False)),
            force_duplicate_indexes=to_int_list(payload.get("force_duplicate_indexes", [])),
            account_id=to_int(option("account_id", "default_account_id")),
            account_name=to_string(option("account_name", "default_account_name")),
            default_expense_category_id=to_int(option("default_expense_category_id")),
            default_expense_category_name=to_string(option("default_expense_category_name")),
            default_income_category_id=to_int(option("default_income_category_id")),
            default_income_category_name=to_string(option("default_income_category_name")),
        )

    def is_forced(self, record: NormalizedRecord) -> bool:
        """Return True if any of the record's source entries was force-listed."""
        if self.create_if_duplicate:
            return True
        return any(index in self.force_duplicate_indexes for index in record.source_indexes)


def describe_record(record: NormalizedRecord) -> str:
    """One-line summary of a record for the import report."""
    account_name = record.account.name if record.account else "Unresolved account"
    currency_code = (record.account.currency_code if record.account else None) or "N/A"
    category_name = record.category.name if record.category else "Unresolved category"
    grouped = f", grouped={len(record.source_indexes)}" if record.is_grouped else ""

    return (
        f"date={record.transaction_date}, type={record.type.value}, "
        f"amount={record.amount:.2f} {currency_code}, "
        f'account="{account_name}", category="{category_name}", '
        f'description="{record.description[:DESCRIPTION_PREVIEW_LENGTH]}"{grouped}'
    )


def limit_lines(lines: list[str], limit: int = DEFAULT_REPORT_LINE_LIMIT) -> str:
    """Join report lines, replacing the overflow with "- ... N more"."""
    if len(lines) <= limit:
        return "\n".join(lines)
    visible = lines[:limit]
    visible.append(f"- ... {len(lines) - limit} more")
    return "\n".join(visible)


@dataclass
class ImportOutcome:
    """Counters and report lines of one import run."""

    mode: ImportMode
    processed: int = 0
    new_without_duplicate: int = 0
    possible_duplicates: int = 0
    invalid: int = 0
    failed: int = 0
    created: int = 0
    created_forced: int = 0
    skipped_duplicates: int = 0

    invalid_lines: list[str] = field(default_factory=list)
    new_lines: list[str] = field(default_factory=list)
    duplicate_lines: list[str] = field(default_factory=list)
    created_lines: list[str] = field(default_factory=list)
    duplicates: list[dict[str, Any]] = field(default_factory=list)

    # Run-level message replacing the report (empty or oversized batch)
    message: str | None = None
    line_limit: int = DEFAULT_REPORT_LINE_LIMIT

    @property
    def invalid_total(self) -> int:
        """Invalid records plus records that failed during the run."""
        return self.invalid + self.failed

    @property
    def is_commit(self) -> bool:
        return self.mode == ImportMode.COMMIT

    def render_report(self) -> str:
        """Render the human-readable report."""
        if self.message is not None:
            return self.message

        summary = [
            f"Import result ({self.mode.value}):",
            f"- processed={self.processed}",
            f"- new_without_duplicate={self.new_without_duplicate}",
            f"- possible_duplicates={self.possible_duplicates}",
            f"- invalid={self.invalid_total}",
        ]
        if self.is_commit:
            summary.append(f"- created={self.created}")
            summary.append(f"- created_forcing_duplicate={self.created_forced}")
            summary.append(f"- skipped_duplicates={self.skipped_duplicates}")

        sections = ["\n".join(summary)]

        for title, lines in (
            ("New candidates", self.new_lines),
            ("Possible duplicates", self.duplicate_lines),
            ("Created transactions", self.created_lines),
            ("Needs review", self.invalid_lines),
        ):
            if lines:
                sections.append(f"{title}:\n{limit_lines(lines, self.line_limit)}")

        if not self.is_commit:
            sections.append(PREVIEW_HINT)
        elif self.skipped_duplicates:
            sections.append(SKIPPED_DUPLICATES_HINT)

        return "\n\n".join(sections)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "mode": self.mode.value,
            "message": self.message,
            "processed": self.processed,
            "new_without_duplicate": self.new_without_duplicate,
            "possible_duplicates": self.possible_duplicates,
            "invalid": self.invalid,
            "failed": self.failed,
            "invalid_total": self.invalid_total,
            "created": self.created,
            "created_forced": self.created_forced,
            "skipped_duplicates": self.skipped_duplicates,
            "new_lines": self.new_lines,
            "duplicate_lines": self.duplicate_lines,
            "created_lines": self.created_lines,
            "invalid_lines": self.invalid_lines,
            "duplicates": self.duplicates,
        }


class StatementImportService:
    """Orchestrates a statement import run.

    Per record:
    - invalid: reported under "Needs review", never created
    - valid, no duplicate: preview lists it; commit creates it
    - valid, possible duplicate: always listed; commit creates it only when
      forced, otherwise it is skipped

    Usage:
        service = StatementImportService(accounts, categories, candidates, writer, config)
        outcome = service.run(ImportRequest.from_dict(payload, config.importer))
        print(outcome.render_report())
    """

    def __init__(
        self,
        accounts: AccountLookup,
        categories: CategoryLookup,
        candidates: DuplicateCandidateSource,
        writer: TransactionWriter,
        config: Config,
        user_id: int | None = None,
    ) -> None:
        """Initialize the import service.

        Args:
            accounts: Account lookup collaborator.
            categories: Category lookup collaborator.
            candidates: Source of existing transactions for duplicate search.
            writer: Transaction writer used in commit mode.
            config: Application configuration.
            user_id: Owner of the ledger, passed through to lookups.
        """
        self.accounts = accounts
        self.categories = categories
        self.candidates = candidates
        self.writer = writer
        self.config = config
        self.user_id = user_id

        self.max_entries = config.importer.max_entries
        self.report_line_limit = config.importer.report_line_limit

    def run(self, request: ImportRequest) -> ImportOutcome:
        """Run one import.

        Args:
            request: Entries and options.

        Returns:
            ImportOutcome; never raises for per-record problems.
        """
        outcome = ImportOutcome(mode=request.mode, line_limit=self.report_line_limit)

        if not request.entries:
            outcome.message = EMPTY_BATCH_MESSAGE
            return outcome

        if len(request.entries) > self.max_entries:
            logger.warning(
                "Rejected import of %d entries (limit %d)", len(request.entries), self.max_entries
            )
            outcome.message = (
                f"Too many entries: received {len(request.entries)}, the maximum per import "
                f"is {self.max_entries}. Split the statement into smaller batches."
            )
            return outcome

        normalizer = EntryNormalizer(
            self.accounts,
            self.categories,
            user_id=self.user_id,
            strict_dates=self.config.importer.strict_dates,
        )
        defaults = self._resolve_defaults(normalizer, request)
        records = normalizer.normalize_all(request.entries, defaults)
        records = group_records(records, request.group_strategy)

        matcher = DuplicateMatcher(
            self.candidates,
            window_days=request.duplicate_window_days,
            score_threshold=self.config.duplicates.score_threshold,
            candidate_limit=self.config.duplicates.candidate_limit,
        )

        logger.info(
            "Starting %s import: %d entries, %d records after grouping (%s)",
            request.mode.value,
            len(request.entries),
            len(records),
            request.group_strategy.value,
        )

        outcome.processed = len(records)
        for record in records:
            self._process_record(record, request, matcher, outcome)

        logger.info(
            "Import finished (%s): processed=%d new=%d duplicates=%d invalid=%d failed=%d "
            "created=%d forced=%d skipped=%d",
            request.mode.value,
            outcome.processed,
            outcome.new_without_duplicate,
            outcome.possible_duplicates,
            outcome.invalid,
            outcome.failed,
            outcome.created,
            outcome.created_forced,
            outcome.skipped_duplicates,
        )
        return outcome

    def _resolve_defaults(self, normalizer: EntryNormalizer, request: ImportRequest) -> RunDefaults:
        return normalizer.resolve_defaults(
            account_id=request.account_id,
            account_name=request.account_name,
            default_expense_category_id=request.default_expense_category_id,
            default_expense_category_name=request.default_expense_category_name,
            default_income_category_id=request.default_income_category_id,
            default_income_category_name=request.default_income_category_name,
        )

    def _process_record(
        self,
        record: NormalizedRecord,
        request: ImportRequest,
        matcher: DuplicateMatcher,
        outcome: ImportOutcome,
    ) -> None:
        """Apply the preview/commit/force policy to one record."""
        prefix = f"- #{record.display_index}:"

        if not record.is_valid:
            outcome.invalid += 1
            outcome.invalid_lines.append(f"{prefix} {' | '.join(record.error_messages)}")
            return

        try:
            match = matcher.find_duplicate(record)
        except Exception as e:
            logger.warning("Duplicate search failed for record #%d: %s", record.display_index, e)
            outcome.failed += 1
            outcome.invalid_lines.append(f"{prefix} duplicate search failed: {e}")
            return

        if match is None:
            outcome.new_without_duplicate += 1
            if request.mode == ImportMode.PREVIEW:
                outcome.new_lines.append(f"{prefix} {describe_record(record)}")
                return
            self._create(record, outcome, forced=False)
            return

        outcome.possible_duplicates += 1
        outcome.duplicate_lines.append(
            f"{prefix} {describe_record(record)} | possible duplicate by {match.describe()}."
        )
        outcome.duplicates.append(self._duplicate_entry(record, match))

        if request.mode == ImportMode.PREVIEW:
            return

        if not request.is_forced(record):
            logger.debug("Skipping possible duplicate #%d", record.display_index)
            outcome.skipped_duplicates += 1
            return

        self._create(record, outcome, forced=True)

    def _create(self, record: NormalizedRecord, outcome: ImportOutcome, forced: bool) -> None:
        """Create one record and update the counters."""
        prefix = f"- #{record.display_index}:"
        error = self._write(record)

        if error is not None:
            outcome.failed += 1
            outcome.invalid_lines.append(f"{prefix} {error}")
            return

        outcome.created += 1
        if forced:
            outcome.created_forced += 1
        outcome.created_lines.append(f"{prefix} {describe_record(record)}")

    def _write(self, record: NormalizedRecord) -> str | None:
        """Persist a record through the writer.

        Returns:
            None on success, otherwise the failure message for the report.
        """
        if record.account is None:
            return "failed to create: invalid account"
        if record.category is None:
            return "failed to create: invalid category"

        try:
            self.writer.create(
                account=record.account,
                type_=record.type,
                amount=record.amount,
                date=record.transaction_date,
                description=record.description,
                category=record.category,
                conversion_rate=1.0,
                ai_assisted=True,
            )
        except Exception as e:
            logger.warning("Failed to create record #%d: %s", record.display_index, e)
            return f"failed to create: {e}"

        logger.debug("Created record #%d", record.display_index)
        return None

    @staticmethod
    def _duplicate_entry(record: NormalizedRecord, match: MatchResult) -> dict[str, Any]:
        return {
            "display_index": record.display_index,
            "source_indexes": list(record.source_indexes),
            "match": match.to_dict(),
        }
