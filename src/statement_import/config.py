"""
Configuration management (SSOT).

This module defines ALL configuration for the statement importer.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- base_url must be reachable from this process (Docker network, localhost)
- The duplicate window must lie in 1..30 days (the matcher clamps it too)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

VALID_MODES = ("preview", "commit")
VALID_GROUP_STRATEGIES = ("none", "manual_keys", "supermarket_monthly")

# Same accepted spellings as ImportRequest boolean options
_TRUE_VALUES = ("1", "true", "yes", "si", "sí")
_FALSE_VALUES = ("0", "false", "no")


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class FireflyConfig:
    """Firefly III API connection settings."""

    base_url: str
    token: str
    timeout_seconds: int = 30
    max_retries: int = 3


@dataclass
class ImporterConfig:
    """Statement import run settings."""

    # preview never writes; commit creates accepted records
    default_mode: str = "preview"
    group_strategy: str = "none"
    # Days on each side of the record date searched for duplicates
    duplicate_window_days: int = 7
    max_entries: int = 120
    # Lines shown per report section before "... N more"
    report_line_limit: int = 12
    # Reject unparsable dates instead of defaulting to today
    strict_dates: bool = False

    # Run defaults, used when an entry does not name its own
    default_account_id: int | None = None
    default_account_name: str | None = None
    default_expense_category_id: int | None = None
    default_expense_category_name: str | None = None
    default_income_category_id: int | None = None
    default_income_category_name: str | None = None


@dataclass
class DuplicateDetectionConfig:
    """Duplicate scoring settings."""

    # Minimum total score to report a possible duplicate
    score_threshold: int = 65
    # Maximum existing transactions scored per record
    candidate_limit: int = 20


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    firefly: FireflyConfig
    importer: ImporterConfig = field(default_factory=ImporterConfig)
    duplicates: DuplicateDetectionConfig = field(default_factory=DuplicateDetectionConfig)

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not self.firefly.base_url:
            errors.append("firefly.base_url is required")
        if not self.firefly.token:
            errors.append("firefly.token is required")

        if self.importer.default_mode not in VALID_MODES:
            errors.append(
                f"importer.default_mode must be one of {', '.join(VALID_MODES)}, "
                f"got: {self.importer.default_mode}"
            )
        if self.importer.group_strategy not in VALID_GROUP_STRATEGIES:
            errors.append(
                f"importer.group_strategy must be one of {', '.join(VALID_GROUP_STRATEGIES)}, "
                f"got: {self.importer.group_strategy}"
            )
        if not 1 <= self.importer.duplicate_window_days <= 30:
            errors.append("importer.duplicate_window_days must be between 1 and 30")
        if self.importer.max_entries < 1:
            errors.append("importer.max_entries must be >= 1")
        if self.importer.report_line_limit < 1:
            errors.append("importer.report_line_limit must be >= 1")

        if not 0 <= self.duplicates.score_threshold <= 112:
            # 112 is the highest reachable score (45 + 30 + 12 + 25)
            errors.append("duplicates.score_threshold must be between 0 and 112")
        if self.duplicates.candidate_limit < 1:
            errors.append("duplicates.candidate_limit must be >= 1")

        return errors


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name, "")
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigValidationError(f"{name} must be an integer, got: {value}") from None


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name, "").strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return default


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - FIREFLY_URL
    - FIREFLY_TOKEN
    - STATEMENT_IMPORT_WINDOW_DAYS (duplicate window in days)
    - STATEMENT_IMPORT_STRICT_DATES (true/false)

    Raises:
        ConfigValidationError: If the file is not a YAML mapping or an
            environment override is malformed
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    if not isinstance(data, dict):
        raise ConfigValidationError(f"{config_path} must contain a YAML mapping")

    # Firefly config
    firefly_data = data.get("firefly") or {}
    firefly = FireflyConfig(
        base_url=os.environ.get(
            "FIREFLY_URL", firefly_data.get("base_url", "http://localhost:8080")
        ),
        token=os.environ.get("FIREFLY_TOKEN", firefly_data.get("token", "")),
        timeout_seconds=firefly_data.get("timeout_seconds", 30),
        max_retries=firefly_data.get("max_retries", 3),
    )

    # Importer config
    importer_data = data.get("importer") or {}
    importer = ImporterConfig(
        default_mode=importer_data.get("default_mode", "preview"),
        group_strategy=importer_data.get("group_strategy", "none"),
        duplicate_window_days=_env_int(
            "STATEMENT_IMPORT_WINDOW_DAYS", importer_data.get("duplicate_window_days", 7)
        ),
        max_entries=importer_data.get("max_entries", 120),
        report_line_limit=importer_data.get("report_line_limit", 12),
        strict_dates=_env_bool(
            "STATEMENT_IMPORT_STRICT_DATES", importer_data.get("strict_dates", False)
        ),
        default_account_id=importer_data.get("default_account_id"),
        default_account_name=importer_data.get("default_account_name"),
        default_expense_category_id=importer_data.get("default_expense_category_id"),
        default_expense_category_name=importer_data.get("default_expense_category_name"),
        default_income_category_id=importer_data.get("default_income_category_id"),
        default_income_category_name=importer_data.get("default_income_category_name"),
    )

    # Duplicate detection
    dup_data = data.get("duplicates") or {}
    duplicates = DuplicateDetectionConfig(
        score_threshold=dup_data.get("score_threshold", 65),
        candidate_limit=dup_data.get("candidate_limit", 20),
    )

    return Config(firefly=firefly, importer=importer, duplicates=duplicates)


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Statement Import Configuration

firefly:
  base_url: "http://localhost:8080"       # API URL reachable from the importer
  token: "YOUR_FIREFLY_TOKEN"
  timeout_seconds: 30
  max_retries: 3

# Import run settings
importer:
  default_mode: "preview"                 # preview (never writes) or commit
  group_strategy: "none"                  # none, manual_keys, supermarket_monthly
  duplicate_window_days: 7                # Search +/- N days for duplicates (1-30)
  max_entries: 120                        # Maximum entries per import
  report_line_limit: 12                   # Lines per report section
  strict_dates: false                     # Reject unparsable dates instead of using today
  default_account_id: null                # Account used when an entry names none
  default_account_name: "Checking Account"
  default_expense_category_id: null
  default_expense_category_name: null
  default_income_category_id: null
  default_income_category_name: null

# Duplicate detection
duplicates:
  score_threshold: 65                     # Minimum score for a possible duplicate
  candidate_limit: 20                     # Existing transactions scored per record
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
