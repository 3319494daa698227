"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from ..config import Config, create_default_config, load_config
from ..firefly_client import FireflyClient
from ..grouping import GroupStrategy
from ..ledger import FireflyLedger
from ..services.importer import ImportRequest, StatementImportService

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="statement-import",
        description="Import bank statement entries into Firefly III with duplicate detection",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # import command
    import_parser = subparsers.add_parser(
        "import", help="Preview or commit a statement file (JSON)"
    )
    import_parser.add_argument(
        "file",
        type=Path,
        help="JSON file: a list of entries, or an object with 'entries' and options",
    )
    import_parser.add_argument(
        "--commit",
        action="store_true",
        help="Create accepted records (default: preview only)",
    )
    import_parser.add_argument(
        "--group-strategy",
        choices=[s.value for s in GroupStrategy],
        help="Merge repeated charges before duplicate search",
    )
    import_parser.add_argument(
        "--window-days",
        type=int,
        help="Days searched on each side of the entry date (1-30)",
    )
    import_parser.add_argument(
        "--create-if-duplicate",
        action="store_true",
        help="Create records even when a possible duplicate exists",
    )
    import_parser.add_argument(
        "--force-index",
        type=int,
        nargs="+",
        default=[],
        metavar="N",
        help="1-based entry indexes to create despite a possible duplicate",
    )
    import_parser.add_argument(
        "--account-id",
        type=int,
        help="Default account ID for entries without one",
    )
    import_parser.add_argument(
        "--account-name",
        type=str,
        help="Default account name for entries without one",
    )
    import_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the outcome as JSON instead of the text report",
    )

    # check command
    subparsers.add_parser("check", help="Validate config and test the Firefly connection")

    # init-config command
    subparsers.add_parser("init-config", help="Write a default config file")

    return parser


def build_payload(data: object, parsed: argparse.Namespace) -> dict:
    """Merge the statement file contents with command-line options."""
    if isinstance(data, list):
        payload: dict = {"entries": data}
    elif isinstance(data, dict):
        payload = dict(data)
    else:
        payload = {"entries": []}

    if parsed.commit:
        payload["mode"] = "commit"
    if parsed.group_strategy:
        payload["group_strategy"] = parsed.group_strategy
    if parsed.window_days is not None:
        payload["duplicate_window_days"] = parsed.window_days
    if parsed.create_if_duplicate:
        payload["create_if_duplicate"] = True
    if parsed.force_index:
        payload["force_duplicate_indexes"] = list(parsed.force_index)
    if parsed.account_id is not None:
        payload["account_id"] = parsed.account_id
    if parsed.account_name:
        payload["account_name"] = parsed.account_name

    return payload


def create_firefly_client(config: Config) -> FireflyClient:
    return FireflyClient(
        base_url=config.firefly.base_url,
        token=config.firefly.token,
        timeout=config.firefly.timeout_seconds,
        max_retries=config.firefly.max_retries,
    )


def cmd_import(config: Config, parsed: argparse.Namespace) -> int:
    """Preview or commit a statement file."""
    try:
        with open(parsed.file, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        print(f"❌ Failed to read {parsed.file}: {e}")
        return 1

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"❌ Config: {error}")
        return 1

    payload = build_payload(data, parsed)
    request = ImportRequest.from_dict(payload, config.importer)

    ledger = FireflyLedger.from_client(create_firefly_client(config))
    service = StatementImportService(
        accounts=ledger.accounts,
        categories=ledger.categories,
        candidates=ledger.candidates,
        writer=ledger.writer,
        config=config,
    )

    outcome = service.run(request)

    if parsed.json:
        print(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(outcome.render_report())

    return 0


def cmd_check(config: Config) -> int:
    """Validate configuration and test the Firefly connection."""
    errors = config.validate()
    if errors:
        for error in errors:
            print(f"❌ Config: {error}")
        return 1

    print(f"🔌 Connecting to Firefly at {config.firefly.base_url}...")
    client = create_firefly_client(config)

    if not client.test_connection():
        print("❌ Failed to connect to Firefly")
        return 1

    print("✓ Configuration valid, Firefly reachable")
    return 0


def cmd_init_config(config_path: Path) -> int:
    """Write a default configuration file."""
    if config_path.exists():
        print(f"❌ {config_path} already exists")
        return 1

    create_default_config(config_path)
    print(f"✓ Wrote default config to {config_path}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config)

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    # Route to command
    if parsed.command == "import":
        return cmd_import(config, parsed)
    elif parsed.command == "check":
        return cmd_check(config)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
