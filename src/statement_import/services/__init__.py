"""Service layer for statement imports."""

from statement_import.services.importer import (
    ImportMode,
    ImportOutcome,
    ImportRequest,
    StatementImportService,
    describe_record,
)

__all__ = [
    "ImportMode",
    "ImportOutcome",
    "ImportRequest",
    "StatementImportService",
    "describe_record",
]
