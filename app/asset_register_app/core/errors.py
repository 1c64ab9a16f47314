from __future__ import annotations

from typing import Any


class BulkImportError(RuntimeError):
    """Base class for bulk import failures surfaced to the HTTP boundary."""


class UnknownEntityTypeError(BulkImportError, ValueError):
    def __init__(self, value: str) -> None:
        self.value = str(value or "")
        super().__init__(f"Unknown entity type '{self.value}'. Expected one of: component, spare, store.")


class UnknownImportModeError(BulkImportError, ValueError):
    def __init__(self, value: str) -> None:
        self.value = str(value or "")
        super().__init__(f"Unknown import mode '{self.value}'. Expected one of: add, update, upsert.")


class UnsupportedFormatError(BulkImportError):
    def __init__(self, file_name: str, extension: str) -> None:
        self.file_name = file_name
        self.extension = extension
        super().__init__(
            f"Unsupported file format '{extension or '(none)'}' for '{file_name}'. Upload a .csv or .xlsx file."
        )


class FileParseError(BulkImportError):
    """Raised when an upload cannot be decoded or read as its declared format."""


class UploadTooLargeError(BulkImportError):
    def __init__(self, size_bytes: int, max_bytes: int) -> None:
        self.size_bytes = int(size_bytes)
        self.max_bytes = int(max_bytes)
        super().__init__(f"Upload is {self.size_bytes} bytes; the limit is {self.max_bytes} bytes.")


class EmptyFileError(BulkImportError):
    """Zero data rows. Recorded by the validator as a single summary error, not raised."""

    message = "File contains no data rows."

    def __init__(self, file_name: str = "") -> None:
        self.file_name = str(file_name or "")
        super().__init__(self.message)


class FieldValidationError(BulkImportError, ValueError):
    """Per-field rule failure. Collected into row messages, never raised."""

    def __init__(self, row_number: int, header: str, reason: str) -> None:
        self.row_number = int(row_number)
        self.header = str(header or "")
        self.reason = str(reason or "")
        super().__init__(f"Row {self.row_number}: {self.reason}")


class TokenNotFoundError(BulkImportError, LookupError):
    def __init__(self, token: str) -> None:
        self.token = str(token or "")
        super().__init__("Invalid or expired file token. Run the dry run again.")


class ValidationBlockedError(BulkImportError):
    def __init__(self, token: str, error_count: int) -> None:
        self.token = str(token or "")
        self.error_count = int(error_count)
        super().__init__(f"Cannot import file with errors ({self.error_count} row(s) failed validation).")


class ImportSessionMismatchError(BulkImportError, ValueError):
    def __init__(self, field: str, expected: str, received: str) -> None:
        self.field = field
        self.expected = expected
        self.received = received
        super().__init__(
            f"Import request {field} '{received}' does not match the dry run ({field} '{expected}')."
        )


class StorageWriteError(BulkImportError):
    """One or more storage writes failed during a commit; successful rows are not rolled back."""

    def __init__(
        self,
        message: str,
        *,
        failures: list[dict[str, Any]] | None = None,
        outcome: Any = None,
        history_id: str = "",
    ) -> None:
        self.failures = list(failures or [])
        self.outcome = outcome
        self.history_id = str(history_id or "")
        super().__init__(message)


class DuplicateRecordError(RuntimeError):
    def __init__(self, entity_type: str, vessel_id: str, key: str) -> None:
        self.entity_type = entity_type
        self.vessel_id = vessel_id
        self.key = key
        super().__init__(f"{entity_type} '{key}' already exists for vessel '{vessel_id}'.")
