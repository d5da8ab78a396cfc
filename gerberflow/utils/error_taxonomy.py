from __future__ import annotations

from typing import Literal, Sequence

from gerberflow.storage.zip_export import ZipExportError

ErrorCode = Literal[
    "CLASSIFICATION_FAILED",
    "UNSUPPORTED_PRIMARY_TOOL",
    "VALIDATION_FAILED",
    "DRILL_MERGE_WARNING",
    "MANUAL_COPY_FAILED",
    "ARCHIVE_INVALID",
    "EXPORT_FAILED",
    "UNKNOWN_ERROR",
]

ERROR_FRIENDLY_MESSAGES: dict[ErrorCode, str] = {
    "CLASSIFICATION_FAILED": (
        "Could not identify the CAD tool of a file. It was marked as unrecognized."
    ),
    "UNSUPPORTED_PRIMARY_TOOL": (
        "Processing is only supported for Altium, KiCad, and EasyEDA projects."
    ),
    "VALIDATION_FAILED": "Gerber file validation failed. No package was produced.",
    "DRILL_MERGE_WARNING": (
        "Some drill files were skipped. Processing continued with through-hole "
        "files only."
    ),
    "MANUAL_COPY_FAILED": "Could not read and copy the selected file.",
    "ARCHIVE_INVALID": (
        "Uploaded archive is invalid. Upload a .zip with at least two Gerber files."
    ),
    "EXPORT_FAILED": "Export archive could not be assembled.",
    "UNKNOWN_ERROR": "Unexpected error occurred during processing.",
}


class UnsupportedPrimaryToolError(ValueError):
    """Raised when the canonically first file was not produced by a supported tool."""

    def __init__(self, detected: str) -> None:
        super().__init__(
            "Processing is currently only supported for Altium, KiCad, and EasyEDA "
            f'projects. The primary type detected was "{detected}".'
        )
        self.detected = detected


class GerberValidationError(ValueError):
    """Raised when the export name set fails the validation service."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        joined = "\n".join(self.errors)
        super().__init__(f"Gerber file validation failed:\n\n{joined}")


class ManualCopyError(RuntimeError):
    """Raised when a raw source file cannot be read for a manual copy."""

    def __init__(self, file_name: str) -> None:
        super().__init__(f"Could not read and copy file: {file_name}")
        self.file_name = file_name


class ArchiveReadError(ValueError):
    """Raised when an uploaded archive cannot be turned into a file batch."""


def classify_workflow_error(error: Exception) -> ErrorCode:
    if isinstance(error, UnsupportedPrimaryToolError):
        return "UNSUPPORTED_PRIMARY_TOOL"
    if isinstance(error, GerberValidationError):
        return "VALIDATION_FAILED"
    if isinstance(error, ManualCopyError):
        return "MANUAL_COPY_FAILED"
    if isinstance(error, ArchiveReadError):
        return "ARCHIVE_INVALID"
    if isinstance(error, ZipExportError):
        return "EXPORT_FAILED"
    return "UNKNOWN_ERROR"


def build_error_details(error: Exception) -> str:
    details: list[str] = [f"{error.__class__.__name__}: {error}"]
    cause = error.__cause__
    if cause is not None:
        details.append(f"caused_by={cause.__class__.__name__}: {cause}")
    return "\n".join(details)
