from __future__ import annotations

from gerberflow.storage.zip_export import ZipExportError
from gerberflow.utils.error_taxonomy import (
    ERROR_FRIENDLY_MESSAGES,
    ArchiveReadError,
    GerberValidationError,
    ManualCopyError,
    UnsupportedPrimaryToolError,
    build_error_details,
    classify_workflow_error,
)


def test_error_code_mapping() -> None:
    assert classify_workflow_error(UnsupportedPrimaryToolError("None")) == (
        "UNSUPPORTED_PRIMARY_TOOL"
    )
    assert classify_workflow_error(GerberValidationError(["x"])) == "VALIDATION_FAILED"
    assert classify_workflow_error(ManualCopyError("a.gtl")) == "MANUAL_COPY_FAILED"
    assert classify_workflow_error(ArchiveReadError("bad")) == "ARCHIVE_INVALID"
    assert classify_workflow_error(ZipExportError("dup")) == "EXPORT_FAILED"
    assert classify_workflow_error(KeyError("x")) == "UNKNOWN_ERROR"


def test_every_error_code_has_friendly_message() -> None:
    codes = {
        "CLASSIFICATION_FAILED",
        "UNSUPPORTED_PRIMARY_TOOL",
        "VALIDATION_FAILED",
        "DRILL_MERGE_WARNING",
        "MANUAL_COPY_FAILED",
        "ARCHIVE_INVALID",
        "EXPORT_FAILED",
        "UNKNOWN_ERROR",
    }

    assert set(ERROR_FRIENDLY_MESSAGES) == codes
    assert all(message for message in ERROR_FRIENDLY_MESSAGES.values())


def test_validation_error_lists_every_message() -> None:
    error = GerberValidationError(["first", "second"])

    assert str(error) == "Gerber file validation failed:\n\nfirst\nsecond"
    assert error.errors == ["first", "second"]


def test_build_error_details_includes_cause() -> None:
    try:
        try:
            raise OSError("disk gone")
        except OSError as cause:
            raise ManualCopyError("a.gtl") from cause
    except ManualCopyError as error:
        details = build_error_details(error)

    assert details == (
        "ManualCopyError: Could not read and copy file: a.gtl\n"
        "caused_by=OSError: disk gone"
    )
