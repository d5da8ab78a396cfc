from __future__ import annotations

import io
from pathlib import Path, PurePosixPath
from typing import Iterable
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)


class ZipExportError(RuntimeError):
    """Raised when an export archive cannot be assembled safely."""


def build_archive_bytes(entries: Iterable[tuple[str, str | bytes]]) -> bytes:
    """Write entries into an in-memory zip in the order given.

    Timestamps are fixed so identical inputs produce identical bytes.
    """
    buffer = io.BytesIO()
    seen: set[str] = set()
    with ZipFile(buffer, mode="w") as archive:
        for name, data in entries:
            entry_name = _safe_entry_name(name)
            if entry_name in seen:
                raise ZipExportError(f"Duplicate archive entry: {entry_name}")
            seen.add(entry_name)

            zip_info = ZipInfo(filename=entry_name)
            zip_info.date_time = _FIXED_DATE_TIME
            zip_info.compress_type = ZIP_DEFLATED
            archive.writestr(zip_info, data)
    return buffer.getvalue()


def write_archive_file(*, name: str, data: bytes, output_dir: Path | str) -> Path:
    destination_dir = Path(output_dir)
    destination_dir.mkdir(parents=True, exist_ok=True)

    file_name = _safe_entry_name(name)
    if "/" in file_name:
        raise ZipExportError(f"Archive name must not contain directories: {name}")

    target = destination_dir / file_name
    target.write_bytes(data)
    return target


def _safe_entry_name(name: str) -> str:
    if not name:
        raise ZipExportError("Archive entry has empty name.")

    path = PurePosixPath(name.replace("\\", "/"))
    if path.is_absolute() or path.anchor:
        raise ZipExportError(f"Archive entry uses absolute path: {name}")
    if any(part in {"", ".", ".."} for part in path.parts):
        raise ZipExportError(f"Path traversal attempt detected: {name}")
    if ":" in path.parts[0]:
        raise ZipExportError(f"Archive entry has invalid drive-style path: {name}")
    return path.as_posix()
