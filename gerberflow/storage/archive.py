from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass
from pathlib import PurePosixPath
from zipfile import BadZipFile, ZipFile, ZipInfo

from gerberflow.config.settings import Settings
from gerberflow.pipeline.models import ContentReader, SourceFile
from gerberflow.utils.error_taxonomy import ArchiveReadError

_DEFAULT_MAX_ENTRIES = 500
_DEFAULT_MAX_TOTAL_UNCOMPRESSED_BYTES = 256 * 1024 * 1024
_DEFAULT_MAX_SINGLE_FILE_BYTES = 64 * 1024 * 1024
_DEFAULT_MAX_COMPRESSION_RATIO = 200.0
MIN_BATCH_FILES = 2


@dataclass(frozen=True, slots=True)
class UploadSafetyLimits:
    max_entries: int = _DEFAULT_MAX_ENTRIES
    max_total_uncompressed_bytes: int = _DEFAULT_MAX_TOTAL_UNCOMPRESSED_BYTES
    max_single_file_bytes: int = _DEFAULT_MAX_SINGLE_FILE_BYTES
    max_compression_ratio: float = _DEFAULT_MAX_COMPRESSION_RATIO

    @classmethod
    def from_settings(cls, settings: Settings) -> UploadSafetyLimits:
        return cls(
            max_entries=settings.upload_max_entries,
            max_total_uncompressed_bytes=settings.upload_max_total_uncompressed_bytes,
            max_single_file_bytes=settings.upload_max_single_file_bytes,
            max_compression_ratio=settings.upload_max_compression_ratio,
        )


def read_upload_archive(
    data: bytes,
    archive_name: str,
    limits: UploadSafetyLimits | None = None,
) -> list[SourceFile]:
    """Turn an uploaded zip into an unclassified file batch.

    Files are taken from the archive root, or from the single top-level
    folder when the root holds no files. Contents are read on demand.
    """
    if not archive_name.lower().endswith(".zip"):
        raise ArchiveReadError("Invalid file type. Please upload a .zip file.")

    limits = limits or UploadSafetyLimits()
    try:
        with ZipFile(io.BytesIO(data), "r") as archive:
            infos = _validate_entries(archive, limits=limits)
    except BadZipFile as error:
        raise ArchiveReadError(
            "Could not read the zip file. It may be corrupt."
        ) from error

    selected = _select_batch_entries(infos)
    if len(selected) < MIN_BATCH_FILES:
        raise ArchiveReadError(
            "Invalid zip structure. Please ensure there are at least two Gerber files."
        )

    return [
        SourceFile(
            name=PurePosixPath(info.filename).name,
            reader=_entry_reader(data, info.filename),
        )
        for info in selected
    ]


def _validate_entries(archive: ZipFile, *, limits: UploadSafetyLimits) -> list[ZipInfo]:
    infos = archive.infolist()
    if len(infos) > limits.max_entries:
        raise ArchiveReadError(
            f"Archive has too many entries ({len(infos)}), limit is "
            f"{limits.max_entries}."
        )

    file_entries: list[ZipInfo] = []
    total_uncompressed_bytes = 0
    for info in infos:
        path = _validate_entry_path(info)
        if info.is_dir():
            continue
        if _is_symlink_entry(info):
            raise ArchiveReadError(f"Archive contains symlink entry: {path}")
        _validate_zip_bomb_limits(info=info, limits=limits)
        total_uncompressed_bytes += info.file_size
        file_entries.append(info)

    if total_uncompressed_bytes > limits.max_total_uncompressed_bytes:
        raise ArchiveReadError(
            "Archive uncompressed size exceeds allowed limit: "
            f"{total_uncompressed_bytes} > {limits.max_total_uncompressed_bytes}."
        )
    return file_entries


def _validate_entry_path(info: ZipInfo) -> PurePosixPath:
    name = info.filename
    if not name:
        raise ArchiveReadError("Archive entry has empty name.")

    path = PurePosixPath(name)
    if path.is_absolute() or path.anchor:
        raise ArchiveReadError(f"Archive entry uses absolute path: {name}")
    if any(part in {".", ".."} for part in path.parts):
        raise ArchiveReadError(f"Archive entry has invalid path: {name}")
    return path


def _is_symlink_entry(info: ZipInfo) -> bool:
    mode = (info.external_attr >> 16) & 0o170000
    return mode == 0o120000


def _validate_zip_bomb_limits(*, info: ZipInfo, limits: UploadSafetyLimits) -> None:
    if info.file_size > limits.max_single_file_bytes:
        raise ArchiveReadError(
            f"Archive entry is too large: {info.filename} "
            f"({info.file_size} > {limits.max_single_file_bytes})."
        )
    if info.file_size == 0:
        return

    compressed = max(info.compress_size, 1)
    ratio = info.file_size / compressed
    if ratio > limits.max_compression_ratio:
        raise ArchiveReadError(
            f"Archive entry compression ratio is suspicious: {info.filename} "
            f"({ratio:.1f} > {limits.max_compression_ratio})."
        )


def _select_batch_entries(infos: list[ZipInfo]) -> list[ZipInfo]:
    root_files = [info for info in infos if "/" not in info.filename]
    if len(root_files) >= MIN_BATCH_FILES:
        return root_files
    if root_files:
        return []

    folders = {info.filename.split("/", 1)[0] for info in infos}
    if len(folders) != 1:
        return []

    (folder,) = folders
    return [
        info
        for info in infos
        if info.filename.startswith(f"{folder}/")
        and "/" not in info.filename[len(folder) + 1 :]
    ]


def _entry_reader(data: bytes, member: str) -> ContentReader:
    def _read_sync() -> str:
        with ZipFile(io.BytesIO(data), "r") as archive:
            return archive.read(member).decode("utf-8", errors="replace")

    async def _read() -> str:
        return await asyncio.to_thread(_read_sync)

    return _read
