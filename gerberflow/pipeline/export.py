from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from gerberflow.pipeline.models import (
    GUIDE_FILE_NAME,
    ProcessedFile,
    WorkflowState,
    tool_suffix,
)
from gerberflow.services.base import FabricationServices
from gerberflow.storage.zip_export import build_archive_bytes, write_archive_file

_ZIP_EXTENSION = re.compile(r"\.zip$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ExportArchive:
    name: str
    data: bytes


def export_archive_name(archive_name: str, suffix: str, layer_count: int) -> str:
    base_name = _ZIP_EXTENSION.sub("", archive_name)
    layer_suffix = f"-L{layer_count}" if layer_count > 0 else ""
    return f"{base_name}-{suffix}{layer_suffix}.zip"


class ExportAssembler:
    def __init__(self, *, services: FabricationServices) -> None:
        self.services = services

    async def with_guide(
        self, processed: Sequence[ProcessedFile]
    ) -> list[ProcessedFile]:
        items = list(processed)
        if any(item.export_name == GUIDE_FILE_NAME for item in items):
            return items
        guide = await self.services.guide_text()
        items.append(ProcessedFile(GUIDE_FILE_NAME, GUIDE_FILE_NAME, guide))
        return items

    def archive_name(self, state: WorkflowState) -> str | None:
        """Name of the download archive, or None while a download is not possible."""
        if (
            not state.archive_name
            or not state.processed
            or state.primary_tool is None
            or state.layer_count is None
        ):
            return None
        return export_archive_name(
            state.archive_name, tool_suffix(state.primary_tool), state.layer_count
        )

    def build(self, state: WorkflowState) -> ExportArchive | None:
        name = self.archive_name(state)
        if name is None:
            return None
        data = build_archive_bytes(
            (item.export_name, item.content) for item in state.processed
        )
        return ExportArchive(name=name, data=data)


def write_export_archive(archive: ExportArchive, output_dir: Path | str) -> Path:
    return write_archive_file(name=archive.name, data=archive.data, output_dir=output_dir)
