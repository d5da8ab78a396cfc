from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from gerberflow.pipeline.models import (
    MERGED_NPTH_LABEL,
    MERGED_NPTH_NAME,
    MERGED_PTH_LABEL,
    MERGED_PTH_NAME,
    OriginTag,
    ProcessedFile,
    SourceFile,
    is_supported,
    mapping_variant_for,
    uses_altium_dcodes,
)
from gerberflow.pipeline.store import WorkflowStore
from gerberflow.services.base import FabricationServices
from gerberflow.utils.logging import restore_log_context, set_log_context

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TransformationOutcome:
    processed: list[ProcessedFile]
    rename_map: Mapping[str, str]
    drill_warnings: list[str] = field(default_factory=list)


def normalize_line_endings(content: str) -> str:
    return content.replace("\r\n", "\n")


class TransformationPipeline:
    """Rename, rewrite and merge a classified batch for fabrication.

    Board layers are transformed one at a time in batch order; drill files
    are read in order and merged with a single service call. Service and
    read errors are not caught here.
    """

    def __init__(self, *, store: WorkflowStore, services: FabricationServices) -> None:
        self.store = store
        self.services = services

    async def run(
        self,
        files: Sequence[SourceFile],
        primary_tool: OriginTag,
        *,
        generation: int | None = None,
    ) -> TransformationOutcome:
        names = [source.name for source in files]
        rename_map = await self.services.filename_map(
            names, mapping_variant_for(primary_tool)
        )
        self.store.set_rename_map(rename_map, generation=generation)

        drill_files: list[SourceFile] = []
        board_files: list[SourceFile] = []
        for source in files:
            if await self.services.drill_detect(source.name):
                drill_files.append(source)
            else:
                board_files.append(source)

        total = len(files)
        done = 0
        processed: list[ProcessedFile] = []
        header: str | None = None

        token = set_log_context(stage="transform")
        try:
            for source in board_files:
                set_log_context(file=source.name)
                content = normalize_line_endings(await source.read())
                tag = source.classification
                if tag is not None and is_supported(tag):
                    if header is None:
                        header = await self.services.header_text()
                    content = header + content
                    content = await self.services.code_normalize(
                        content, uses_altium_dcodes(tag)
                    )
                    content = await self.services.fingerprint(content, False)

                processed.append(
                    ProcessedFile(
                        original_name=source.name,
                        export_name=rename_map.get(source.name, source.name),
                        content=content,
                    )
                )
                done += 1
                self.store.set_progress(done / total * 100, generation=generation)
        finally:
            restore_log_context(token)

        drill_warnings: list[str] = []
        if drill_files:
            contents: list[str] = []
            for source in drill_files:
                contents.append(normalize_line_endings(await source.read()))
                done += 1
                self.store.set_progress(done / total * 100, generation=generation)

            result = await self.services.drill_merge(
                contents, [source.name for source in drill_files]
            )
            drill_warnings = list(result.warnings)
            if result.has_through_plated:
                processed.append(
                    ProcessedFile(MERGED_PTH_LABEL, MERGED_PTH_NAME, result.plated_content)
                )
            if result.has_through_non_plated:
                processed.append(
                    ProcessedFile(
                        MERGED_NPTH_LABEL, MERGED_NPTH_NAME, result.non_plated_content
                    )
                )

        logger.info(
            "Transformed batch",
            extra={
                "metrics": {
                    "board_files": len(board_files),
                    "drill_files": len(drill_files),
                    "outputs": len(processed),
                }
            },
        )
        return TransformationOutcome(
            processed=processed,
            rename_map=dict(rename_map),
            drill_warnings=drill_warnings,
        )
