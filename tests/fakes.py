from __future__ import annotations

import asyncio
from typing import Sequence

from gerberflow.pipeline.models import (
    ContentReader,
    MappingVariant,
    OriginTag,
    SourceFile,
    static_reader,
)
from gerberflow.services.base import (
    SERVICE_API_VERSION,
    DrillMergeResult,
    ValidationReport,
)

FAKE_HEADER = "G04 header*\n"


class FakeFabricationServices:
    """Scriptable service double that records every call."""

    api_version = SERVICE_API_VERSION

    def __init__(
        self,
        *,
        origins: dict[str, OriginTag | None] | None = None,
        failing_origins: set[str] | None = None,
        sort_order: list[str] | None = None,
        rename_map: dict[str, str] | None = None,
        drill_names: set[str] | None = None,
        drill_result: DrillMergeResult | None = None,
        report: ValidationReport | None = None,
        guide: str = "guide text",
        detect_delay: float = 0.0,
        transform_gate: asyncio.Event | None = None,
    ) -> None:
        self.origins = origins or {}
        self.failing_origins = failing_origins or set()
        self.sort_order = sort_order
        self.rename_map = rename_map or {}
        self.drill_names = drill_names or set()
        self.drill_result = drill_result or DrillMergeResult()
        self.report = report or ValidationReport(valid=True, layer_count=2)
        self.guide = guide
        self.detect_delay = detect_delay
        self.transform_gate = transform_gate

        self.detect_calls: list[str] = []
        self.filename_map_calls: list[MappingVariant] = []
        self.normalize_calls: list[bool] = []
        self.fingerprint_calls: list[bool] = []
        self.drill_merge_calls: list[tuple[list[str], list[str]]] = []
        self.validate_calls: list[list[str]] = []
        self.guide_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def origin_detect(self, excerpt: str) -> OriginTag | None:
        self.detect_calls.append(excerpt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.detect_delay)
            for marker in self.failing_origins:
                if marker in excerpt:
                    raise RuntimeError(f"origin service failed for {marker}")
            for marker, tag in self.origins.items():
                if marker in excerpt:
                    return tag
            return None
        finally:
            self.in_flight -= 1

    async def canonical_sort(self, names: Sequence[str]) -> list[str]:
        if self.sort_order is None:
            return list(names)
        ranked = {name: index for index, name in enumerate(self.sort_order)}
        return sorted(names, key=lambda name: ranked.get(name, len(ranked)))

    async def filename_map(
        self, names: Sequence[str], variant: MappingVariant
    ) -> dict[str, str]:
        self.filename_map_calls.append(variant)
        if self.transform_gate is not None:
            await self.transform_gate.wait()
        return {name: self.rename_map[name] for name in names if name in self.rename_map}

    async def header_text(self) -> str:
        return FAKE_HEADER

    async def code_normalize(self, content: str, use_altium: bool) -> str:
        self.normalize_calls.append(use_altium)
        return content + ("[ad]" if use_altium else "[ki]")

    async def fingerprint(self, content: str, foreign: bool) -> str:
        self.fingerprint_calls.append(foreign)
        return content + "[fp]"

    async def drill_detect(self, name: str) -> bool:
        return name in self.drill_names

    async def drill_merge(
        self, contents: Sequence[str], names: Sequence[str]
    ) -> DrillMergeResult:
        self.drill_merge_calls.append((list(contents), list(names)))
        return self.drill_result

    async def validate(self, export_names: Sequence[str]) -> ValidationReport:
        self.validate_calls.append(list(export_names))
        return self.report

    async def guide_text(self) -> str:
        self.guide_calls += 1
        return self.guide


def failing_reader(message: str = "read failed") -> ContentReader:
    async def _read() -> str:
        raise OSError(message)

    return _read


def make_file(
    name: str,
    content: str | None = None,
    classification: OriginTag | None = None,
) -> SourceFile:
    return SourceFile(
        name=name,
        reader=static_reader(content if content is not None else f"content of {name}"),
        classification=classification,
    )
