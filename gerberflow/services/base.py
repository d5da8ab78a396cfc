from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence

from gerberflow.pipeline.models import MappingVariant, OriginTag

SERVICE_API_VERSION = "1"


@dataclass(frozen=True, slots=True)
class DrillMergeResult:
    plated_content: str | None = None
    non_plated_content: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def has_through_plated(self) -> bool:
        return bool(self.plated_content)

    @property
    def has_through_non_plated(self) -> bool:
        return bool(self.non_plated_content)


@dataclass(frozen=True, slots=True)
class ValidationReport:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    layer_count: int = 0


class FabricationServices(Protocol):
    """Computation services consumed by the workflow.

    Calls are treated as side-effect free with respect to workflow state;
    every call is a suspension point.
    """

    api_version: str

    async def origin_detect(self, excerpt: str) -> OriginTag | None: ...

    async def canonical_sort(self, names: Sequence[str]) -> list[str]: ...

    async def filename_map(
        self, names: Sequence[str], variant: MappingVariant
    ) -> dict[str, str]: ...

    async def header_text(self) -> str: ...

    async def code_normalize(self, content: str, use_altium: bool) -> str: ...

    async def fingerprint(self, content: str, foreign: bool) -> str: ...

    async def drill_detect(self, name: str) -> bool: ...

    async def drill_merge(
        self, contents: Sequence[str], names: Sequence[str]
    ) -> DrillMergeResult: ...

    async def validate(self, export_names: Sequence[str]) -> ValidationReport: ...

    async def guide_text(self) -> str: ...
