from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Awaitable, Callable, Mapping

ContentReader = Callable[[], Awaitable[str]]

GUIDE_FILE_NAME = "PCB下单必读.txt"
MERGED_PTH_LABEL = "[merged PTH drills]"
MERGED_NPTH_LABEL = "[merged NPTH drills]"
MERGED_PTH_NAME = "Drill_PTH_Through.DRL"
MERGED_NPTH_NAME = "Drill_NPTH_Through.DRL"


class OriginTag(str, Enum):
    ALTIUM = "Altium"
    KICAD = "KiCad"
    EASYEDA = "EasyEDA"
    NONE = "None"


class MappingVariant(str, Enum):
    ALTIUM = "altium"
    KICAD = "kicad"


class WorkflowMode(str, Enum):
    UPLOAD = "upload"
    PROCESS = "process"


SUPPORTED_TOOLS: frozenset[OriginTag] = frozenset(
    {OriginTag.ALTIUM, OriginTag.KICAD, OriginTag.EASYEDA}
)


def is_supported(tag: OriginTag | None) -> bool:
    return tag in SUPPORTED_TOOLS


def tool_suffix(tag: OriginTag) -> str:
    """Archive-name suffix for a primary tool."""
    match tag:
        case OriginTag.ALTIUM:
            return "AD"
        case OriginTag.KICAD:
            return "Ki"
        case OriginTag.EASYEDA:
            return "ED"
        case OriginTag.NONE:
            raise ValueError("Unrecognized files have no archive suffix")


def mapping_variant_for(tag: OriginTag) -> MappingVariant:
    """Filename-mapping rules used when ``tag`` is the primary tool.

    EasyEDA exports share Altium's layer extensions, so EasyEDA batches are
    renamed with the Altium rules.
    """
    match tag:
        case OriginTag.ALTIUM | OriginTag.EASYEDA:
            return MappingVariant.ALTIUM
        case OriginTag.KICAD:
            return MappingVariant.KICAD
        case OriginTag.NONE:
            raise ValueError("Unrecognized files have no filename mapping")


def uses_altium_dcodes(tag: OriginTag) -> bool:
    match tag:
        case OriginTag.ALTIUM | OriginTag.EASYEDA:
            return True
        case OriginTag.KICAD:
            return False
        case OriginTag.NONE:
            raise ValueError("Unrecognized files have no D-code convention")


@dataclass(frozen=True, slots=True)
class SourceFile:
    name: str
    reader: ContentReader = field(repr=False, compare=False)
    classification: OriginTag | None = None

    @property
    def is_classified(self) -> bool:
        return self.classification is not None

    async def read(self) -> str:
        return await self.reader()

    def with_classification(self, tag: OriginTag) -> SourceFile:
        if self.classification is not None:
            raise ValueError(f"{self.name} is already classified")
        return replace(self, classification=tag)


@dataclass(frozen=True, slots=True)
class ProcessedFile:
    original_name: str
    export_name: str
    content: str


@dataclass(frozen=True, slots=True)
class RunResult:
    primary_tool: OriginTag | None = None
    layer_count: int | None = None


@dataclass(frozen=True, slots=True)
class WorkflowState:
    mode: WorkflowMode = WorkflowMode.UPLOAD
    archive_name: str | None = None
    files: tuple[SourceFile, ...] = ()
    processed: tuple[ProcessedFile, ...] = ()
    is_processing: bool = False
    progress: float = 0.0
    primary_tool: OriginTag | None = None
    layer_count: int | None = None
    rename_map: Mapping[str, str] = field(default_factory=dict)
    analysis_complete: bool = False
    generation: int = 0

    @property
    def run_result(self) -> RunResult:
        return RunResult(primary_tool=self.primary_tool, layer_count=self.layer_count)

    @property
    def all_classified(self) -> bool:
        return bool(self.files) and all(f.is_classified for f in self.files)

    @property
    def can_process(self) -> bool:
        return (
            self.mode is WorkflowMode.PROCESS
            and self.all_classified
            and not self.is_processing
        )

    def file(self, name: str) -> SourceFile | None:
        for source in self.files:
            if source.name == name:
                return source
        return None

    def export_names(self) -> list[str]:
        return [item.export_name for item in self.processed]


def static_reader(content: str) -> ContentReader:
    async def _read() -> str:
        return content

    return _read
