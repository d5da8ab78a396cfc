from __future__ import annotations

import random
from datetime import datetime
from typing import Callable, Sequence

from gerberflow.pipeline.models import MappingVariant, OriginTag
from gerberflow.services.base import (
    SERVICE_API_VERSION,
    DrillMergeResult,
    ValidationReport,
)
from gerberflow.services.dcode import process_d_codes
from gerberflow.services.drill import HoleType, is_drill_file, process_drill_files
from gerberflow.services.fingerprint import add_fingerprint
from gerberflow.services.header import drill_header, gerber_header, order_guide_text
from gerberflow.services.layers import validate_gerber_files
from gerberflow.services.ordering import sort_gerber_files
from gerberflow.services.origin import identify_origin
from gerberflow.services.rename import RenameRules


class LocalFabricationServices:
    """In-process implementation of ``FabricationServices``.

    ``rng`` and ``clock`` drive the generated headers and fingerprints;
    inject seeded ones for reproducible output.
    """

    api_version = SERVICE_API_VERSION

    def __init__(
        self,
        *,
        rename_rules: RenameRules | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._rules = rename_rules or RenameRules.from_file()
        self._rng = rng or random.Random()
        self._clock = clock

    async def origin_detect(self, excerpt: str) -> OriginTag | None:
        return identify_origin(excerpt)

    async def canonical_sort(self, names: Sequence[str]) -> list[str]:
        return sort_gerber_files(names)

    async def filename_map(
        self, names: Sequence[str], variant: MappingVariant
    ) -> dict[str, str]:
        return self._rules.map_filenames(names, variant)

    async def header_text(self) -> str:
        return gerber_header(self._rng, self._clock())

    async def code_normalize(self, content: str, use_altium: bool) -> str:
        return process_d_codes(content, use_altium)

    async def fingerprint(self, content: str, foreign: bool) -> str:
        return add_fingerprint(content, foreign, self._rng)

    async def drill_detect(self, name: str) -> bool:
        return is_drill_file(name)

    async def drill_merge(
        self, contents: Sequence[str], names: Sequence[str]
    ) -> DrillMergeResult:
        output = process_drill_files(contents, names, self._drill_header)
        return DrillMergeResult(
            plated_content=output.plated,
            non_plated_content=output.non_plated,
            warnings=list(output.warnings),
        )

    async def validate(self, export_names: Sequence[str]) -> ValidationReport:
        return validate_gerber_files(export_names)

    async def guide_text(self) -> str:
        return order_guide_text()

    def _drill_header(self, hole_type: HoleType) -> str:
        return drill_header(hole_type, self._rng, self._clock())
