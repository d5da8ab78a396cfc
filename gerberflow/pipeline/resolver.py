from __future__ import annotations

from typing import Sequence

from gerberflow.pipeline.models import OriginTag, SourceFile, is_supported
from gerberflow.services.base import FabricationServices
from gerberflow.utils.error_taxonomy import UnsupportedPrimaryToolError


class PrimaryToolResolver:
    """Attribute the whole batch to the tool of its canonically first file."""

    def __init__(self, *, services: FabricationServices) -> None:
        self.services = services

    async def resolve(self, files: Sequence[SourceFile]) -> OriginTag:
        if not files:
            raise UnsupportedPrimaryToolError(OriginTag.NONE.value)

        ordered = await self.services.canonical_sort([source.name for source in files])
        by_name = {source.name: source for source in files}
        first = by_name.get(ordered[0]) if ordered else None
        tag = first.classification if first is not None else None

        if tag is None or not is_supported(tag):
            detected = tag.value if tag is not None else OriginTag.NONE.value
            raise UnsupportedPrimaryToolError(detected)
        return tag
