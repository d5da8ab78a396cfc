from __future__ import annotations

from gerberflow.pipeline.models import OriginTag

# Checked in order; the first keyword found wins.
_KEYWORDS: tuple[tuple[str, OriginTag], ...] = (
    ("altium", OriginTag.ALTIUM),
    ("kicad", OriginTag.KICAD),
    ("easyeda", OriginTag.EASYEDA),
)


def identify_origin(content: str) -> OriginTag | None:
    """Identify the CAD tool that produced a file from its header text.

    Returns None if no known tool is mentioned.
    """
    lowered = content.lower()
    for keyword, tag in _KEYWORDS:
        if keyword in lowered:
            return tag
    return None
