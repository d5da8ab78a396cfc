from __future__ import annotations

import random
from datetime import datetime

from gerberflow.services.drill import HoleType


def gerber_header(rng: random.Random, now: datetime) -> str:
    """Build the two-line G04 comment header shared by every processed layer."""
    name = "EasyEDA Pro" if rng.random() < 0.5 else "EasyEDA"
    version = "v{}.{}.{}.{}".format(
        rng.randint(2, 3),
        rng.randint(1, 5),
        rng.randint(1, 42),
        rng.randint(0, 2),
    )
    timestamp = now.strftime("%Y-%m-%d %H:%M:%S")
    return (
        f"G04 {name} {version}, {timestamp}*\n"
        "G04 Gerber Generator version 0.3*\n"
    )


def drill_header(hole_type: HoleType, rng: random.Random, now: datetime) -> str:
    type_str, layer_name = _drill_type_labels(hole_type)
    version = "v{}.{}.{}.{}".format(
        rng.randint(2, 3),
        rng.randint(1, 5),
        rng.randint(1, 42),
        rng.randint(0, 2),
    )
    timestamp = now.strftime("%Y-%m-%d %H:%M:%S")
    return (
        f";TYPE={type_str}\n"
        f";Layer: {layer_name}\n"
        f";EasyEDA Pro {version}, {timestamp}\n"
        ";Gerber Generator version 0.3\n"
    )


def _drill_type_labels(hole_type: HoleType) -> tuple[str, str]:
    match hole_type:
        case HoleType.PLATED:
            return "PLATED", "PTH_Through"
        case HoleType.NON_PLATED:
            return "NON_PLATED", "NPTH_Through"


_ORDER_GUIDE_TEXT = """\
PCB下单必读 / PCB ordering guide
================================

This package was normalized for fabrication ordering.

1. Upload this zip file as-is. Do not rename or remove the layer files.
2. Layer files use the standard names Gerber_<Layer>.<EXT>.
   The board outline is Gerber_BoardOutlineLayer.GKO.
3. Drill data is merged into Drill_PTH_Through.DRL (plated holes and slots)
   and Drill_NPTH_Through.DRL (non-plated holes and slots).
   Blind and buried via drill files are not supported and were skipped.
4. The layer count in the archive name (-L<n>) was detected from the copper
   layers present. Check it matches your design before ordering.
5. Review the board preview on the ordering page before paying.
"""


def order_guide_text() -> str:
    return _ORDER_GUIDE_TEXT
