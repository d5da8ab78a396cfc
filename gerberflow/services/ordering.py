from __future__ import annotations

import sys
from typing import Sequence

# KiCad layer names rank ahead of classic Gerber extensions.
_KICAD_NAMES = ("Edge_Cuts", "F_Cu", "F_Mask")
_GERBER_EXTENSIONS = ("gto", "gtl", "gbl")


def sort_gerber_files(names: Sequence[str]) -> list[str]:
    """Order filenames so the most representative layer comes first.

    The sort is stable: files of equal priority keep their input order.
    """
    return sorted(names, key=file_priority)


def file_priority(name: str) -> int:
    for index, kicad_name in enumerate(_KICAD_NAMES):
        if kicad_name in name:
            return index

    lowered = name.lower()
    for index, extension in enumerate(_GERBER_EXTENSIONS):
        if lowered.endswith(f".{extension}"):
            return index + len(_KICAD_NAMES)

    return sys.maxsize
