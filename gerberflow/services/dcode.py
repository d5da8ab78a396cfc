from __future__ import annotations

import re

_DCODE_PATTERN = re.compile(r"(D\d{2,4}\*)")
_ALTIUM_MOTION_PREFIXES = ("G01", "G02", "G36", "G37")
_BARE_OPERATIONS = {"D01*", "D02*", "D03*"}


def process_d_codes(text: str, use_altium: bool) -> str:
    """Prefix aperture selections with ``G54`` in the given text.

    KiCad output already declares apertures inline, so ``%ADD`` definition
    lines are left alone. Altium output mixes operation codes into motion
    lines; those keep their original form.
    """
    lines = []
    for line in text.split("\n"):
        if _should_skip(line, use_altium=use_altium):
            lines.append(line)
        else:
            lines.append(_DCODE_PATTERN.sub(r"G54\1", line))
    return "\n".join(lines)


def _should_skip(line: str, *, use_altium: bool) -> bool:
    if "G54D" in line:
        return True
    if not use_altium:
        return "%ADD" in line

    if line.startswith(_ALTIUM_MOTION_PREFIXES):
        trimmed = line.strip()
        if trimmed in _BARE_OPERATIONS or "X" in trimmed or "Y" in trimmed:
            return True
    return False
