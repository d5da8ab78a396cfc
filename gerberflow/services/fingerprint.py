from __future__ import annotations

import hashlib
import random
import re

SCAN_LINE_LIMIT = 200
MIN_APERTURE_DEFINITIONS = 6
FOREIGN_HASH_PREFIX = "494d"

# The id must be followed by at least one more character on the line.
_APERTURE_ID = re.compile(r"^(%ADD|G54D)(\d+)(?=\D)")


def add_fingerprint(text: str, foreign: bool, rng: random.Random) -> str:
    """Insert one synthetic aperture definition into a Gerber layer.

    Files with too few aperture definitions are returned unchanged.
    """
    definitions = _scan_definitions(text.splitlines())
    if len(definitions) < MIN_APERTURE_DEFINITIONS:
        return text

    template, aperture_id = definitions[rng.randrange(5, len(definitions))]
    shifted = renumber_apertures(text, aperture_id)
    dimension = hashed_dimension(shifted, foreign=foreign, rng=rng)
    new_line = _fingerprint_line(template, aperture_id, dimension)
    return _insert_definition(shifted, new_line, aperture_id)


def _scan_definitions(lines: list[str]) -> list[tuple[str, int]]:
    found: list[tuple[str, int]] = []
    for line in lines[:SCAN_LINE_LIMIT]:
        match = _APERTURE_ID.match(line)
        if match and match.group(1) == "%ADD" and 2 <= len(match.group(2)) <= 4:
            found.append((line, int(match.group(2))))
    return found


def renumber_apertures(text: str, first_id: int) -> str:
    """Shift every ``%ADD``/``G54D`` id at or above ``first_id`` up by one."""
    lines = []
    for line in text.split("\n"):
        match = _APERTURE_ID.match(line)
        if match and 2 <= len(match.group(2)) <= 4:
            number = int(match.group(2))
            if number >= first_id:
                line = f"{match.group(1)}{number + 1}{line[match.end():]}"
        lines.append(line)
    return "\n".join(lines)


def hashed_dimension(text: str, *, foreign: bool, rng: random.Random) -> str:
    payload = f"{FOREIGN_HASH_PREFIX}{text}" if foreign else text
    digest = hashlib.md5(payload.encode("utf-8")).hexdigest()
    suffix = f"{int(digest[-2:], 16) % 100:02d}"
    dimension = f"{rng.random():.2f}{suffix}"
    if float(dimension) == 0.0:
        return "0.0100"
    return dimension


def _fingerprint_line(template: str, aperture_id: int, dimension: str) -> str:
    comma = template.find(",")
    if comma < 0:
        return f"%ADD{aperture_id}C,{dimension}*%"

    size = re.match(r"[\d.]*", template[comma + 1 :])
    size_end = comma + 1 + (size.end() if size else 0)
    return template.replace(template[comma:size_end], f",{dimension}")


def _insert_definition(text: str, new_line: str, aperture_id: int) -> str:
    lines = text.split("\n")
    anchor = f"%ADD{aperture_id - 1}"
    for index, line in enumerate(lines):
        if line.startswith(anchor):
            lines.insert(index + 1, new_line)
            return "\n".join(lines)

    # No preceding aperture: place it ahead of the first image command.
    seen_mode = False
    for index, line in enumerate(lines):
        if not seen_mode and line.startswith("%MO"):
            seen_mode = True
        elif seen_mode and (line.startswith("%LP") or line.startswith("G")):
            lines.insert(index, new_line)
            break
    return "\n".join(lines)
