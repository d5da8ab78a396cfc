from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

INCH_TO_MM = 25.4
BLIND_BURIED_EXTENSIONS = tuple(f".tx{n}" for n in range(1, 7))

_ALTIUM_TOOL = re.compile(r"^T(\d+)F\d+S\d+C([\d.]+)")
_KICAD_TOOL = re.compile(r"^T(\d+)C([\d.]+)")
_COORDINATE = re.compile(r"^(?:X([\d.+-]+))?(?:Y([\d.+-]+))?$")
_KICAD_HOLE = re.compile(r"^X([\d.-]+)Y([\d.-]+)")
_TOOL_SELECT = re.compile(r"^T(\d+)$")
_ROUTE_START = re.compile(r"^G00(?:X([\d.-]+))?(?:Y([\d.-]+))?")
_ROUTE_TO = re.compile(r"^G01(?:X([\d.-]+))?(?:Y([\d.-]+))?")
_FILE_FORMAT = re.compile(r"FILE_FORMAT=(\d+):(\d+)")


class HoleType(str, Enum):
    PLATED = "plated"
    NON_PLATED = "non_plated"


class DrillUnit(str, Enum):
    INCH = "inch"
    METRIC = "metric"


class DrillOrigin(str, Enum):
    ALTIUM = "altium"
    KICAD = "kicad"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Hole:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class Slot:
    start_x: float
    start_y: float
    end_x: float
    end_y: float


DrillCommand = Hole | Slot


@dataclass(slots=True)
class DrillOperation:
    diameter: float
    hole_type: HoleType
    commands: list[DrillCommand] = field(default_factory=list)


@dataclass(slots=True)
class DrillFile:
    operations: list[DrillOperation] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class DrillOutput:
    plated: str | None
    non_plated: str | None
    warnings: list[str]


@dataclass(frozen=True, slots=True)
class _NumberFormat:
    integer_places: int = 2
    decimal_places: int = 4
    leading_zeros: bool = True
    unit: DrillUnit = DrillUnit.METRIC


DrillHeader = Callable[[HoleType], str]


def is_drill_file(name: str) -> bool:
    lowered = name.lower()
    if lowered.endswith(".drl") or lowered.endswith(BLIND_BURIED_EXTENSIONS):
        return True
    return lowered.endswith(".txt") and ("hole" in lowered or "drill" in lowered)


def is_through_drill(name: str) -> bool:
    return not name.lower().endswith(BLIND_BURIED_EXTENSIONS)


def detect_drill_origin(content: str) -> DrillOrigin:
    lowered = content.lower()
    if "kicad" in lowered:
        return DrillOrigin.KICAD
    if any(_ALTIUM_TOOL.match(line) for line in content.splitlines()):
        return DrillOrigin.ALTIUM
    if "altium" in lowered:
        return DrillOrigin.ALTIUM
    return DrillOrigin.UNKNOWN


def _parse_float(raw: str | None, default: float = 0.0) -> float:
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _to_mm(value: float, unit: DrillUnit) -> float:
    return value * INCH_TO_MM if unit is DrillUnit.INCH else value


def parse_altium_coordinate(raw: str, fmt: _NumberFormat) -> float:
    """Convert one Excellon coordinate to millimetres.

    Coordinates without a decimal point are interpreted through the
    ``FILE_FORMAT`` digit counts and the zero-suppression mode.
    """
    if "." in raw:
        return _to_mm(_parse_float(raw), fmt.unit)

    sign = -1.0 if raw.startswith("-") else 1.0
    digits = raw.lstrip("+-")
    if fmt.leading_zeros:
        split = fmt.integer_places
        if len(digits) <= split:
            value = _parse_float(digits)
        else:
            int_part, dec_part = digits[:split], digits[split:]
            value = _parse_float(int_part) + _parse_float(dec_part) / 10 ** len(dec_part)
    elif digits.isdigit():
        value = int(digits) / 10**fmt.decimal_places
    else:
        value = 0.0
    return _to_mm(sign * value, fmt.unit)


def _header_lines(content: str) -> list[str]:
    lines = []
    for line in content.splitlines():
        line = line.strip()
        if line == "%":
            break
        lines.append(line)
    return lines


def _body_lines(content: str) -> list[str]:
    lines = content.splitlines()
    stripped = [line.strip() for line in lines]
    try:
        start = stripped.index("%") + 1
    except ValueError:
        return []
    return [line for line in stripped[start:] if line and not line.startswith(";")]


def parse_altium_excellon(content: str) -> DrillFile:
    fmt = _NumberFormat()
    hole_type = HoleType.PLATED
    tools: dict[int, DrillOperation] = {}

    for line in _header_lines(content):
        upper = line.upper()
        if upper.startswith(("INCH", "METRIC")):
            unit = DrillUnit.INCH if upper.startswith("INCH") else DrillUnit.METRIC
            leading = fmt.leading_zeros
            if "LZ" in upper:
                leading = True
            elif "TZ" in upper:
                leading = False
            fmt = _NumberFormat(fmt.integer_places, fmt.decimal_places, leading, unit)

        if (match := _FILE_FORMAT.search(line)) is not None:
            fmt = _NumberFormat(
                int(match.group(1)), int(match.group(2)), fmt.leading_zeros, fmt.unit
            )

        if "TYPE=PLATED" in line and "NON_PLATED" not in line:
            hole_type = HoleType.PLATED
        elif "TYPE=NON_PLATED" in line:
            hole_type = HoleType.NON_PLATED

        if (match := _ALTIUM_TOOL.match(line)) is not None:
            diameter = _to_mm(_parse_float(match.group(2)), fmt.unit)
            tools[int(match.group(1))] = DrillOperation(diameter, hole_type)

    current: DrillOperation | None = None
    in_route = False
    last_x = last_y = 0.0
    for line in _body_lines(content):
        if (match := _TOOL_SELECT.match(line)) is not None:
            current = tools.get(int(match.group(1)), current)
            continue
        if (match := _ROUTE_START.match(line)) is not None:
            if match.group(1):
                last_x = parse_altium_coordinate(match.group(1), fmt)
            if match.group(2):
                last_y = parse_altium_coordinate(match.group(2), fmt)
            continue
        if line == "M15":
            in_route = True
            continue
        if in_route and (match := _ROUTE_TO.match(line)) is not None:
            start_x, start_y = last_x, last_y
            if match.group(1):
                last_x = parse_altium_coordinate(match.group(1), fmt)
            if match.group(2):
                last_y = parse_altium_coordinate(match.group(2), fmt)
            if current is not None:
                current.commands.append(Slot(start_x, start_y, last_x, last_y))
            continue
        if line == "M16":
            in_route = False
            continue

        match = _COORDINATE.match(line)
        if match is None or (match.group(1) is None and match.group(2) is None):
            continue
        if current is not None:
            if match.group(1):
                last_x = parse_altium_coordinate(match.group(1), fmt)
            if match.group(2):
                last_y = parse_altium_coordinate(match.group(2), fmt)
            current.commands.append(Hole(last_x, last_y))

    return DrillFile([tools[key] for key in sorted(tools) if tools[key].commands])


def parse_kicad_excellon(content: str) -> tuple[DrillFile, HoleType]:
    """Parse a KiCad drill file (metric, decimal coordinates).

    KiCad writes plated and non-plated holes to separate files, so the hole
    type applies to the whole file.
    """
    if "NonPlated" in content or "NPTH" in content:
        hole_type = HoleType.NON_PLATED
    else:
        hole_type = HoleType.PLATED

    tools: dict[int, DrillOperation] = {}
    for line in _header_lines(content):
        if (match := _KICAD_TOOL.match(line)) is not None:
            tools[int(match.group(1))] = DrillOperation(
                _parse_float(match.group(2)), hole_type
            )

    current: DrillOperation | None = None
    in_route = False
    route_start: tuple[float, float] | None = None
    last_y = 0.0
    for line in _body_lines(content):
        if (match := _TOOL_SELECT.match(line)) is not None:
            current = tools.get(int(match.group(1)), current)
            continue
        if (match := _ROUTE_START.match(line)) is not None:
            y = _parse_float(match.group(2))
            route_start = (_parse_float(match.group(1)), y)
            last_y = y
            continue
        if line == "M15":
            in_route = True
            continue
        if in_route and (match := _ROUTE_TO.match(line)) is not None:
            end_x = _parse_float(match.group(1))
            end_y = _parse_float(match.group(2), default=last_y)
            if current is not None and route_start is not None:
                current.commands.append(Slot(*route_start, end_x, end_y))
            last_y = end_y
            continue
        if line == "M16":
            in_route = False
            route_start = None
            continue
        if current is not None and (match := _KICAD_HOLE.match(line)) is not None:
            current.commands.append(
                Hole(_parse_float(match.group(1)), _parse_float(match.group(2)))
            )

    return DrillFile([tools[key] for key in sorted(tools) if tools[key].commands]), hole_type


def merge_by_diameter(operations: Sequence[DrillOperation]) -> list[DrillOperation]:
    """Combine operations sharing a diameter, ordered by diameter."""
    merged: dict[int, DrillOperation] = {}
    for operation in operations:
        key = int(operation.diameter * 100000)
        if key in merged:
            merged[key].commands.extend(operation.commands)
        else:
            merged[key] = DrillOperation(
                operation.diameter, operation.hole_type, list(operation.commands)
            )
    return [merged[key] for key in sorted(merged)]


def split_by_hole_type(
    files: Sequence[DrillFile],
) -> tuple[DrillFile | None, DrillFile | None]:
    plated: list[DrillOperation] = []
    non_plated: list[DrillOperation] = []
    for drill_file in files:
        for operation in drill_file.operations:
            if operation.hole_type is HoleType.PLATED:
                plated.append(operation)
            else:
                non_plated.append(operation)

    plated_ops = merge_by_diameter(plated)
    non_plated_ops = merge_by_diameter(non_plated)
    return (
        DrillFile(plated_ops) if plated_ops else None,
        DrillFile(non_plated_ops) if non_plated_ops else None,
    )


def render_excellon(drill: DrillFile, hole_type: HoleType, header: DrillHeader) -> str:
    parts = [header(hole_type), "M48\n", "METRIC,LZ,0000.00000\n"]
    for number, operation in enumerate(drill.operations, start=1):
        parts.append(f";Hole size {number} = {operation.diameter:.5f} METRIC\n")
        parts.append(f"T{number:02d}C{operation.diameter:.5f}\n")
    parts.append("%\nG05\nG90\n")

    for number, operation in enumerate(drill.operations, start=1):
        parts.append(f"T{number:02d}\n")
        for command in operation.commands:
            match command:
                case Hole(x=x, y=y):
                    parts.append(f"X{x:.5f}Y{y:.5f}\n")
                case Slot(start_x=sx, start_y=sy, end_x=ex, end_y=ey):
                    parts.append(f"X{sx:.5f}Y{sy:.5f}G85X{ex:.5f}Y{ey:.5f}\n")

    parts.append("M30\n")
    return "".join(parts)


def process_drill_files(
    contents: Sequence[str],
    names: Sequence[str],
    header: DrillHeader,
) -> DrillOutput:
    """Merge drill files into one plated and one non-plated Excellon file.

    The first KiCad file of each hole type is converted on its own; every
    other file is parsed, pooled and merged by diameter. Pooled output takes
    precedence over the standalone KiCad conversion.
    """
    warnings: list[str] = []
    pooled: list[DrillFile] = []
    kicad_output: dict[HoleType, str] = {}

    for content, name in zip(contents, names):
        if not is_through_drill(name):
            warnings.append(
                f"Skipped blind/buried via file: {name}. JLC only supports through holes."
            )
            continue

        if detect_drill_origin(content) is DrillOrigin.KICAD:
            drill_file, hole_type = parse_kicad_excellon(content)
            if hole_type in kicad_output:
                pooled.append(drill_file)
            else:
                kicad_output[hole_type] = render_excellon(drill_file, hole_type, header)
        else:
            pooled.append(parse_altium_excellon(content))

    plated = kicad_output.get(HoleType.PLATED)
    non_plated = kicad_output.get(HoleType.NON_PLATED)
    if pooled:
        plated_file, non_plated_file = split_by_hole_type(pooled)
        if plated_file is not None:
            plated = render_excellon(plated_file, HoleType.PLATED, header)
        if non_plated_file is not None:
            non_plated = render_excellon(non_plated_file, HoleType.NON_PLATED, header)

    return DrillOutput(plated=plated, non_plated=non_plated, warnings=warnings)
