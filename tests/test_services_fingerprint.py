from __future__ import annotations

import random

from gerberflow.services.fingerprint import (
    add_fingerprint,
    hashed_dimension,
    renumber_apertures,
)


def _gerber(aperture_count: int) -> str:
    lines = ["G04 header*", "%FSLAX46Y46*%", "%MOMM*%"]
    lines += [f"%ADD{10 + index}C,0.{index + 1}00*%" for index in range(aperture_count)]
    lines += ["%LPD*%", "G54D10*", "X0Y0D03*", f"G54D{10 + aperture_count - 1}*", "M02*"]
    return "\n".join(lines)


def test_too_few_apertures_leave_content_unchanged() -> None:
    text = _gerber(5)

    assert add_fingerprint(text, False, random.Random(1)) == text


def test_fingerprint_inserts_one_new_aperture() -> None:
    text = _gerber(8)

    result = add_fingerprint(text, False, random.Random(3))

    definitions = [line for line in result.split("\n") if line.startswith("%ADD")]
    assert len(definitions) == 9
    ids = [int(line[4:6]) for line in definitions]
    assert ids == list(range(10, 19))
    # Selected aperture references above the inserted id were shifted.
    assert "G54D18*" in result
    assert "G54D10*" in result


def test_renumber_shifts_ids_at_or_above_threshold() -> None:
    text = "%ADD10C,0.1*%\n%ADD15C,0.2*%\nG54D15*\nG54D12*\nD15*"

    assert renumber_apertures(text, 12) == (
        "%ADD10C,0.1*%\n%ADD16C,0.2*%\nG54D16*\nG54D13*\nD15*"
    )


def test_hashed_dimension_suffix_depends_on_foreign_flag() -> None:
    local = hashed_dimension("content", foreign=False, rng=random.Random(5))
    foreign = hashed_dimension("content", foreign=True, rng=random.Random(5))

    assert len(local) == 6
    assert local[:4] == foreign[:4]
    assert float(local) > 0
