from __future__ import annotations

from typing import Sequence

from gerberflow.services.base import ValidationReport

REQUIRED_PREFIXES = (
    "Gerber_BoardOutlineLayer",
    "Gerber_TopLayer",
    "Gerber_TopSolderMaskLayer",
)


def validate_gerber_files(names: Sequence[str]) -> ValidationReport:
    """Check that a set of export names forms an orderable board.

    Missing required layers are errors; missing silkscreen or paste layers
    are only warnings.
    """
    errors: list[str] = []
    warnings: list[str] = []

    def has(prefix: str) -> bool:
        return any(name.startswith(prefix) for name in names)

    for prefix in REQUIRED_PREFIXES:
        if not has(prefix):
            errors.append(f"Missing required file starting with: '{prefix}'")

    has_top = has("Gerber_TopLayer")
    has_bottom = has("Gerber_BottomLayer")
    inner_count = sum(1 for name in names if name.startswith("Gerber_InnerLayer"))

    if has_top:
        if not has("Gerber_TopSolderMaskLayer") and not any(
            "Gerber_TopSolderMaskLayer" in error for error in errors
        ):
            errors.append(
                "Top copper layer is present, but the required "
                "'Gerber_TopSolderMaskLayer' is missing."
            )
        if not has("Gerber_TopSilkscreenLayer"):
            warnings.append(
                "Warning: 'Gerber_TopSilkscreenLayer' is missing for the top side."
            )
        if not has("Gerber_TopPasteMaskLayer"):
            warnings.append(
                "Warning: 'Gerber_TopPasteMaskLayer' is missing. "
                "This is usually needed for SMD components."
            )

    if has_bottom:
        if not has("Gerber_BottomSolderMaskLayer"):
            errors.append(
                "Bottom copper layer is present, but "
                "'Gerber_BottomSolderMaskLayer' is missing."
            )
        if not has("Gerber_BottomSilkscreenLayer"):
            warnings.append(
                "Warning: 'Gerber_BottomSilkscreenLayer' is missing for the bottom side."
            )
        if not has("Gerber_BottomPasteMaskLayer"):
            warnings.append(
                "Warning: 'Gerber_BottomPasteMaskLayer' is missing for the bottom side."
            )

    if has_top and inner_count > 0 and not has_bottom:
        errors.append(
            "Invalid layer stackup: A board with top and inner copper layers "
            "must also have a bottom copper layer."
        )

    if errors:
        return ValidationReport(valid=False, errors=errors, warnings=warnings)
    return ValidationReport(
        valid=True,
        warnings=warnings,
        layer_count=int(has_top) + int(has_bottom) + inner_count,
    )
