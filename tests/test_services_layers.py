from __future__ import annotations

from gerberflow.services.layers import validate_gerber_files

FULL_TWO_LAYER = [
    "Gerber_BoardOutlineLayer.GKO",
    "Gerber_TopLayer.GTL",
    "Gerber_TopSolderMaskLayer.GTS",
    "Gerber_TopSilkscreenLayer.GTO",
    "Gerber_TopPasteMaskLayer.GTP",
    "Gerber_BottomLayer.GBL",
    "Gerber_BottomSolderMaskLayer.GBS",
    "Gerber_BottomSilkscreenLayer.GBO",
    "Gerber_BottomPasteMaskLayer.GBP",
]


def test_complete_two_layer_board_is_valid() -> None:
    report = validate_gerber_files(FULL_TWO_LAYER)

    assert report.valid is True
    assert report.errors == []
    assert report.warnings == []
    assert report.layer_count == 2


def test_inner_layers_add_to_layer_count() -> None:
    names = FULL_TWO_LAYER + ["Gerber_InnerLayer1.G1", "Gerber_InnerLayer2.G2"]

    assert validate_gerber_files(names).layer_count == 4


def test_missing_required_layers_are_errors() -> None:
    report = validate_gerber_files(["Gerber_BottomLayer.GBL", "notes.txt"])

    assert report.valid is False
    assert report.errors == [
        "Missing required file starting with: 'Gerber_BoardOutlineLayer'",
        "Missing required file starting with: 'Gerber_TopLayer'",
        "Missing required file starting with: 'Gerber_TopSolderMaskLayer'",
        "Bottom copper layer is present, but 'Gerber_BottomSolderMaskLayer' is missing.",
    ]


def test_missing_silkscreen_and_paste_are_warnings() -> None:
    names = [
        "Gerber_BoardOutlineLayer.GKO",
        "Gerber_TopLayer.GTL",
        "Gerber_TopSolderMaskLayer.GTS",
    ]

    report = validate_gerber_files(names)

    assert report.valid is True
    assert report.layer_count == 1
    assert len(report.warnings) == 2
    assert "Gerber_TopSilkscreenLayer" in report.warnings[0]


def test_inner_layers_without_bottom_copper_are_invalid_stackup() -> None:
    names = [
        "Gerber_BoardOutlineLayer.GKO",
        "Gerber_TopLayer.GTL",
        "Gerber_TopSolderMaskLayer.GTS",
        "Gerber_InnerLayer1.G1",
    ]

    report = validate_gerber_files(names)

    assert report.valid is False
    assert report.errors[-1].startswith("Invalid layer stackup")
