from __future__ import annotations

import asyncio

import pytest

from gerberflow.pipeline.models import (
    MappingVariant,
    OriginTag,
    is_supported,
    mapping_variant_for,
    tool_suffix,
    uses_altium_dcodes,
)
from tests.fakes import make_file


def test_tool_suffix_table() -> None:
    assert tool_suffix(OriginTag.ALTIUM) == "AD"
    assert tool_suffix(OriginTag.KICAD) == "Ki"
    assert tool_suffix(OriginTag.EASYEDA) == "ED"
    with pytest.raises(ValueError):
        tool_suffix(OriginTag.NONE)


def test_easyeda_reuses_altium_mapping_variant() -> None:
    assert mapping_variant_for(OriginTag.ALTIUM) is MappingVariant.ALTIUM
    assert mapping_variant_for(OriginTag.EASYEDA) is MappingVariant.ALTIUM
    assert mapping_variant_for(OriginTag.KICAD) is MappingVariant.KICAD
    with pytest.raises(ValueError):
        mapping_variant_for(OriginTag.NONE)


def test_dcode_convention_per_tool() -> None:
    assert uses_altium_dcodes(OriginTag.ALTIUM) is True
    assert uses_altium_dcodes(OriginTag.EASYEDA) is True
    assert uses_altium_dcodes(OriginTag.KICAD) is False


def test_supported_tools_exclude_none() -> None:
    assert is_supported(OriginTag.KICAD) is True
    assert is_supported(OriginTag.NONE) is False
    assert is_supported(None) is False


def test_source_file_reads_and_classifies_once() -> None:
    source = make_file("top.gtl", "G04 Altium*")

    assert asyncio.run(source.read()) == "G04 Altium*"

    tagged = source.with_classification(OriginTag.ALTIUM)
    assert tagged.classification is OriginTag.ALTIUM
    assert source.classification is None
    with pytest.raises(ValueError, match="already classified"):
        tagged.with_classification(OriginTag.KICAD)
