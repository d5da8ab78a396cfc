from __future__ import annotations

import asyncio

import pytest

from gerberflow.pipeline.models import OriginTag
from gerberflow.pipeline.resolver import PrimaryToolResolver
from gerberflow.utils.error_taxonomy import UnsupportedPrimaryToolError
from tests.fakes import FakeFabricationServices, make_file


def test_first_file_in_canonical_order_determines_primary_tool() -> None:
    files = [
        make_file("notes.txt", classification=OriginTag.NONE),
        make_file("board-F_Cu.gbr", classification=OriginTag.KICAD),
    ]
    services = FakeFabricationServices(sort_order=["board-F_Cu.gbr", "notes.txt"])

    tool = asyncio.run(PrimaryToolResolver(services=services).resolve(files))

    assert tool is OriginTag.KICAD


def test_unsupported_primary_tag_raises_with_detected_tag() -> None:
    files = [
        make_file("notes.txt", classification=OriginTag.NONE),
        make_file("top.gtl", classification=OriginTag.ALTIUM),
    ]
    services = FakeFabricationServices()

    with pytest.raises(UnsupportedPrimaryToolError) as error_info:
        asyncio.run(PrimaryToolResolver(services=services).resolve(files))

    assert error_info.value.detected == "None"
    assert 'primary type detected was "None"' in str(error_info.value)


def test_empty_batch_is_unsupported() -> None:
    with pytest.raises(UnsupportedPrimaryToolError):
        asyncio.run(
            PrimaryToolResolver(services=FakeFabricationServices()).resolve([])
        )
