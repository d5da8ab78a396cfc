from __future__ import annotations

import asyncio
import logging

import pytest

from gerberflow.pipeline.models import ProcessedFile
from gerberflow.pipeline.validation_gate import ValidationGate
from gerberflow.services.base import ValidationReport
from gerberflow.utils.error_taxonomy import GerberValidationError
from tests.fakes import FakeFabricationServices


def test_gate_returns_layer_count_and_logs_warnings(caplog) -> None:
    services = FakeFabricationServices(
        report=ValidationReport(valid=True, warnings=["no silkscreen"], layer_count=4)
    )
    processed = [ProcessedFile("a", "Gerber_TopLayer.GTL", "x")]

    with caplog.at_level(logging.WARNING, logger="gerberflow"):
        layer_count = asyncio.run(ValidationGate(services=services).check(processed))

    assert layer_count == 4
    assert services.validate_calls == [["Gerber_TopLayer.GTL"]]
    assert "no silkscreen" in caplog.text


def test_gate_raises_with_every_error() -> None:
    services = FakeFabricationServices(
        report=ValidationReport(valid=False, errors=["first error", "second error"])
    )

    with pytest.raises(GerberValidationError) as error_info:
        asyncio.run(ValidationGate(services=services).check([]))

    assert error_info.value.errors == ["first error", "second error"]
    assert str(error_info.value).endswith("first error\nsecond error")
