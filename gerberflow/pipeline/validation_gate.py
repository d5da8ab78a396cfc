from __future__ import annotations

import logging
from typing import Sequence

from gerberflow.pipeline.models import ProcessedFile
from gerberflow.services.base import FabricationServices
from gerberflow.utils.error_taxonomy import GerberValidationError

logger = logging.getLogger(__name__)


class ValidationGate:
    def __init__(self, *, services: FabricationServices) -> None:
        self.services = services

    async def check(self, processed: Sequence[ProcessedFile]) -> int:
        """Validate the export name set and return the detected layer count.

        Raises ``GerberValidationError`` carrying every reported error.
        """
        report = await self.services.validate([item.export_name for item in processed])
        if not report.valid:
            raise GerberValidationError(report.errors)

        for warning in report.warnings:
            logger.warning("Validation warning: %s", warning)
        return report.layer_count
