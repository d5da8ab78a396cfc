from __future__ import annotations

import asyncio
import logging

from gerberflow.pipeline.models import OriginTag, SourceFile
from gerberflow.pipeline.store import WorkflowStore
from gerberflow.services.base import FabricationServices
from gerberflow.utils.logging import restore_log_context, set_log_context

logger = logging.getLogger(__name__)


class FileClassifier:
    """Tags every unclassified file in the batch with the tool that produced it.

    A file whose content cannot be read or classified is tagged
    ``OriginTag.NONE``; the phase itself never fails.
    """

    def __init__(
        self,
        *,
        store: WorkflowStore,
        services: FabricationServices,
        excerpt_lines: int = 10,
        concurrency: int = 8,
        progress_reset_delay: float = 0.5,
    ) -> None:
        self.store = store
        self.services = services
        self.excerpt_lines = excerpt_lines
        self.concurrency = concurrency
        self.progress_reset_delay = progress_reset_delay

    async def run(self) -> None:
        state = self.store.state
        generation = state.generation
        total = len(state.files)
        if total == 0:
            return

        pending = [source for source in state.files if not source.is_classified]
        completed = total - len(pending)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _classify_one(source: SourceFile) -> None:
            nonlocal completed
            async with semaphore:
                tag = await self._classify(source)
            self.store.set_classification(source.name, tag, generation=generation)
            completed += 1
            self.store.set_progress(completed / total * 100, generation=generation)

        if pending:
            await asyncio.gather(*(_classify_one(source) for source in pending))

        if self.store.is_current(generation) and self.store.state.all_classified:
            self.store.mark_analysis_complete(generation=generation)
            if self.progress_reset_delay > 0:
                await asyncio.sleep(self.progress_reset_delay)
            self.store.set_progress(0, generation=generation)

    async def _classify(self, source: SourceFile) -> OriginTag:
        token = set_log_context(stage="classify", file=source.name)
        try:
            content = await source.read()
            excerpt = "\n".join(content.splitlines()[: self.excerpt_lines])
            tag = await self.services.origin_detect(excerpt)
        except Exception as error:  # noqa: BLE001
            logger.warning(
                "Classification failed, marking file as unrecognized: %s",
                error,
                extra={"file": source.name},
            )
            return OriginTag.NONE
        finally:
            restore_log_context(token)

        return tag if tag is not None else OriginTag.NONE
