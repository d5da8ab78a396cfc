from __future__ import annotations

import logging

from gerberflow.pipeline.models import ProcessedFile
from gerberflow.pipeline.store import WorkflowStore
from gerberflow.utils.error_taxonomy import ManualCopyError

logger = logging.getLogger(__name__)


class ManualOverrideLayer:
    """Copy raw files into the export set or drop entries from it.

    Works at any point once a batch is loaded, including during a run.
    """

    def __init__(self, *, store: WorkflowStore) -> None:
        self.store = store

    async def copy_raw(self, name: str) -> ProcessedFile:
        generation = self.store.generation
        source = self.store.state.file(name)
        if source is None:
            raise ManualCopyError(name)

        try:
            content = await source.read()
        except Exception as error:
            raise ManualCopyError(name) from error

        # The rename map may have changed while the read was pending.
        export_name = self.store.state.rename_map.get(name, name)
        item = ProcessedFile(original_name=name, export_name=export_name, content=content)
        if not self.store.is_current(generation):
            logger.info("Batch replaced during copy, dropped", extra={"file": name})
            return item

        self.store.upsert_processed(item, generation=generation)
        logger.info("Copied raw file into export set", extra={"file": name})
        return item

    def remove(self, original_name: str) -> None:
        self.store.remove_processed(original_name)
