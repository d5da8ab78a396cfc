from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from gerberflow.config.settings import Settings, get_settings
from gerberflow.pipeline.classifier import FileClassifier
from gerberflow.pipeline.export import ExportArchive, ExportAssembler
from gerberflow.pipeline.models import OriginTag, SourceFile, WorkflowState
from gerberflow.pipeline.overrides import ManualOverrideLayer
from gerberflow.pipeline.resolver import PrimaryToolResolver
from gerberflow.pipeline.store import WorkflowStore
from gerberflow.pipeline.transform import TransformationPipeline
from gerberflow.pipeline.validation_gate import ValidationGate
from gerberflow.services.base import FabricationServices
from gerberflow.storage.archive import UploadSafetyLimits, read_upload_archive
from gerberflow.utils.error_taxonomy import (
    ArchiveReadError,
    ErrorCode,
    GerberValidationError,
    ManualCopyError,
    UnsupportedPrimaryToolError,
    build_error_details,
    classify_workflow_error,
)
from gerberflow.utils.logging import restore_log_context, set_log_context

logger = logging.getLogger(__name__)

AlertSink = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class Alert:
    code: ErrorCode
    message: str


@dataclass(frozen=True, slots=True)
class ProcessOutcome:
    primary_tool: OriginTag
    layer_count: int
    processed_count: int
    warnings: list[str] = field(default_factory=list)


def _log_alert(message: str) -> None:
    logger.error(message)


class WorkflowOrchestrator:
    """Sequences one upload session from batch load to download.

    ``process`` is single-flight: a trigger while a run is in flight, or
    before every file is classified, returns None without side effects.
    ``analyze`` calls are serialized, so an overlapping call only sees the
    files the earlier one left unclassified. Loading or resetting while a run
    is in flight starts a new batch generation and the stale run publishes
    nothing.
    """

    def __init__(
        self,
        *,
        services: FabricationServices,
        store: WorkflowStore | None = None,
        settings: Settings | None = None,
        alert_sink: AlertSink = _log_alert,
    ) -> None:
        self.settings = settings or get_settings()
        self.services = services
        self.store = store or WorkflowStore()
        self.alert_sink = alert_sink
        self.alerts: list[Alert] = []

        self.classifier = FileClassifier(
            store=self.store,
            services=services,
            excerpt_lines=self.settings.classification_excerpt_lines,
            concurrency=self.settings.classification_concurrency,
            progress_reset_delay=self.settings.progress_reset_delay_seconds,
        )
        self.resolver = PrimaryToolResolver(services=services)
        self.transformer = TransformationPipeline(store=self.store, services=services)
        self.gate = ValidationGate(services=services)
        self.assembler = ExportAssembler(services=services)
        self.overrides = ManualOverrideLayer(store=self.store)
        self._run_lock = asyncio.Lock()
        self._analyze_lock = asyncio.Lock()

    @property
    def state(self) -> WorkflowState:
        return self.store.state

    def load_archive(self, data: bytes, archive_name: str) -> bool:
        try:
            files = read_upload_archive(
                data,
                archive_name,
                UploadSafetyLimits.from_settings(self.settings),
            )
        except ArchiveReadError as error:
            self._alert(error)
            self.store.reset()
            return False

        self.load_files(files, archive_name)
        return True

    def load_files(self, files: Iterable[SourceFile], archive_name: str) -> None:
        self.alerts.clear()
        self.store.load_batch(files, archive_name)
        logger.info(
            "Loaded batch",
            extra={"batch": archive_name, "metrics": {"files": len(self.state.files)}},
        )

    def reset(self) -> None:
        self.alerts.clear()
        self.store.reset()

    async def analyze(self) -> None:
        async with self._analyze_lock:
            token = set_log_context(batch=self.state.archive_name, stage="classify")
            try:
                await self.classifier.run()
            finally:
                restore_log_context(token)

    async def process(self) -> ProcessOutcome | None:
        if self._run_lock.locked() or not self.state.can_process:
            return None

        async with self._run_lock:
            token = set_log_context(batch=self.state.archive_name, stage="process")
            try:
                return await self._process_locked()
            finally:
                restore_log_context(token)

    async def _process_locked(self) -> ProcessOutcome | None:
        generation = self.store.begin_run()
        files = self.state.files
        try:
            primary_tool = await self.resolver.resolve(files)
            outcome = await self.transformer.run(
                files, primary_tool, generation=generation
            )
            if self.store.is_current(generation):
                for warning in outcome.drill_warnings:
                    self._alert_message("DRILL_MERGE_WARNING", warning)
            layer_count = await self.gate.check(outcome.processed)
            processed = await self.assembler.with_guide(outcome.processed)
        except (UnsupportedPrimaryToolError, GerberValidationError) as error:
            if self.store.is_current(generation):
                self._alert(error)
            self.store.abort_run(generation=generation)
            return None
        except Exception:
            logger.exception("Processing run failed")
            self.store.abort_run(generation=generation)
            raise

        if not self.store.is_current(generation):
            logger.info("Batch replaced during processing, run discarded")
            return None

        self.store.complete_run(
            processed, primary_tool, layer_count, generation=generation
        )
        processed_count = len(self.state.processed)
        logger.info(
            "Processing run completed",
            extra={
                "metrics": {
                    "primary_tool": primary_tool.value,
                    "layer_count": layer_count,
                    "processed": processed_count,
                }
            },
        )
        delay = self.settings.progress_reset_delay_seconds
        if delay > 0:
            await asyncio.sleep(delay)
        self.store.set_progress(0, generation=generation)

        return ProcessOutcome(
            primary_tool=primary_tool,
            layer_count=layer_count,
            processed_count=processed_count,
            warnings=list(outcome.drill_warnings),
        )

    async def copy_to_export(self, name: str) -> bool:
        try:
            await self.overrides.copy_raw(name)
        except ManualCopyError as error:
            self._alert(error)
            return False
        return True

    def remove_from_export(self, original_name: str) -> None:
        self.overrides.remove(original_name)

    def build_download(self) -> ExportArchive | None:
        return self.assembler.build(self.state)

    def _alert(self, error: Exception) -> None:
        code = classify_workflow_error(error)
        logger.debug("Alert details: %s", build_error_details(error))
        self._alert_message(code, str(error))

    def _alert_message(self, code: ErrorCode, message: str) -> None:
        self.alerts.append(Alert(code=code, message=message))
        if code == "DRILL_MERGE_WARNING":
            logger.warning(message)
        self.alert_sink(message)

