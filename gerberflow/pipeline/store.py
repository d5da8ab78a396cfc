from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable, Mapping

from gerberflow.pipeline.models import (
    OriginTag,
    ProcessedFile,
    SourceFile,
    WorkflowMode,
    WorkflowState,
)

logger = logging.getLogger(__name__)

StateListener = Callable[[WorkflowState], None]


class WorkflowStore:
    """Session-scoped workflow state.

    Every mutation is one of the named transactions below. A transaction
    computes a complete new ``WorkflowState`` and swaps it in with a single
    assignment, so readers only ever see whole snapshots. Transactions never
    raise; inputs that do not apply to the current state are ignored.

    ``load_batch`` and ``reset`` start a new batch generation. Transactions
    that take a ``generation`` are dropped when it no longer matches, so work
    started against a replaced batch cannot write into its successor.
    """

    def __init__(self, state: WorkflowState | None = None) -> None:
        self._state = state or WorkflowState()
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def generation(self) -> int:
        return self._state.generation

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def is_current(self, generation: int | None) -> bool:
        return generation is None or generation == self._state.generation

    def load_batch(self, files: Iterable[SourceFile], archive_name: str) -> None:
        self._commit(
            WorkflowState(
                mode=WorkflowMode.PROCESS,
                archive_name=archive_name,
                files=tuple(files),
                generation=self._state.generation + 1,
            )
        )

    def reset(self) -> None:
        self._commit(WorkflowState(generation=self._state.generation + 1))

    def set_classification(
        self, name: str, tag: OriginTag, *, generation: int | None = None
    ) -> None:
        if not self.is_current(generation):
            return
        state = self._state
        files = []
        changed = False
        for source in state.files:
            if source.name == name and source.classification is None:
                source = source.with_classification(tag)
                changed = True
            files.append(source)
        if changed:
            self._commit(replace(state, files=tuple(files)))

    def mark_analysis_complete(self, *, generation: int | None = None) -> None:
        if self.is_current(generation) and self._state.all_classified:
            self._commit(replace(self._state, analysis_complete=True))

    def begin_run(self) -> int:
        """Mark a run as in flight and return the generation it belongs to."""
        self._commit(
            replace(
                self._state,
                is_processing=True,
                processed=(),
                progress=0.0,
                primary_tool=None,
                layer_count=None,
            )
        )
        return self._state.generation

    def set_rename_map(
        self, mapping: Mapping[str, str], *, generation: int | None = None
    ) -> None:
        if self.is_current(generation):
            self._commit(replace(self._state, rename_map=dict(mapping)))

    def complete_run(
        self,
        processed: Iterable[ProcessedFile],
        primary_tool: OriginTag | None,
        layer_count: int | None,
        *,
        generation: int | None = None,
    ) -> None:
        if not self.is_current(generation):
            return
        self._commit(
            replace(
                self._state,
                processed=_dedupe_by_export_name(processed),
                is_processing=False,
                primary_tool=primary_tool,
                layer_count=layer_count,
            )
        )

    def abort_run(self, *, generation: int | None = None) -> None:
        if not self.is_current(generation):
            return
        self._commit(
            replace(
                self._state,
                processed=(),
                is_processing=False,
                progress=0.0,
                primary_tool=None,
                layer_count=None,
            )
        )

    def set_progress(self, value: float, *, generation: int | None = None) -> None:
        if not self.is_current(generation):
            return
        clamped = min(max(float(value), 0.0), 100.0)
        self._commit(replace(self._state, progress=clamped))

    def upsert_processed(
        self, item: ProcessedFile, *, generation: int | None = None
    ) -> None:
        if not self.is_current(generation):
            return
        processed = list(self._state.processed)
        for index, existing in enumerate(processed):
            if existing.export_name == item.export_name:
                processed[index] = item
                break
        else:
            processed.append(item)
        self._commit(replace(self._state, processed=tuple(processed)))

    def remove_processed(self, original_name: str) -> None:
        processed = tuple(
            item for item in self._state.processed if item.original_name != original_name
        )
        if len(processed) != len(self._state.processed):
            self._commit(replace(self._state, processed=processed))

    def _commit(self, new_state: WorkflowState) -> None:
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:  # noqa: BLE001
                logger.exception("Workflow state listener failed")


def _dedupe_by_export_name(
    processed: Iterable[ProcessedFile],
) -> tuple[ProcessedFile, ...]:
    # Later entries replace earlier ones in place.
    ordered: dict[str, ProcessedFile] = {}
    for item in processed:
        ordered[item.export_name] = item
    return tuple(ordered.values())
