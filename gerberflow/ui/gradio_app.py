from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Any, Callable

import gradio as gr

from gerberflow.config.settings import Settings, get_settings
from gerberflow.pipeline.export import write_export_archive
from gerberflow.pipeline.models import OriginTag, WorkflowState
from gerberflow.pipeline.orchestrator import WorkflowOrchestrator
from gerberflow.services.local import LocalFabricationServices
from gerberflow.services.rename import RenameRules
from gerberflow.storage.zip_export import ZipExportError
from gerberflow.utils.error_taxonomy import ERROR_FRIENDLY_MESSAGES
from gerberflow.utils.logging import setup_logging

OrchestratorFactory = Callable[[], WorkflowOrchestrator]

FILE_TABLE_HEADERS = ["File", "Detected tool"]
EXPORT_TABLE_HEADERS = ["Source", "Export name", "Size (bytes)"]


def make_orchestrator(settings: Settings | None = None) -> WorkflowOrchestrator:
    active_settings = settings or get_settings()
    services = LocalFabricationServices(
        rename_rules=RenameRules.from_config(active_settings.rename_rules)
    )
    return WorkflowOrchestrator(services=services, settings=active_settings)


def file_rows(state: WorkflowState) -> list[list[str]]:
    return [
        [
            source.name,
            source.classification.value if source.classification else "analyzing...",
        ]
        for source in state.files
    ]


def export_rows(state: WorkflowState) -> list[list[Any]]:
    return [
        [item.original_name, item.export_name, len(item.content.encode("utf-8"))]
        for item in state.processed
    ]


def tool_badges(state: WorkflowState) -> str:
    counts = Counter(
        source.classification for source in state.files if source.classification
    )
    if not counts:
        return ""
    parts = [
        f"**{tag.value}**: {counts[tag]}" for tag in OriginTag if counts.get(tag)
    ]
    return " | ".join(parts)


def drain_alerts(orchestrator: WorkflowOrchestrator) -> str:
    messages = [alert.message for alert in orchestrator.alerts]
    orchestrator.alerts.clear()
    return "\n\n".join(messages)


async def upload_and_analyze(
    *,
    orchestrator: WorkflowOrchestrator,
    archive_path: str | None,
) -> tuple[str, list[list[str]], str, str]:
    if not archive_path:
        return "No archive selected.", [], "", ""

    path = Path(archive_path)
    try:
        data = path.read_bytes()
    except OSError as error:
        return f"Upload failed: {error}", [], "", ""

    if not orchestrator.load_archive(data, path.name):
        return (
            ERROR_FRIENDLY_MESSAGES["ARCHIVE_INVALID"],
            [],
            "",
            drain_alerts(orchestrator),
        )

    await orchestrator.analyze()
    state = orchestrator.state
    status = f"Loaded {len(state.files)} files from {state.archive_name}."
    return status, file_rows(state), tool_badges(state), drain_alerts(orchestrator)


async def process_batch(
    *,
    orchestrator: WorkflowOrchestrator,
) -> tuple[str, list[list[Any]], str]:
    outcome = await orchestrator.process()
    alerts = drain_alerts(orchestrator)
    state = orchestrator.state
    if outcome is None:
        if alerts:
            return "Processing failed.", export_rows(state), alerts
        return "Nothing to process yet.", export_rows(state), ""

    archive_name = orchestrator.assembler.archive_name(state) or ""
    status = (
        f"Processed {outcome.processed_count} files as {outcome.primary_tool.value} "
        f"({outcome.layer_count} layers). Download: {archive_name}"
    )
    return status, export_rows(state), alerts


async def copy_file_to_export(
    *,
    orchestrator: WorkflowOrchestrator,
    file_name: str | None,
) -> tuple[str, list[list[Any]], str]:
    if not file_name:
        return "Select a file to copy.", export_rows(orchestrator.state), ""

    copied = await orchestrator.copy_to_export(file_name)
    status = f"Copied {file_name} into the export set." if copied else "Copy failed."
    return status, export_rows(orchestrator.state), drain_alerts(orchestrator)


def remove_file_from_export(
    *,
    orchestrator: WorkflowOrchestrator,
    original_name: str | None,
) -> tuple[str, list[list[Any]]]:
    if not original_name:
        return "Select an entry to remove.", export_rows(orchestrator.state)

    orchestrator.remove_from_export(original_name)
    return f"Removed {original_name}.", export_rows(orchestrator.state)


def download_export(
    *,
    orchestrator: WorkflowOrchestrator,
    output_dir: Path,
) -> tuple[str, str | None]:
    try:
        archive = orchestrator.build_download()
    except ZipExportError as error:
        return f"{ERROR_FRIENDLY_MESSAGES['EXPORT_FAILED']} {error}", None
    if archive is None:
        return "Nothing to download yet.", None

    try:
        path = write_export_archive(archive, output_dir)
    except (ZipExportError, OSError) as error:
        return f"{ERROR_FRIENDLY_MESSAGES['EXPORT_FAILED']} {error}", None
    return f"Export ready: {archive.name}", str(path)


def build_app(
    orchestrator_factory: OrchestratorFactory | None = None,
    settings: Settings | None = None,
) -> gr.Blocks:
    active_settings = settings or get_settings()
    factory = orchestrator_factory or (lambda: make_orchestrator(active_settings))
    output_dir = active_settings.resolved_export_dir

    def _session(current: WorkflowOrchestrator | None) -> WorkflowOrchestrator:
        return current if current is not None else factory()

    async def _on_upload(current, archive_path):
        orchestrator = _session(current)
        status, rows, badges, alerts = await upload_and_analyze(
            orchestrator=orchestrator, archive_path=archive_path
        )
        names = [row[0] for row in rows]
        return (
            orchestrator,
            status,
            rows,
            badges,
            alerts,
            gr.update(choices=names, value=None),
            [],
            gr.update(choices=[], value=None),
        )

    async def _on_process(current):
        orchestrator = _session(current)
        status, rows, alerts = await process_batch(orchestrator=orchestrator)
        return orchestrator, status, rows, alerts, _export_choices(rows)

    async def _on_copy(current, file_name):
        orchestrator = _session(current)
        status, rows, alerts = await copy_file_to_export(
            orchestrator=orchestrator, file_name=file_name
        )
        return orchestrator, status, rows, alerts, _export_choices(rows)

    def _on_remove(current, original_name):
        orchestrator = _session(current)
        status, rows = remove_file_from_export(
            orchestrator=orchestrator, original_name=original_name
        )
        return orchestrator, status, rows, _export_choices(rows)

    def _on_download(current):
        orchestrator = _session(current)
        status, path = download_export(orchestrator=orchestrator, output_dir=output_dir)
        return orchestrator, status, path

    with gr.Blocks(title="Gerber Flow") as app:
        gr.Markdown("# Gerber Flow")
        gr.Markdown(
            "Upload a zipped Gerber export from Altium, KiCad or EasyEDA, "
            "process it and download a fabrication-ready package."
        )
        session_state = gr.State(value=None)

        with gr.Row():
            archive_file = gr.File(
                label="Gerber ZIP", file_types=[".zip"], type="filepath"
            )
        with gr.Row():
            status_box = gr.Textbox(label="Status", interactive=False)
            alert_box = gr.Textbox(label="Alerts", lines=4, interactive=False)
        badges_box = gr.Markdown()
        files_table = gr.Dataframe(
            headers=FILE_TABLE_HEADERS, label="Uploaded files", interactive=False
        )

        with gr.Row():
            process_button = gr.Button("Process", variant="primary")
            download_button = gr.Button("Download ZIP")

        export_table = gr.Dataframe(
            headers=EXPORT_TABLE_HEADERS, label="Export preview", interactive=False
        )
        with gr.Row():
            copy_selector = gr.Dropdown(label="Raw file to copy", choices=[])
            copy_button = gr.Button("Copy into export")
        with gr.Row():
            remove_selector = gr.Dropdown(label="Export entry to remove", choices=[])
            remove_button = gr.Button("Remove from export")
        download_file = gr.File(label="Download", interactive=False)

        archive_file.upload(
            fn=_on_upload,
            inputs=[session_state, archive_file],
            outputs=[
                session_state,
                status_box,
                files_table,
                badges_box,
                alert_box,
                copy_selector,
                export_table,
                remove_selector,
            ],
        )
        process_button.click(
            fn=_on_process,
            inputs=[session_state],
            outputs=[session_state, status_box, export_table, alert_box, remove_selector],
        )
        copy_button.click(
            fn=_on_copy,
            inputs=[session_state, copy_selector],
            outputs=[session_state, status_box, export_table, alert_box, remove_selector],
        )
        remove_button.click(
            fn=_on_remove,
            inputs=[session_state, remove_selector],
            outputs=[session_state, status_box, export_table, remove_selector],
        )
        download_button.click(
            fn=_on_download,
            inputs=[session_state],
            outputs=[session_state, status_box, download_file],
        )

    return app


def _export_choices(rows: list[list[Any]]) -> Any:
    originals = list(dict.fromkeys(row[0] for row in rows))
    return gr.update(choices=originals, value=None)


def main() -> None:
    settings = get_settings()
    setup_logging(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        log_file=str(settings.log_file) if settings.log_file else None,
    )
    app = build_app(settings=settings)
    app.launch(
        server_name=settings.gradio_server_name,
        server_port=settings.gradio_server_port,
    )


if __name__ == "__main__":
    main()
