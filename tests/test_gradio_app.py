from __future__ import annotations

import asyncio
import io
from pathlib import Path
from zipfile import ZipFile

import gradio as gr

from gerberflow.config.settings import Settings
from gerberflow.pipeline.models import MappingVariant, OriginTag
from gerberflow.pipeline.orchestrator import WorkflowOrchestrator
from gerberflow.ui.gradio_app import (
    build_app,
    copy_file_to_export,
    download_export,
    make_orchestrator,
    process_batch,
    remove_file_from_export,
    tool_badges,
    upload_and_analyze,
)
from tests.fakes import FakeFabricationServices


def _settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        progress_reset_delay_seconds=0,
        export_dir=tmp_path / "exports",
    )


def _orchestrator(tmp_path: Path) -> WorkflowOrchestrator:
    services = FakeFabricationServices(
        origins={"Altium": OriginTag.ALTIUM, "KiCad": OriginTag.KICAD},
        rename_map={"top.GTL": "Gerber_TopLayer.GTL"},
    )
    return WorkflowOrchestrator(services=services, settings=_settings(tmp_path))


def _upload(tmp_path: Path, entries: dict[str, str], name: str = "board.zip") -> str:
    path = tmp_path / name
    buffer = io.BytesIO()
    with ZipFile(buffer, "w") as archive:
        for entry, content in entries.items():
            archive.writestr(entry, content)
    path.write_bytes(buffer.getvalue())
    return str(path)


def test_full_session_from_upload_to_download(tmp_path: Path) -> None:
    orchestrator = _orchestrator(tmp_path)
    archive_path = _upload(
        tmp_path,
        {"top.GTL": "G04 Altium*", "bottom.GBL": "G04 Altium*", "note.txt": "KiCad"},
    )

    status, rows, badges, alerts = asyncio.run(
        upload_and_analyze(orchestrator=orchestrator, archive_path=archive_path)
    )
    assert status == "Loaded 3 files from board.zip."
    assert rows == [
        ["top.GTL", "Altium"],
        ["bottom.GBL", "Altium"],
        ["note.txt", "KiCad"],
    ]
    assert badges == "**Altium**: 2 | **KiCad**: 1"
    assert alerts == ""

    status, export_rows, alerts = asyncio.run(process_batch(orchestrator=orchestrator))
    assert status.startswith("Processed 4 files as Altium (2 layers).")
    assert status.endswith("board-AD-L2.zip")
    assert [row[1] for row in export_rows][0] == "Gerber_TopLayer.GTL"

    status, export_rows, alerts = asyncio.run(
        copy_file_to_export(orchestrator=orchestrator, file_name="top.GTL")
    )
    assert status == "Copied top.GTL into the export set."
    assert len(export_rows) == 4

    status, export_rows = remove_file_from_export(
        orchestrator=orchestrator, original_name="note.txt"
    )
    assert "note.txt" not in [row[0] for row in export_rows]

    status, path = download_export(
        orchestrator=orchestrator, output_dir=tmp_path / "exports"
    )
    assert status == "Export ready: board-AD-L2.zip"
    assert path is not None
    assert Path(path).is_file()


def test_invalid_upload_reports_alert(tmp_path: Path) -> None:
    orchestrator = _orchestrator(tmp_path)
    archive_path = _upload(tmp_path, {"only.GTL": "x"})

    status, rows, badges, alerts = asyncio.run(
        upload_and_analyze(orchestrator=orchestrator, archive_path=archive_path)
    )

    assert status.startswith("Uploaded archive is invalid.")
    assert rows == []
    assert "at least two Gerber files" in alerts


def test_process_without_batch_and_download_without_result(tmp_path: Path) -> None:
    orchestrator = _orchestrator(tmp_path)

    status, rows, alerts = asyncio.run(process_batch(orchestrator=orchestrator))
    assert status == "Nothing to process yet."
    assert rows == []

    status, path = download_export(orchestrator=orchestrator, output_dir=tmp_path)
    assert status == "Nothing to download yet."
    assert path is None


def test_tool_badges_empty_without_classifications(tmp_path: Path) -> None:
    assert tool_badges(_orchestrator(tmp_path).state) == ""


def test_build_app_returns_blocks(tmp_path: Path) -> None:
    app = build_app(
        orchestrator_factory=lambda: _orchestrator(tmp_path),
        settings=_settings(tmp_path),
    )

    assert isinstance(app, gr.Blocks)


def test_make_orchestrator_uses_configured_rename_rules(tmp_path: Path) -> None:
    rules_path = tmp_path / "rules.yaml"
    rules_path.write_text(
        "variants:\n"
        "  altium:\n"
        "    - {logical: Gerber_TopLayer, pattern: '\\.top$'}\n"
        "  kicad: []\n"
        "final_filenames:\n"
        "  Gerber_TopLayer: Custom_Top.GTL\n",
        encoding="utf-8",
    )
    settings = Settings(_env_file=None, rename_rules_path=rules_path)

    orchestrator = make_orchestrator(settings)
    mapping = asyncio.run(
        orchestrator.services.filename_map(["board.top"], MappingVariant.ALTIUM)
    )

    assert mapping == {"board.top": "Custom_Top.GTL"}
