from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GERBERFLOW_",
        extra="ignore",
    )

    export_dir: Path = Path("data/exports")
    rename_rules_path: Path = Path("gerberflow/config/rename_rules.yaml")

    classification_excerpt_lines: int = Field(default=10, ge=1)
    classification_concurrency: int = Field(default=8, ge=1)
    progress_reset_delay_seconds: float = Field(default=0.5, ge=0.0)

    log_level: str = "INFO"
    log_file: Path | None = None

    gradio_server_name: str = "127.0.0.1"
    gradio_server_port: int = Field(default=7860, ge=1, le=65535)

    upload_max_entries: int = Field(
        default=500,
        ge=1,
        validation_alias=AliasChoices(
            "GERBERFLOW_UPLOAD_MAX_ENTRIES",
            "UPLOAD_MAX_ENTRIES",
        ),
    )
    upload_max_total_uncompressed_bytes: int = Field(
        default=256 * 1024 * 1024,
        ge=1,
        validation_alias=AliasChoices(
            "GERBERFLOW_UPLOAD_MAX_TOTAL_UNCOMPRESSED_BYTES",
            "UPLOAD_MAX_TOTAL_UNCOMPRESSED_BYTES",
        ),
    )
    upload_max_single_file_bytes: int = Field(
        default=64 * 1024 * 1024,
        ge=1,
        validation_alias=AliasChoices(
            "GERBERFLOW_UPLOAD_MAX_SINGLE_FILE_BYTES",
            "UPLOAD_MAX_SINGLE_FILE_BYTES",
        ),
    )
    upload_max_compression_ratio: float = Field(
        default=200.0,
        ge=1.0,
        validation_alias=AliasChoices(
            "GERBERFLOW_UPLOAD_MAX_COMPRESSION_RATIO",
            "UPLOAD_MAX_COMPRESSION_RATIO",
        ),
    )

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parents[2]

    @property
    def resolved_export_dir(self) -> Path:
        return self._resolve_path(self.export_dir)

    @property
    def resolved_rename_rules_path(self) -> Path:
        return self._resolve_path(self.rename_rules_path)

    def load_yaml(self, path: Path) -> dict[str, Any]:
        return load_yaml_file(path)

    @property
    def rename_rules(self) -> dict[str, Any]:
        return self.load_yaml(self.resolved_rename_rules_path)

    def _resolve_path(self, path: Path) -> Path:
        if path.is_absolute():
            return path
        return (self.project_root / path).resolve()


def load_yaml_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as file:
        data = yaml.safe_load(file) or {}

    if not isinstance(data, dict):
        raise ValueError(f"YAML config must contain object root: {path}")

    return data


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
