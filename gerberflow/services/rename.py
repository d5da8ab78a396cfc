from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from gerberflow.config.settings import load_yaml_file
from gerberflow.pipeline.models import MappingVariant

DEFAULT_RULES_PATH = Path(__file__).resolve().parents[1] / "config" / "rename_rules.yaml"


@dataclass(frozen=True, slots=True)
class RenameRule:
    logical_name: str
    pattern: re.Pattern[str]


class RenameRules:
    """Ordered per-variant rules mapping exported filenames to canonical names."""

    def __init__(
        self,
        variants: dict[MappingVariant, list[RenameRule]],
        final_filenames: dict[str, str],
    ) -> None:
        self._variants = variants
        self._final_filenames = final_filenames

    @classmethod
    def from_config(cls, payload: dict[str, Any]) -> RenameRules:
        raw_variants = payload.get("variants")
        if not isinstance(raw_variants, dict):
            raise ValueError("Rename rules must define a 'variants' mapping")

        variants: dict[MappingVariant, list[RenameRule]] = {}
        for variant in MappingVariant:
            entries = raw_variants.get(variant.value)
            if not isinstance(entries, list):
                raise ValueError(f"Rename rules missing variant: {variant.value}")
            variants[variant] = [
                RenameRule(
                    logical_name=str(entry["logical"]),
                    pattern=re.compile(str(entry["pattern"]), re.IGNORECASE),
                )
                for entry in entries
            ]

        final_filenames = payload.get("final_filenames") or {}
        if not isinstance(final_filenames, dict):
            raise ValueError("'final_filenames' must be a mapping")

        return cls(
            variants=variants,
            final_filenames={str(k): str(v) for k, v in final_filenames.items()},
        )

    @classmethod
    def from_file(cls, path: Path | None = None) -> RenameRules:
        return cls.from_config(load_yaml_file(path or DEFAULT_RULES_PATH))

    def final_filename(self, logical_name: str) -> str:
        return self._final_filenames.get(logical_name, f"{logical_name}.gbr")

    def map_filenames(
        self, names: Sequence[str], variant: MappingVariant
    ) -> dict[str, str]:
        rules = self._variants[variant]
        mapping: dict[str, str] = {}
        for name in names:
            new_name = name
            for rule in rules:
                if rule.pattern.search(name):
                    new_name = self.final_filename(rule.logical_name)
                    break
            mapping[name] = new_name
        return mapping
