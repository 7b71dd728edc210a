"""
Config file models for multi-target generation
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from schemagen.documents import DocumentError, read_document
from schemagen.errors import ConfigInvalid

DEFAULT_CONFIG_NAMES = ("schemagen.yaml", "schemagen.yml", "schemagen.json")


class CommandSpec(BaseModel):
    """Shell command run after a target has been written"""

    model_config = ConfigDict(extra="forbid")

    command: str
    cwd: str | None = None  # None = process current directory

    @field_validator("command")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("command must be a non-empty string")
        return value


class TargetSpec(BaseModel):
    """One output file and the recipe that produces it"""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    module: str
    visitor: str | None = None
    if_not_exists: bool = Field(default=False, alias="ifNotExists")
    config: dict[str, Any] = Field(default_factory=dict)
    run_after: list[CommandSpec] = Field(default_factory=list, alias="runAfter")

    @field_validator("config", mode="before")
    @classmethod
    def _none_config(cls, value: Any) -> Any:  # noqa: ANN401
        return {} if value is None else value

    @field_validator("run_after", mode="before")
    @classmethod
    def _coerce_commands(cls, value: Any) -> Any:  # noqa: ANN401
        # Bare strings are shorthand for {command: <string>}
        if value is None:
            return []
        if isinstance(value, (str, dict)):
            value = [value]
        if isinstance(value, list):
            return [{"command": item} if isinstance(item, str) else item for item in value]
        return value

    @model_validator(mode="after")
    def _split_export(self) -> "TargetSpec":
        """Accept `module: path/to/gen.py:Export` when `visitor` is omitted."""
        if self.visitor:
            return self
        module, sep, export = self.module.rpartition(":")
        # Guard against Windows drive letters ("C:\\gen.py")
        if not sep or not export or not module or "/" in export or "\\" in export:
            raise ValueError(f"target module '{self.module}' needs a 'visitor' export name")
        self.module = module
        self.visitor = export
        return self

    @property
    def export_name(self) -> str:
        return self.visitor or ""


class GenerationConfig(BaseModel):
    """Config file root model"""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    schema_path: str = Field(alias="schema")
    parser: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    generates: dict[str, TargetSpec]
    fail_fast: bool = Field(default=False, alias="failFast")
    jobs: int = Field(default=1, ge=1)

    @field_validator("config", mode="before")
    @classmethod
    def _none_config(cls, value: Any) -> Any:  # noqa: ANN401
        return {} if value is None else value

    @field_validator("generates")
    @classmethod
    def _unique_destinations(cls, value: dict[str, TargetSpec]) -> dict[str, TargetSpec]:
        if not value:
            raise ValueError("'generates' must define at least one target")
        seen: dict[str, str] = {}
        for path in value:
            if not path.strip():
                raise ValueError("target path must be a non-empty string")
            normalized = os.path.normpath(path)
            if normalized in seen:
                raise ValueError(f"targets '{seen[normalized]}' and '{path}' write the same file")
            seen[normalized] = path
        return value


def find_config(directory: str | Path | None = None) -> Path:
    """Locate the conventional config file in a directory

    Raises:
        ConfigInvalid: No config file found
    """
    base = Path(directory) if directory is not None else Path.cwd()
    for name in DEFAULT_CONFIG_NAMES:
        candidate = base / name
        if candidate.exists():
            return candidate
    raise ConfigInvalid(f"No config file found in {base} (looked for {', '.join(DEFAULT_CONFIG_NAMES)})")


def parse_config(data: Any, source: str = "<config>") -> GenerationConfig:  # noqa: ANN401
    """Validate an already-parsed config document

    Raises:
        ConfigInvalid: Validation failed
    """
    if not isinstance(data, dict):
        raise ConfigInvalid(f"{source}: config document must be a mapping")
    try:
        return GenerationConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigInvalid(f"{source}: {exc}") from exc


def load_config(config_path: str | Path) -> GenerationConfig:
    """Load and validate config file

    Args:
        config_path: Path to YAML or JSON config

    Returns:
        GenerationConfig: Validated config

    Raises:
        ConfigInvalid: Missing file, syntax error, duplicate keys or schema violation
    """
    config_path = Path(config_path)
    try:
        data = read_document(config_path)
    except FileNotFoundError as exc:
        raise ConfigInvalid(f"Config file not found: {config_path}") from exc
    except DocumentError as exc:
        raise ConfigInvalid(f"{config_path}: {exc}") from exc

    return parse_config(data, str(config_path))
