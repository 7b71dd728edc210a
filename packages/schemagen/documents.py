"""
YAML/JSON document reading with duplicate-key detection
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml


class DocumentError(ValueError):
    """Document is unreadable, malformed or contains duplicate mapping keys"""

    pass


class UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects duplicate keys instead of keeping the last one"""

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        seen: set[Any] = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            try:
                duplicate = key in seen
            except TypeError:
                continue
            if duplicate:
                mark = key_node.start_mark
                raise DocumentError(f"duplicate key '{key}' (line {mark.line + 1}, column {mark.column + 1})")
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _reject_duplicate_pairs(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise DocumentError(f"duplicate key '{key}'")
        result[key] = value
    return result


YAML_SUFFIXES = {".yaml", ".yml"}
JSON_SUFFIXES = {".json"}


def read_document(path: str | Path) -> Any:  # noqa: ANN401
    """Read a YAML or JSON document chosen by file suffix

    Args:
        path: Document path

    Returns:
        Parsed document

    Raises:
        FileNotFoundError: Document does not exist
        DocumentError: Unsupported suffix, syntax error or duplicate keys
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suffix = path.suffix.lower()
    with open(path, encoding="utf-8") as f:
        if suffix in YAML_SUFFIXES:
            try:
                return yaml.load(f, Loader=UniqueKeyLoader)  # noqa: S506
            except yaml.YAMLError as exc:
                raise DocumentError(f"{path}: invalid YAML: {exc}") from exc
        if suffix in JSON_SUFFIXES:
            try:
                return json.load(f, object_pairs_hook=_reject_duplicate_pairs)
            except json.JSONDecodeError as exc:
                raise DocumentError(f"{path}: invalid JSON: {exc}") from exc

    raise DocumentError(f"Unsupported document format: {path.suffix or '<none>'}")
