"""
Reading schema definitions from the filesystem.

Each file holds one ``FirestoreSchema``; its stem is the schema name, so
``schemas/users.json`` defines schema ``users``.
"""

from __future__ import annotations

import glob
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List

import yaml
from pydantic import ValidationError

from FirestoreViews.errors import SchemaLoadError
from FirestoreViews.schema.model import FirestoreSchema

logger = logging.getLogger(__name__)

SCHEMA_SUFFIXES = (".json", ".yaml", ".yml")


def expand_schema_paths(patterns: Iterable[str]) -> List[Path]:
    """Resolve globbed file/directory patterns to schema files, in order.

    Directories contribute their schema files (not recursively), sorted by
    name. A path matched twice is only returned once.
    """
    files: List[Path] = []
    for pattern in patterns:
        pattern = pattern.strip()
        if not pattern:
            continue
        expanded = str(Path(pattern).expanduser())
        matches = sorted(glob.glob(expanded, recursive=True)) or [expanded]
        for match in matches:
            path = Path(match)
            if path.is_dir():
                candidates = sorted(
                    p for p in path.iterdir() if p.is_file() and p.suffix.lower() in SCHEMA_SUFFIXES
                )
            elif path.is_file():
                candidates = [path]
            else:
                logger.warning("No schema files match %s", pattern)
                continue
            for candidate in candidates:
                resolved = candidate.resolve()
                if resolved not in files:
                    files.append(resolved)
    return files


def load_schema_file(path: Path) -> FirestoreSchema:
    """Parse one schema file.

    Raises:
        SchemaLoadError: unreadable file, invalid JSON/YAML, or a document
            that does not describe a schema
    """
    schema_name = path.stem
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() in (".yaml", ".yml"):
            raw = yaml.safe_load(text)
        else:
            raw = json.loads(text)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise SchemaLoadError(f"Cannot read schema file {path}: {e}", schema_name=schema_name) from e

    try:
        return FirestoreSchema.model_validate(raw)
    except ValidationError as e:
        raise SchemaLoadError(
            f"Schema file {path} is not a valid schema: {e}", schema_name=schema_name
        ) from e


def read_schemas(patterns: Iterable[str]) -> Dict[str, FirestoreSchema]:
    """Load every schema matched by ``patterns``, keyed by schema name.

    A later file with the same stem replaces an earlier one.
    """
    schemas: Dict[str, FirestoreSchema] = {}
    for path in expand_schema_paths(patterns):
        name = path.stem
        if name in schemas:
            logger.warning("Schema %s redefined by %s", name, path)
        schemas[name] = load_schema_file(path)
        logger.debug("Loaded schema %s from %s", name, path)
    return schemas


__all__ = ["SCHEMA_SUFFIXES", "expand_schema_paths", "load_schema_file", "read_schemas"]
