"""
Fact File Loader

Loads the class and processor facts written by the source extractor from
JSON fact files.

A fact file holds one JSON object::

    {"classes": [...ClassFact...], "processors": [...ProcessorFact...]}

A scan root is either a single fact file or a directory searched recursively
for ``*.facts.json``. Files are read in sorted path order so that duplicate
resolution is deterministic.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Union

from pydantic import BaseModel, Field, ValidationError

from behandling_flow.models.facts import ClassFact, ProcessorFact

logger = logging.getLogger(__name__)

FACT_FILE_PATTERN = "*.facts.json"


class FactFileError(ValueError):
    """Raised when a fact file is missing or malformed."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class FactFile(BaseModel):
    """Schema of one fact file."""

    classes: List[ClassFact] = Field(default_factory=list)
    processors: List[ProcessorFact] = Field(default_factory=list)


@dataclass
class FactSet:
    """Facts of one scan root in declaration order."""

    classes: List[ClassFact] = field(default_factory=list)
    processors: List[ProcessorFact] = field(default_factory=list)
    sources: List[Path] = field(default_factory=list)

    def extend(self, fact_file: FactFile, source: Path) -> None:
        self.classes.extend(fact_file.classes)
        self.processors.extend(fact_file.processors)
        self.sources.append(source)


def load_fact_file(path: Union[str, Path]) -> FactFile:
    """
    Load and validate one fact file.

    Args:
        path: Path to a JSON fact file

    Returns:
        Validated FactFile

    Raises:
        FactFileError: If the file cannot be read or does not match the schema
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise FactFileError(path, f"cannot read file ({e.strerror or e})") from e
    except json.JSONDecodeError as e:
        raise FactFileError(path, f"invalid JSON at line {e.lineno}: {e.msg}") from e

    if not isinstance(data, dict):
        raise FactFileError(path, "expected a JSON object with 'classes' and 'processors'")

    try:
        fact_file = FactFile.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise FactFileError(
            path, f"{e.error_count()} invalid entries, first at {location}: {first['msg']}"
        ) from e

    logger.debug(
        f"Loaded {len(fact_file.classes)} classes and {len(fact_file.processors)} "
        f"processors from {path}"
    )
    return fact_file


def discover_fact_files(root: Union[str, Path]) -> List[Path]:
    """
    List the fact files of a scan root.

    Args:
        root: A fact file or a directory

    Returns:
        ``[root]`` for a file, otherwise every ``*.facts.json`` below the
        directory in sorted order

    Raises:
        FactFileError: If the root does not exist
    """
    root = Path(root)
    if root.is_file():
        return [root]
    if not root.is_dir():
        raise FactFileError(root, "no such file or directory")

    files = sorted(p for p in root.rglob(FACT_FILE_PATTERN) if p.is_file())
    if not files:
        logger.warning(f"No {FACT_FILE_PATTERN} files found under {root}")
    return files


def load_facts(paths: Iterable[Union[str, Path]]) -> FactSet:
    """Load several fact files, concatenating their facts in the given order."""
    facts = FactSet()
    for path in paths:
        facts.extend(load_fact_file(path), Path(path))

    logger.info(
        f"Loaded {len(facts.classes)} classes and {len(facts.processors)} processors "
        f"from {len(facts.sources)} fact files"
    )
    return facts


__all__ = [
    "FACT_FILE_PATTERN",
    "FactFileError",
    "FactFile",
    "FactSet",
    "load_fact_file",
    "discover_fact_files",
    "load_facts",
]
