"""Loading of extracted source facts."""

from behandling_flow.knowledge.loader import (
    FactFile,
    FactFileError,
    FactSet,
    discover_fact_files,
    load_fact_file,
    load_facts,
)

__all__ = [
    "FactFile",
    "FactFileError",
    "FactSet",
    "discover_fact_files",
    "load_fact_file",
    "load_facts",
]
