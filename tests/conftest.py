"""Pytest configuration for behandling-flow tests."""

import sys
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import pytest

# Add the project root to the path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

from behandling_flow.models.facts import ClassFact, ProcessorFact, Transition
from behandling_flow.stages.fact_index import FactIndex, build_fact_index

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ===========================
# Fact builders
# ===========================


def _to_transition(spec) -> Transition:
    """Accept a Transition, a target name or a (target, condition) pair."""
    if isinstance(spec, Transition):
        return spec
    if isinstance(spec, tuple):
        target, condition = spec
        return Transition(target_activity_name=target, condition=condition)
    return Transition(target_activity_name=spec)


def _make_processor(activity: str, transitions: Iterable = (), **kwargs) -> ProcessorFact:
    return ProcessorFact(
        processed_activity_name=activity,
        processor_name=kwargs.pop("processor_name", f"{activity}Processor"),
        transitions=[_to_transition(t) for t in transitions],
        **kwargs,
    )


def _make_index(
    processors: Sequence[ProcessorFact],
    classes: Optional[List[ClassFact]] = None,
    entry: Optional[str] = None,
    flow_name: str = "TestBehandling",
) -> FactIndex:
    if classes is None:
        first = entry or (processors[0].processed_activity_name if processors else "Start")
        classes = [
            ClassFact(
                name=flow_name,
                supertype_names=["Behandling"],
                initial_activity_name=first,
            )
        ]
    return build_fact_index(classes, processors)


@pytest.fixture
def make_processor():
    """Factory for ProcessorFact records."""
    return _make_processor


@pytest.fixture
def make_index():
    """Factory for a FactIndex with one entry class."""
    return _make_index


# ===========================
# Flow scenarios
# ===========================


@pytest.fixture
def waiting_flow_index() -> FactIndex:
    """Start -> Wait -> Check -> Done (ready) | Wait (not ready); Done has no processor."""
    return _make_index(
        [
            _make_processor("Start", ["Wait"]),
            _make_processor("Wait", ["Check"]),
            _make_processor("Check", [("Done", "ready"), ("Wait", "not ready")]),
        ],
        flow_name="StartBehandling",
    )


@pytest.fixture
def three_cycle_index() -> FactIndex:
    """A -> B -> C -> A."""
    return _make_index(
        [
            _make_processor("A", ["B"]),
            _make_processor("B", ["C"]),
            _make_processor("C", ["A"]),
        ]
    )


@pytest.fixture
def independent_cycles_index() -> FactIndex:
    """X <-> Y, then Y -> Z and Z <-> W: two cycles joined by a forward edge."""
    return _make_index(
        [
            _make_processor("X", ["Y"]),
            _make_processor("Y", [("X", "retry"), ("Z", "done")]),
            _make_processor("Z", ["W"]),
            _make_processor("W", [("Z", "again"), ("Slutt", "finished")]),
            _make_processor("Slutt", [], completes_flow=True),
        ]
    )


@pytest.fixture
def fan_out_index() -> FactIndex:
    """Split fans out to X, Y and Z; Y -> Y2 -> Y3 is a linear chain."""
    return _make_index(
        [
            _make_processor("Split", [Transition(fan_out_targets=["X", "Y", "Z"])]),
            _make_processor("Y", ["Y2"]),
            _make_processor("Y2", ["Y3"]),
            _make_processor("Y3", []),
        ],
        entry="Split",
    )


@pytest.fixture
def complex_cycles_file() -> Path:
    """Fact file with two retry loops sharing downstream activities."""
    return FIXTURES_DIR / "complex_cycles.facts.json"


@pytest.fixture
def manual_task_file() -> Path:
    """Fact file with a manual task, abort branch and feature-flagged transition."""
    return FIXTURES_DIR / "manual_task.facts.json"
