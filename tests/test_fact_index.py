"""
Tests for the fact index.

Tests:
- Lookup tables for classes and processors
- Last-wins resolution of duplicate facts and duplicate reporting
- Entry point selection and ordering
- Transitive supertype resolution
"""

import pytest

from behandling_flow.models.facts import ClassFact, ProcessorFact, Transition
from behandling_flow.stages.fact_index import build_fact_index


class TestLookups:
    """Test basic lookup behavior."""

    def test_processor_and_class_lookup(self, make_processor):
        """Test that facts are indexed by name and processed activity."""
        processor = make_processor("Start", ["Next"])
        index = build_fact_index([ClassFact(name="Start")], [processor])

        assert index.get_processor("Start") is processor
        assert index.get_class("Start").name == "Start"
        assert index.get_processor("Next") is None
        assert index.get_class("Next") is None

    def test_creates_manual_task(self, make_processor):
        """Test manual task lookup for known and unknown activities."""
        index = build_fact_index(
            [], [make_processor("Oppgave", [], creates_manual_task=True), make_processor("Plain", [])]
        )

        assert index.creates_manual_task("Oppgave")
        assert not index.creates_manual_task("Plain")
        assert not index.creates_manual_task("Unknown")


class TestDuplicates:
    """Test deterministic resolution of conflicting facts."""

    def test_later_processor_wins(self, make_processor):
        """Test that the later processor for the same activity overwrites the earlier one."""
        first = make_processor("Start", ["A"], processor_name="FirstProcessor")
        second = make_processor("Start", ["B"], processor_name="SecondProcessor")

        index = build_fact_index([], [first, second])

        assert index.get_processor("Start") is second
        assert len(index.duplicate_processors) == 1
        duplicate = index.duplicate_processors[0]
        assert duplicate.key == "Start"
        assert duplicate.replaced == "FirstProcessor"
        assert duplicate.kept == "SecondProcessor"
        assert "SecondProcessor" in duplicate.describe("Activity")

    def test_later_class_wins(self):
        """Test that duplicate class names are resolved last-wins and recorded."""
        first = ClassFact(name="Foo", source_location="a.kt:1")
        second = ClassFact(name="Foo", source_location="b.kt:1", initial_activity_name="Start")

        index = build_fact_index([first, second], [])

        assert index.get_class("Foo") is second
        assert index.duplicate_classes[0].replaced == "a.kt:1"
        assert index.duplicate_classes[0].kept == "b.kt:1"

    def test_no_duplicates_recorded_for_unique_facts(self, make_processor):
        """Test that unique facts produce no duplicate records."""
        index = build_fact_index([ClassFact(name="A")], [make_processor("A", [])])

        assert index.duplicate_classes == []
        assert index.duplicate_processors == []


class TestEntryPoints:
    """Test entry point selection."""

    @pytest.fixture
    def classes(self):
        return [
            ClassFact(name="ZetaBehandling", supertype_names=["Behandling"], initial_activity_name="Z"),
            ClassFact(name="AlphaBehandling", supertype_names=["Behandling"], initial_activity_name="A"),
            ClassFact(name="Helper", initial_activity_name="H"),
            ClassFact(name="AbstractBehandling", supertype_names=["Behandling"]),
        ]

    def test_entry_points_sorted_by_name(self, classes):
        """Test that only classes with an initial activity are listed, sorted by name."""
        index = build_fact_index(classes, [])

        names = [fact.name for fact in index.entry_points()]
        assert names == ["AlphaBehandling", "Helper", "ZetaBehandling"]

    def test_entry_points_filtered_by_supertype(self, classes):
        """Test filtering entry points by supertype text."""
        index = build_fact_index(classes, [])

        names = [fact.name for fact in index.entry_points("Behandling")]
        assert names == ["AlphaBehandling", "ZetaBehandling"]

    def test_supertype_filter_follows_inheritance(self):
        """Test that the supertype filter resolves supertypes transitively."""
        classes = [
            ClassFact(name="Base", supertype_names=["no.nav.Behandling"]),
            ClassFact(name="Concrete", supertype_names=["Base"], initial_activity_name="Start"),
        ]
        index = build_fact_index(classes, [])

        assert [fact.name for fact in index.entry_points("Behandling")] == ["Concrete"]


class TestSupertypeChain:
    """Test transitive supertype resolution."""

    def test_chain_through_known_classes(self):
        """Test that supertypes of known classes are followed."""
        index = build_fact_index(
            [
                ClassFact(name="Leaf", supertype_names=["Middle"]),
                ClassFact(name="Middle", supertype_names=["AldeAktivitet"]),
            ],
            [],
        )

        assert index.supertype_chain("Leaf") == ["Middle", "AldeAktivitet"]

    def test_unresolved_supertype_ends_chain(self):
        """Test that an unknown supertype is listed but not followed."""
        index = build_fact_index([ClassFact(name="Leaf", supertype_names=["Unknown"])], [])

        assert index.supertype_chain("Leaf") == ["Unknown"]
        assert index.supertype_chain("NotAClass") == []

    def test_cyclic_inheritance_terminates(self):
        """Test that malformed cyclic inheritance does not loop."""
        index = build_fact_index(
            [
                ClassFact(name="A", supertype_names=["B"]),
                ClassFact(name="B", supertype_names=["A"]),
            ],
            [],
        )

        assert index.supertype_chain("A") == ["B"]


class TestFactModels:
    """Test fact model validation."""

    def test_transition_requires_target(self):
        """Test that a transition without target or fan-out is rejected."""
        with pytest.raises(ValueError):
            Transition()

    def test_transition_cannot_be_single_and_fan_out(self):
        """Test that single and fan-out targets are mutually exclusive."""
        with pytest.raises(ValueError):
            Transition(target_activity_name="A", fan_out_targets=["B"])

    def test_camel_case_keys_accepted(self):
        """Test that extractor camelCase keys populate the models."""
        processor = ProcessorFact.model_validate(
            {
                "processedActivityName": "A",
                "processorName": "AProcessor",
                "createsManualTask": True,
                "transitions": [{"targetActivityName": "B", "condition": "x > 1"}],
            }
        )

        assert processor.creates_manual_task
        assert processor.transitions[0].targets == ["B"]
        assert processor.has_conditions
        assert not processor.signals_completion

    def test_processor_without_transitions_signals_completion(self, make_processor):
        """Test that a processor with no next activity completes the flow."""
        assert make_processor("Last", []).signals_completion
