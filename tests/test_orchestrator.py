"""
Integration Tests for FlowGenerator

Tests the complete pipeline from fact files to DOT output across all
entry points, including failure isolation, duplicate warnings, parallel
generation and output writing.
"""

import json
from unittest.mock import patch

import graphviz
import pytest

from behandling_flow.models.graph import FlowInvariantError
from behandling_flow.pipeline.config import EdgeStyle, FlowConfig, RenderConfig
from behandling_flow.pipeline.orchestrator import FlowGenerator
from behandling_flow.pipeline.state import FlowResult, FlowStatus, RunSummary
from behandling_flow.stages.dot_generation import DotGraphGenerator


# ==================
# Fixtures
# ==================


def processor(activity, *targets, **extra):
    return {
        "processedActivityName": activity,
        "processorName": f"{activity}Processor",
        "transitions": [{"targetActivityName": target} for target in targets],
        **extra,
    }


def entry_class(name, initial):
    return {"name": name, "supertypeNames": ["Behandling"], "initialActivityName": initial}


@pytest.fixture
def multi_flow_root(tmp_path):
    """Directory with three entry points spread over two fact files."""
    (tmp_path / "a.facts.json").write_text(
        json.dumps(
            {
                "classes": [entry_class("BetaBehandling", "B1"), entry_class("AlphaBehandling", "A1")],
                "processors": [processor("A1", "A2"), processor("A2")],
            }
        ),
        encoding="utf-8",
    )
    (tmp_path / "b.facts.json").write_text(
        json.dumps(
            {
                "classes": [entry_class("GammaBehandling", "G1")],
                "processors": [processor("B1", "B2", "B1"), processor("G1", "Missing")],
            }
        ),
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def generator(tmp_path):
    """Generator writing DOT files into a temporary directory."""
    return FlowGenerator(FlowConfig(output_dir=tmp_path / "out", output_format="dot"))


# ==================
# Run tests
# ==================


class TestRun:
    """Test complete runs over fact files."""

    def test_complex_cycles(self, generator, complex_cycles_file):
        """Test that both retry loops are found in the fixture flow."""
        summary = generator.run(complex_cycles_file)

        assert not summary.is_failed
        result = summary.get_result("ComplexCycleBehandling")
        assert result.is_success
        assert result.entry_activity == "StartAktivitet"
        assert result.metrics.cycle_clusters == 2
        assert result.metrics.back_edges == 2
        assert result.metrics.missing_processors == 0
        assert "cluster_cycle_1" in result.dot_source

    def test_results_sorted_by_name(self, generator, multi_flow_root):
        """Test that every entry point is generated, sorted by class name."""
        summary = generator.run(multi_flow_root)

        assert [r.flow_name for r in summary.results] == [
            "AlphaBehandling",
            "BetaBehandling",
            "GammaBehandling",
        ]
        assert summary.summary()["fact_files"] == 2
        assert summary.summary()["flows_succeeded"] == 3

    def test_missing_processor_warning(self, generator, multi_flow_root):
        """Test that missing processors are reported on the flow result."""
        result = generator.run(multi_flow_root).get_result("GammaBehandling")

        assert result.warnings == ["No processor found for 'Missing'"]
        assert result.metrics.missing_processors == 1

    def test_supertype_filter(self, tmp_path, multi_flow_root):
        """Test entry point selection by supertype."""
        config = FlowConfig(entry_supertype="NoSuchBase", output_dir=tmp_path)

        summary = FlowGenerator(config).run(multi_flow_root)

        assert summary.results == []

    def test_duplicate_processor_warning(self, generator, tmp_path):
        """Test that duplicate facts are surfaced as run warnings and resolved last-wins."""
        root = tmp_path / "facts"
        root.mkdir()
        (root / "a.facts.json").write_text(
            json.dumps(
                {
                    "classes": [entry_class("FooBehandling", "Start")],
                    "processors": [processor("Start", "Old")],
                }
            ),
            encoding="utf-8",
        )
        (root / "b.facts.json").write_text(
            json.dumps({"processors": [processor("Start", "New")]}), encoding="utf-8"
        )

        summary = generator.run(root)

        assert len(summary.warnings) == 1
        assert "Start" in summary.warnings[0]
        dot_source = summary.get_result("FooBehandling").dot_source
        assert "Start -> New" in dot_source
        assert "Old" not in dot_source


class TestFailureIsolation:
    """Test that one failing entry point never stops the others."""

    def test_invariant_error_isolated(self, generator, multi_flow_root):
        """Test that an invariant violation fails only the affected flow."""
        original = DotGraphGenerator.generate

        def failing_generate(self, flow_name, *args, **kwargs):
            if flow_name == "BetaBehandling":
                raise FlowInvariantError("cycle cluster 0 has no members")
            return original(self, flow_name, *args, **kwargs)

        with patch.object(DotGraphGenerator, "generate", failing_generate):
            summary = generator.run(multi_flow_root)

        assert summary.is_failed
        assert [r.flow_name for r in summary.failed] == ["BetaBehandling"]
        assert summary.get_result("BetaBehandling").error == "cycle cluster 0 has no members"
        assert summary.get_result("AlphaBehandling").is_success
        assert summary.get_result("GammaBehandling").is_success
        assert summary.summary()["errors"] == {
            "BetaBehandling": "cycle cluster 0 has no members"
        }

    def test_unexpected_error_isolated(self, generator, multi_flow_root):
        """Test that any other exception is also contained per flow."""
        with patch(
            "behandling_flow.pipeline.orchestrator.detect_cycles",
            side_effect=RuntimeError("boom"),
        ):
            summary = generator.run(multi_flow_root)

        assert len(summary.failed) == 3
        assert all(r.status == FlowStatus.FAILED for r in summary.results)
        assert all(r.dot_source is None for r in summary.results)


class TestParallel:
    """Test parallel generation."""

    def test_workers_give_identical_results(self, tmp_path, multi_flow_root):
        """Test that parallel generation matches sequential output."""
        sequential = FlowGenerator(FlowConfig(output_dir=tmp_path)).run(multi_flow_root)
        parallel = FlowGenerator(FlowConfig(output_dir=tmp_path, workers=4)).run(multi_flow_root)

        assert [r.flow_name for r in parallel.results] == [r.flow_name for r in sequential.results]
        assert [r.dot_source for r in parallel.results] == [
            r.dot_source for r in sequential.results
        ]


class TestOptions:
    """Test render options passed through the generator."""

    def test_no_deduplication(self, tmp_path):
        """Test that disabling consolidation draws every raw edge."""
        root = tmp_path / "facts"
        root.mkdir()
        (root / "flow.facts.json").write_text(
            json.dumps(
                {
                    "classes": [entry_class("FooBehandling", "A")],
                    "processors": [
                        {
                            "processedActivityName": "A",
                            "processorName": "AProcessor",
                            "transitions": [
                                {"targetActivityName": "B", "condition": f"c{i}()"}
                                for i in range(3)
                            ],
                        },
                        processor("B"),
                    ],
                }
            ),
            encoding="utf-8",
        )

        merged = FlowGenerator(FlowConfig(output_dir=tmp_path)).run(root)
        raw = FlowGenerator(
            FlowConfig(output_dir=tmp_path, render=RenderConfig(deduplicate=False))
        ).run(root)

        assert merged.results[0].metrics.rendered_edges == 2
        assert raw.results[0].metrics.rendered_edges == 4
        assert raw.results[0].metrics.raw_edges == 4


# ==================
# Output tests
# ==================


class TestWriteOutputs:
    """Test writing generated flows to disk."""

    def test_dot_format(self, generator, complex_cycles_file, tmp_path):
        """Test that the dot format writes the DOT text only."""
        summary = generator.run(complex_cycles_file)

        outputs = generator.write_outputs(summary)

        expected = tmp_path / "out" / "ComplexCycleBehandling_flow.dot"
        assert outputs == [expected]
        assert expected.read_text(encoding="utf-8") == summary.results[0].dot_source

    def test_failed_flows_not_written(self, generator, tmp_path):
        """Test that only successful flows produce files."""
        summary = RunSummary()
        summary.add_result(
            FlowResult(flow_name="Broken", entry_activity="X", status=FlowStatus.FAILED)
        )

        assert generator.write_outputs(summary) == []
        assert list((tmp_path / "out").iterdir()) == []

    def test_missing_graphviz_keeps_dot(self, tmp_path, complex_cycles_file):
        """Test that a missing Graphviz binary keeps the DOT file and warns."""
        generator = FlowGenerator(FlowConfig(output_dir=tmp_path, output_format="svg"))
        summary = generator.run(complex_cycles_file)

        with patch(
            "behandling_flow.pipeline.orchestrator.graphviz.render",
            side_effect=graphviz.ExecutableNotFound(["dot"]),
        ):
            outputs = generator.write_outputs(summary)

        assert outputs == [tmp_path / "ComplexCycleBehandling_flow.dot"]
        assert outputs[0].exists()
        assert "not found" in summary.results[0].warnings[-1]

    def test_rendered_image_replaces_dot(self, tmp_path, complex_cycles_file):
        """Test that a rendered image removes the DOT file unless kept."""
        generator = FlowGenerator(FlowConfig(output_dir=tmp_path, output_format="png"))
        summary = generator.run(complex_cycles_file)

        with patch("behandling_flow.pipeline.orchestrator.graphviz.render") as render:
            outputs = generator.write_outputs(summary)

        dot_path = tmp_path / "ComplexCycleBehandling_flow.dot"
        render.assert_called_once_with(
            "dot", format="png", filepath=dot_path, outfile=tmp_path / "ComplexCycleBehandling_flow.png"
        )
        assert outputs == [tmp_path / "ComplexCycleBehandling_flow.png"]
        assert not dot_path.exists()


# ==================
# Configuration tests
# ==================


class TestConfig:
    """Test configuration loading."""

    def test_from_env(self, monkeypatch, tmp_path):
        """Test configuration from environment variables."""
        monkeypatch.setenv("BEHANDLING_FLOW_SHOW_CONDITIONS", "true")
        monkeypatch.setenv("BEHANDLING_FLOW_EDGE_STYLE", "ortho")
        monkeypatch.setenv("BEHANDLING_FLOW_DEDUPLICATE", "0")
        monkeypatch.setenv("BEHANDLING_FLOW_OUTPUT_DIR", str(tmp_path))
        monkeypatch.setenv("BEHANDLING_FLOW_FORMAT", "png")
        monkeypatch.setenv("BEHANDLING_FLOW_WORKERS", "3")

        config = FlowConfig.from_env()

        assert config.render.show_conditions
        assert config.render.edge_style is EdgeStyle.ORTHOGONAL
        assert not config.render.deduplicate
        assert config.resolved_output_dir() == tmp_path
        assert config.output_format == "png"
        assert config.workers == 3

    def test_defaults(self, monkeypatch):
        """Test defaults with no environment set."""
        for name in ("SHOW_CONDITIONS", "EDGE_STYLE", "OUTPUT_DIR", "FORMAT", "WORKERS"):
            monkeypatch.delenv(f"BEHANDLING_FLOW_{name}", raising=False)

        config = FlowConfig.from_env()

        assert not config.render.show_conditions
        assert config.render.edge_style is EdgeStyle.STRAIGHT
        assert config.output_format == "svg"
        assert config.output_dir is None

    def test_invalid_thresholds(self):
        """Test that inconsistent consolidation thresholds are rejected."""
        with pytest.raises(ValueError, match="bold_threshold"):
            RenderConfig(summary_threshold=3, bold_threshold=3)
        with pytest.raises(ValueError, match="summary_threshold"):
            RenderConfig(summary_threshold=1)

    @pytest.mark.parametrize(
        "value,message",
        [("three", "must be an integer"), ("0", "must be >= 1")],
    )
    def test_invalid_workers_from_env(self, monkeypatch, value, message):
        """Test that a bad worker count names the variable."""
        monkeypatch.setenv("BEHANDLING_FLOW_WORKERS", value)

        with pytest.raises(ValueError, match=f"BEHANDLING_FLOW_WORKERS {message}"):
            FlowConfig.from_env()
