"""
Flow Generation Orchestrator

Coordinates the pipeline for every entry point of a scan root:

1. Fact loading and indexing
2. Flow traversal
3. Cycle detection (and iteration groups)
4. Edge consolidation
5. DOT generation

Each entry point runs independently: a failure in one flow is recorded on its
FlowResult and never stops the others.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Union

import graphviz

from behandling_flow.core.observability import Timer, log_execution, record_metric, span
from behandling_flow.knowledge.loader import discover_fact_files, load_facts
from behandling_flow.models.facts import ClassFact
from behandling_flow.models.graph import FlowInvariantError
from behandling_flow.pipeline.config import FlowConfig
from behandling_flow.pipeline.state import FlowMetrics, FlowResult, FlowStatus, RunSummary
from behandling_flow.stages.cycle_detection import detect_cycles, detect_iteration_groups
from behandling_flow.stages.dot_generation import DotGraphGenerator
from behandling_flow.stages.edge_consolidation import consolidate_edges, mark_back_edges
from behandling_flow.stages.fact_index import FactIndex, build_fact_index
from behandling_flow.stages.flow_traversal import traverse_flow

logger = logging.getLogger(__name__)


class FlowGenerator:
    """
    Main flow generation orchestrator.

    Builds the fact index once, then generates one DOT description per entry
    point. The index is never mutated after loading, so entry points may run
    on worker threads.
    """

    def __init__(self, config: Optional[FlowConfig] = None):
        """Initialize the generator.

        Args:
            config: Flow configuration; defaults to ``FlowConfig()``
        """
        self.config = config or FlowConfig()
        self.dot_generator = DotGraphGenerator(self.config.render)

    def load(self, root: Union[str, Path], summary: Optional[RunSummary] = None) -> FactIndex:
        """Load the fact files of a scan root and build the fact index.

        Duplicate facts are logged as warnings and recorded on ``summary``.

        Raises:
            FactFileError: If the root or one of its fact files is unusable
        """
        with span("flow.load", {"root": str(root)}):
            paths = discover_fact_files(root)
            facts = load_facts(paths)
            index = build_fact_index(facts.classes, facts.processors)

        duplicate_warnings = [d.describe("Class") for d in index.duplicate_classes]
        duplicate_warnings += [d.describe("Activity") for d in index.duplicate_processors]
        for warning in duplicate_warnings:
            logger.warning(warning)

        if summary is not None:
            summary.fact_files.extend(paths)
            summary.warnings.extend(duplicate_warnings)

        logger.info(
            f"Indexed {len(index.classes)} classes and {len(index.processors)} processors"
        )
        return index

    def generate_flow(self, entry_class: ClassFact, index: FactIndex) -> FlowResult:
        """Run the pipeline for one entry point.

        Args:
            entry_class: Class whose initial activity starts the flow
            index: Fact index of the scan root

        Returns:
            FlowResult, FAILED with the error message if generation aborted
        """
        render = self.config.render
        entry = entry_class.initial_activity_name or entry_class.name
        result = FlowResult(
            flow_name=entry_class.name, entry_activity=entry, status=FlowStatus.RUNNING
        )
        start_time = datetime.now()

        try:
            with span("flow.generate", {"flow": entry_class.name}), Timer("flow_generation"):
                traversal = traverse_flow(entry, index, render)
                cycles = detect_cycles(entry, traversal.edges)
                groups = (
                    detect_iteration_groups(traversal.edges, cycles.clusters)
                    if render.show_iterations
                    else []
                )

                if render.deduplicate:
                    edges = consolidate_edges(
                        traversal.edges,
                        cycles.back_edges,
                        show_conditions=render.show_conditions,
                        summary_threshold=render.summary_threshold,
                        bold_threshold=render.bold_threshold,
                        example_max_length=render.example_max_length,
                    )
                else:
                    edges = mark_back_edges(traversal.edges, cycles.back_edges)

                result.dot_source = self.dot_generator.generate(
                    entry_class.name, entry, traversal, cycles, groups, edges, index
                )

            result.metrics = FlowMetrics(
                nodes=len(traversal.nodes),
                raw_edges=len(traversal.edges),
                rendered_edges=len(edges),
                back_edges=len(cycles.back_edges),
                cycle_clusters=len(cycles.clusters),
                iteration_groups=len(groups),
                missing_processors=len(traversal.missing_processors),
            )
            result.warnings.extend(
                f"No processor found for '{name}'" for name in traversal.missing_processors
            )
            result.status = FlowStatus.COMPLETED
            record_metric("flows_generated_total", 1)
            logger.info(f"Generated flow {entry_class.name}: {result.metrics}")

        except FlowInvariantError as e:
            logger.error(f"Flow {entry_class.name} aborted: {e}")
            result.status = FlowStatus.FAILED
            result.error = str(e)
            record_metric("flows_failed_total", 1)

        except Exception as e:
            logger.exception(f"Flow {entry_class.name} failed: {e}")
            result.status = FlowStatus.FAILED
            result.error = str(e)
            record_metric("flows_failed_total", 1)

        result.duration_ms = (datetime.now() - start_time).total_seconds() * 1000
        return result

    @log_execution()
    def generate_all(
        self, index: FactIndex, entries: Optional[Sequence[ClassFact]] = None
    ) -> List[FlowResult]:
        """Generate every entry point's flow.

        Args:
            index: Fact index of the scan root
            entries: Entry classes; defaults to the index's entry points

        Returns:
            Results sorted by entry class name
        """
        if entries is None:
            entries = index.entry_points(self.config.entry_supertype)

        if not entries:
            logger.warning("No entry points found")
            return []

        workers = max(1, self.config.workers)
        if workers > 1 and len(entries) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                results = list(executor.map(lambda fact: self.generate_flow(fact, index), entries))
        else:
            results = [self.generate_flow(fact, index) for fact in entries]

        return sorted(results, key=lambda r: r.flow_name)

    def run(self, root: Union[str, Path]) -> RunSummary:
        """Load a scan root and generate all of its flows."""
        summary = RunSummary()
        index = self.load(root, summary)
        for result in self.generate_all(index):
            summary.add_result(result)
        logger.info(f"Run complete: {summary.summary()}")
        return summary

    def write_outputs(self, summary: RunSummary) -> List[Path]:
        """Write DOT files and render images for successful flows.

        Writes ``<Entry>_flow.dot``; unless the output format is ``dot`` the
        file is rendered with Graphviz into ``<Entry>_flow.<format>`` and
        removed again unless ``keep_dot`` is set. A rendering failure keeps
        the DOT file and is recorded as a warning on the flow.

        Returns:
            Paths of the primary output files
        """
        output_dir = self.config.resolved_output_dir()
        output_dir.mkdir(parents=True, exist_ok=True)
        fmt = self.config.output_format

        outputs = []
        for result in summary.succeeded:
            dot_path = output_dir / f"{result.file_stem}.dot"
            dot_path.write_text(result.dot_source or "", encoding="utf-8")
            result.output_path = dot_path

            if fmt != "dot":
                image_path = output_dir / f"{result.file_stem}.{fmt}"
                try:
                    with span("flow.render", {"flow": result.flow_name, "format": fmt}):
                        graphviz.render("dot", format=fmt, filepath=dot_path, outfile=image_path)
                except graphviz.ExecutableNotFound:
                    message = "Graphviz 'dot' executable not found; kept DOT file"
                    logger.warning(f"{result.flow_name}: {message}")
                    result.warnings.append(message)
                except graphviz.CalledProcessError as e:
                    message = f"Graphviz failed to render {fmt}: {e.stderr or e}"
                    logger.warning(f"{result.flow_name}: {message}")
                    result.warnings.append(message)
                else:
                    result.output_path = image_path
                    if not self.config.keep_dot:
                        dot_path.unlink()

            logger.info(f"Wrote {result.output_path}")
            outputs.append(result.output_path)

        return outputs


__all__ = ["FlowGenerator"]
