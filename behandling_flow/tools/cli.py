"""
behandling-flow CLI Interface

Command-line tool that turns extracted fact files into flow diagrams, one per
Behandling entry point.
"""

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import click

from behandling_flow.core.observability import LogLevel, ObservabilityConfig, ObservabilityManager
from behandling_flow.knowledge.loader import FactFileError
from behandling_flow.pipeline.config import EdgeStyle, FlowConfig
from behandling_flow.pipeline.orchestrator import FlowGenerator
from behandling_flow.pipeline.state import RunSummary
from behandling_flow.stages.cycle_detection import detect_cycles
from behandling_flow.stages.fact_index import FactIndex
from behandling_flow.stages.flow_traversal import traverse_flow

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ["svg", "png", "pdf", "jpg", "dot"]


@click.group()
def cli():
    """behandling-flow - Render Behandling flows as Graphviz diagrams."""
    pass


@cli.command()
@click.argument("path", type=click.Path(exists=True))
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default="svg",
    help="Output format ('dot' writes the graph description only)",
)
@click.option(
    "--edge-style",
    "-e",
    type=click.Choice(["straight", "curved", "ortho", "orthogonal", "polyline", "spline"]),
    default=None,
    help="Edge routing style [default: straight]",
)
@click.option("--show-conditions", "-c", is_flag=True, help="Show condition labels on edges")
@click.option("--show-legend", "-l", is_flag=True, help="Append a colour legend")
@click.option("--open", "open_output", is_flag=True, help="Open the generated files")
@click.option("--keep-dot", "-k", is_flag=True, help="Keep the .dot file after rendering")
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for generated files (default: current directory)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging output")
@click.option(
    "--no-deduplicate",
    is_flag=True,
    help="Draw every raw edge instead of consolidating parallel edges",
)
@click.option(
    "--supertype",
    default=None,
    help="Only use entry classes whose supertype name contains this text (e.g. Behandling)",
)
@click.option("--workers", type=click.IntRange(min=1), default=1, help="Parallel entry points")
@click.option("--json-output", is_flag=True, help="Print the run summary as JSON")
def render(
    path: str,
    output_format: str,
    edge_style: Optional[str],
    show_conditions: bool,
    show_legend: bool,
    open_output: bool,
    keep_dot: bool,
    output_dir: Optional[str],
    verbose: bool,
    no_deduplicate: bool,
    supertype: Optional[str],
    workers: int,
    json_output: bool,
) -> None:
    """
    Generate one flow diagram per entry point found in PATH.

    PATH is a fact file or a directory containing *.facts.json files.

    \b
    Examples:
        behandling-flow render facts/ -c -l
        behandling-flow render app.facts.json -f png -e ortho -o diagrams
        behandling-flow render facts/ -f dot --supertype Behandling
    """
    _setup_observability(verbose)

    config = _load_config()
    render_config = config.render
    if edge_style:
        render_config.edge_style = EdgeStyle.from_name(edge_style)
    render_config.show_conditions = show_conditions or render_config.show_conditions
    render_config.show_legend = show_legend or render_config.show_legend
    render_config.deduplicate = render_config.deduplicate and not no_deduplicate

    config.output_format = output_format
    config.keep_dot = keep_dot or config.keep_dot
    config.open_output = open_output
    config.workers = workers
    if output_dir:
        config.output_dir = Path(output_dir)
    if supertype:
        config.entry_supertype = supertype

    generator = FlowGenerator(config)
    try:
        summary = generator.run(path)
    except FactFileError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    try:
        outputs = generator.write_outputs(summary)
    except OSError as e:
        logger.exception("Writing output failed")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if json_output:
        _output_json(summary)
    else:
        _output_text(summary)

    if config.open_output:
        for output in outputs:
            click.launch(str(output))

    if summary.is_failed or not summary.results:
        sys.exit(1)


@cli.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--supertype", default=None, help="Filter entry classes by supertype text")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging output")
def inspect(path: str, supertype: Optional[str], verbose: bool) -> None:
    """
    Print the indexed processors, entry points and detected cycles of PATH.

    \b
    Examples:
        behandling-flow inspect facts/
    """
    _setup_observability(verbose)
    generator = FlowGenerator()

    try:
        index = generator.load(path)
    except FactFileError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _print_processors(index)

    entries = index.entry_points(supertype)
    click.echo(f"\nEntry points ({len(entries)}):")
    for entry_class in entries:
        entry = entry_class.initial_activity_name
        traversal = traverse_flow(entry, index, generator.config.render)
        cycles = detect_cycles(entry, traversal.edges)
        click.echo(f"  {entry_class.name} -> {entry}")
        click.echo(
            f"    {len(traversal.visited)} activities, {len(traversal.edges)} edges, "
            f"{len(traversal.missing_processors)} without processor"
        )
        for source, target in cycles.back_edges:
            click.echo(f"    cycle: {source} -> {target}")
        for cluster in cycles.clusters:
            click.echo(f"    cluster: {{{', '.join(cluster.members)}}}")


@cli.command()
def info() -> None:
    """Show version and configuration information."""
    from behandling_flow import __version__

    config = _load_config()
    info_dict = {
        "name": "behandling-flow",
        "version": __version__,
        "description": "Render Behandling activity flows as Graphviz diagrams",
        "output_formats": OUTPUT_FORMATS,
        "edge_styles": [style.value for style in EdgeStyle],
        "render_defaults": {
            "show_conditions": config.render.show_conditions,
            "show_legend": config.render.show_legend,
            "edge_style": config.render.edge_style.value,
            "deduplicate": config.render.deduplicate,
            "summary_threshold": config.render.summary_threshold,
            "bold_threshold": config.render.bold_threshold,
        },
    }

    click.echo(json.dumps(info_dict, indent=2))


# ==================
# Helper Functions
# ==================


def _load_config() -> FlowConfig:
    try:
        return FlowConfig.from_env()
    except ValueError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(1)


def _setup_observability(verbose: bool) -> None:
    ObservabilityManager.initialize(
        ObservabilityConfig(log_level=LogLevel.DEBUG if verbose else LogLevel.WARNING)
    )


def _print_processors(index: FactIndex) -> None:
    click.echo(f"Processors ({len(index.processors)}):")
    for activity in sorted(index.processors):
        processor = index.processors[activity]
        marker = " [manual task]" if processor.creates_manual_task else ""
        click.echo(f"  {activity} ({processor.processor_name}){marker}")
        for transition in processor.transitions:
            condition = f" if {transition.condition}" if transition.condition else ""
            fan_out = " (fan-out)" if transition.is_fan_out else ""
            click.echo(f"    -> {', '.join(transition.targets)}{condition}{fan_out}")
        if processor.signals_completion:
            click.echo("    -> END")


def _output_text(summary: RunSummary) -> None:
    """Output results as plain text."""
    for result in summary.results:
        if result.is_success:
            click.echo(f"✓ {result.flow_name}: {result.output_path}")
            for warning in result.warnings:
                click.echo(f"  ! {warning}", err=True)
        else:
            click.echo(f"✗ {result.flow_name}: {result.error}", err=True)

    for warning in summary.warnings:
        click.echo(f"Warning: {warning}", err=True)

    counts = summary.summary()
    click.echo(
        f"\n--- {counts['flows_succeeded']}/{counts['flows_total']} flows generated ---",
        err=True,
    )


def _output_json(summary: RunSummary) -> None:
    """Output results as JSON."""
    output = {
        "summary": summary.summary(),
        "warnings": summary.warnings,
        "flows": [
            {
                "name": result.flow_name,
                "entry": result.entry_activity,
                "status": result.status.value,
                "output": str(result.output_path) if result.output_path else None,
                "error": result.error,
                "warnings": result.warnings,
                "metrics": asdict(result.metrics),
            }
            for result in summary.results
        ],
    }
    click.echo(json.dumps(output, indent=2))


if __name__ == "__main__":
    cli()
