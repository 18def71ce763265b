"""
behandling-flow Tools

Command-line interface.
"""

from behandling_flow.tools.cli import cli

__all__ = ["cli"]
