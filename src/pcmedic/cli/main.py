"""Click CLI entry point for PCMedic."""

from __future__ import annotations

import logging

import click
from rich.logging import RichHandler

from pcmedic._version import __version__
from pcmedic.core.output import error_console


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich; quiet unless --verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(console=error_console, show_path=verbose)],
    )


@click.group()
@click.version_option(version=__version__, prog_name="pcmedic")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def cli(verbose: bool):
    """PCMedic - diagnose and safely repair machine-health problems.

    Investigate a problem, review the proposed fixes, and apply one only
    after you approve it.
    """
    setup_logging(verbose)


# Import and register subcommands
from pcmedic.cli.playbooks_cmd import playbooks  # noqa: E402
from pcmedic.cli.diagnose_cmd import diagnose  # noqa: E402
from pcmedic.cli.fix_cmd import fix  # noqa: E402
from pcmedic.cli.restore_cmd import restore_points  # noqa: E402
from pcmedic.cli.audit_cmd import audit  # noqa: E402

cli.add_command(playbooks)
cli.add_command(diagnose)
cli.add_command(fix)
cli.add_command(restore_points)
cli.add_command(audit)


if __name__ == "__main__":
    cli()
