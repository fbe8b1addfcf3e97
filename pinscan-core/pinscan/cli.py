# Pinscan: Dependency Pinning & Insecure-Download Detection
# Copyright (C) 2026 Pinscan Project Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""Pinscan CLI: Typer entry point.

Commands:
- pinscan scan <path>    Pinning audit of Dockerfiles, shell scripts and workflows
- pinscan version        Show the installed version
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from pinscan import __version__
from pinscan.config import load_config
from pinscan.errors import InternalError
from pinscan.models.report import ScanReport
from pinscan.policy.scoring import compute_score
from pinscan.reporter.console_out import console, print_full_report
from pinscan.reporter.json_out import to_canonical_json, write_report
from pinscan.scanner.coordinator import LocalRepoClient
from pinscan.scanner.pinning import collect_pinning_dependencies

app = typer.Typer(
    name="pinscan",
    help=(
        "Pinscan: find unpinned dependencies and download-then-run patterns. "
        "Run 'pinscan <command> --help' for flags."
    ),
    add_completion=False,
)

logger = logging.getLogger("pinscan")


def _configure_logging(*, verbose: bool, quiet: bool, output_json: bool) -> None:
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG)
    elif output_json:
        logging.basicConfig(level=logging.WARNING)
    else:
        logging.basicConfig(level=logging.INFO)


def _run_scan_pipeline(
    path: str,
    *,
    verbose: bool = False,
    output_json: bool = False,
    quiet: bool = False,
    config_path: Optional[str] = None,
    fail_under: Optional[int] = None,
    output: Optional[str] = None,
) -> None:
    """Discover files, collect dependencies, score, and report."""
    _configure_logging(verbose=verbose, quiet=quiet, output_json=output_json)

    target_dir = Path(path).resolve()
    if not target_dir.exists():
        console.print(f"[red]Error: Directory not found: {target_dir}[/red]")
        raise typer.Exit(code=1)
    if not target_dir.is_dir():
        console.print(f"[red]Error: Not a directory: {target_dir}[/red]")
        raise typer.Exit(code=1)

    config = load_config(target_dir, Path(config_path) if config_path else None)
    if fail_under is None:
        fail_under = config.fail_under

    # ── Step 1: Discover files ──
    client = LocalRepoClient(target_dir, exclude_patterns=config.exclude_patterns)

    # ── Step 2: Collect dependencies ──
    try:
        results = collect_pinning_dependencies(client, config)
    except InternalError as e:
        logger.error("Internal error while scanning %s: %s", target_dir, e)
        console.print(f"[red]Internal error: {e}[/red]")
        raise typer.Exit(code=2)

    # ── Step 3: Score and report ──
    report = ScanReport(
        scan_target=str(target_dir),
        manifest_source=client.manifest_source,
        file_count=client.file_count,
        score=compute_score(results),
        dependencies=results.dependencies,
        processing_errors=results.processing_errors,
        unparsed_files=results.unparsed_files,
    )

    if output:
        write_report(report, Path(output))

    if output_json:
        print(to_canonical_json(report), end="")
    elif not quiet:
        print_full_report(report, verbose=verbose)

    if fail_under is not None and report.score.score < fail_under:
        if not quiet and not output_json:
            console.print(f"[red]Score {report.score.score} is below --fail-under {fail_under}[/red]")
        raise typer.Exit(code=1)


@app.command()
def scan(
    path: str = typer.Argument(".", help="Path to scan (default: current directory)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show remediation and skipped files"),
    output_json: bool = typer.Option(False, "--json", help="Output raw JSON to stdout (for CI)"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress all output except errors"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to a pinscan YAML config file"),
    fail_under: Optional[int] = typer.Option(
        None, "--fail-under", min=0, max=10, help="Exit with code 1 if the score is below this value"
    ),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Also write the JSON report to this file"),
) -> None:
    """Scan a repository for unpinned dependencies.

    Checks GitHub action references, Dockerfile base images, and the shell
    code in Dockerfile RUN lines, shell scripts and workflow run steps.
    """
    _run_scan_pipeline(
        path,
        verbose=verbose,
        output_json=output_json,
        quiet=quiet,
        config_path=config_path,
        fail_under=fail_under,
        output=output,
    )


@app.command()
def version() -> None:
    """Show the Pinscan version."""
    console.print(f"Pinscan v{__version__}")


if __name__ == "__main__":
    app()
