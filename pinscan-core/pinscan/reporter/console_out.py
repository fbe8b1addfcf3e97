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

"""Rich terminal output for pinning scan results."""

from __future__ import annotations

from collections import defaultdict

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from pinscan.models.dependencies import Dependency
from pinscan.models.report import ScanReport
from pinscan.policy.scoring import MAX_SCORE, dependency_text

console = Console(soft_wrap=True)


def _score_style(score: int) -> str:
    if score >= 8:
        return "green"
    if score >= 5:
        return "yellow"
    return "red"


def _location(dep: Dependency) -> str:
    loc = dep.location
    if loc.end_line > loc.start_line:
        return f"{loc.path}:{loc.start_line}-{loc.end_line}"
    return f"{loc.path}:{loc.start_line}"


def print_score_panel(report: ScanReport) -> None:
    style = _score_style(report.score.score)
    body = (
        f"[bold {style}]{report.score.score}/{MAX_SCORE}[/bold {style}]  {report.score.reason}\n"
        f"[dim]{report.file_count} files ({report.manifest_source}) | "
        f"{len(report.dependencies)} dependencies | "
        f"{len(report.processing_errors)} processing errors[/dim]"
    )
    console.print(Panel(body, title="Pinned Dependencies", border_style=style, expand=True))


def print_category_table(report: ScanReport) -> None:
    table = Table(title="Score by category", show_lines=False)
    table.add_column("Category")
    table.add_column("Pinned", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Score", justify="right")
    for cat in report.score.categories:
        style = _score_style(cat.score)
        table.add_row(cat.category, str(cat.pinned), str(cat.total), f"[{style}]{cat.score}[/{style}]")
    console.print(table)


def print_unpinned(report: ScanReport, verbose: bool = False) -> None:
    unpinned = [d for d in report.dependencies if not d.pinned]
    if not unpinned:
        console.print("[green]All dependencies are pinned.[/green]")
        return

    by_file: dict[str, list[Dependency]] = defaultdict(list)
    for dep in unpinned:
        by_file[dep.location.path].append(dep)

    for path in sorted(by_file):
        console.print(f"\n[bold]{escape(path)}[/bold]")
        for dep in by_file[path]:
            console.print(f"  [red]✗[/red] {dependency_text(dep)}  [dim]{escape(_location(dep))}[/dim]")
            console.print(f"    [dim]{escape(dep.location.snippet.strip())}[/dim]", highlight=False)
            if verbose and dep.remediation:
                console.print(f"    [cyan]fix:[/cyan] {escape(dep.remediation)}")


def print_processing_errors(report: ScanReport) -> None:
    if not report.processing_errors:
        return
    console.print(f"\n[yellow]Skipped {len(report.processing_errors)} element(s):[/yellow]")
    for err in report.processing_errors:
        where = f"{err.path}:{err.line}" if err.line is not None else err.path
        console.print(f"  [yellow]![/yellow] {escape('[' + err.kind + ']')} {escape(where)}: {escape(err.message)}", highlight=False)


def print_full_report(report: ScanReport, verbose: bool = False) -> None:
    print_score_panel(report)
    print_category_table(report)
    print_unpinned(report, verbose=verbose)
    if verbose:
        print_processing_errors(report)
