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

"""Workflow analyzer: ``run:`` steps and ``uses:`` pinning in GitHub workflows.

Run steps are fed to the shell analyzer with one taint set per job, after
``${{ ... }}`` expressions are replaced by a placeholder. Steps whose shell
is not one bashlex can read (pwsh, cmd, python, ...) are skipped.
"""

from __future__ import annotations

import logging
import re
from typing import Union

from pinscan.errors import ElementError, ShellParsingError
from pinscan.models.dependencies import (
    Dependency,
    DependencyKind,
    PinningDependenciesData,
    SourceLocation,
)
from pinscan.scanner.command_utils import SUPPORTED_SHELLS, is_action_dependency_pinned, is_binary_name
from pinscan.scanner.shell_analyzer import file_contains_commands, validate_shell_file
from pinscan.scanner.workflow_parser import (
    Job,
    Step,
    Workflow,
    YamlScalar,
    is_workflow_file,
    parse_workflow,
)

logger = logging.getLogger(__name__)

DEFAULT_SHELL_WINDOWS = "pwsh"
DEFAULT_SHELL_NON_WINDOWS = "bash"
REDACTED_VARIABLE = "GITHUB_REDACTED_VAR"

_TEMPLATE_EXPRESSION = re.compile(r"{{[^{}]*}}")
_MATRIX_OS = re.compile(r"\$\{\{\s*matrix\.os\s*\}\}")

# ── Windows step conditions ──
WINDOWS_STEP_CONDITIONS: list[re.Pattern] = [
    # if: runner.os == 'Windows'
    re.compile(r"""runner\.os\s*==\s*['"]windows['"]""", re.IGNORECASE),
    # if: ${{ startsWith(runner.os, 'Windows') }}
    re.compile(r"""\$\{\{\s*startsWith\(runner\.os,\s*['"]windows['"]\)""", re.IGNORECASE),
    # if: matrix.os == 'windows-2019'
    re.compile(r"""matrix\.os\s*==\s*['"]windows-""", re.IGNORECASE),
]


# ── Shell selection ──

def is_supported_shell(shell: str) -> bool:
    return any(is_binary_name(name, shell) for name in SUPPORTED_SHELLS)


def is_step_windows(step: Step) -> bool:
    if not step.if_condition:
        return False
    return any(p.search(step.if_condition) for p in WINDOWS_STEP_CONDITIONS)


def get_oses_for_job(job: Job) -> list[str]:
    """OS labels a job runs on, resolving a ``${{ matrix.os }}`` runs-on.

    Raises ElementError when runs-on points at a matrix with no os values.
    """
    from_matrix = len(job.runs_on) == 1 and _MATRIX_OS.search(job.runs_on[0]) is not None
    if not from_matrix:
        return list(job.runs_on)
    oses = [os.strip("'\"") for os in job.matrix_os + job.include_os]
    if not oses:
        raise ElementError(f"unable to determine OS for job: {job.display_name}", line=job.line)
    return oses


def job_always_runs_on_windows(job: Job) -> bool:
    return all(os.lower().startswith("windows") for os in get_oses_for_job(job))


def get_shell_for_step(step: Step, job: Job, workflow: Workflow) -> str:
    """Shell used for a run step, following the GitHub defaults."""
    if step.shell_is_malformed:
        raise ElementError(f"step '{step.display_name}' has a non-string shell", line=step.line)
    if step.shell is not None and step.shell.value:
        return step.shell.value
    if job.default_shell:
        return job.default_shell
    if workflow.default_shell:
        return workflow.default_shell
    if is_step_windows(step):
        return DEFAULT_SHELL_WINDOWS
    if job_always_runs_on_windows(job):
        return DEFAULT_SHELL_WINDOWS
    return DEFAULT_SHELL_NON_WINDOWS


def redact_expressions(script: str) -> str:
    """Replace ``${{ ... }}`` bodies so bashlex sees ``$GITHUB_REDACTED_VAR``."""
    return _TEMPLATE_EXPRESSION.sub(REDACTED_VARIABLE, script)


def _run_base_line(run: YamlScalar) -> int:
    # Block scalars start on the line after the indicator
    return run.line if run.is_block else run.line - 1


# ── Run steps ──

def validate_workflow_insecure_downloads(
    path: str,
    content: Union[bytes, str],
    results: PinningDependenciesData,
) -> None:
    """Walk every supported ``run:`` step of a workflow file.

    Raises WorkflowParsingError when the YAML does not parse. Shell parse
    failures and undeterminable shells are recorded per step.
    """
    if not is_workflow_file(path):
        return
    if not file_contains_commands(content):
        return

    workflow = parse_workflow(content, path)
    for job in workflow.jobs:
        tainted: set[str] = set()
        for step in job.steps:
            if step.run is None:
                continue
            try:
                shell = get_shell_for_step(step, job, workflow)
            except ElementError as e:
                logger.debug("%s: %s", path, e.message)
                results.record_error(path, e.message, kind=e.kind, line=step.line)
                continue
            if not is_supported_shell(shell):
                continue

            base = _run_base_line(step.run)
            script = redact_expressions(step.run.value)
            try:
                validate_shell_file(path, base, base, script, tainted, results)
            except ShellParsingError as e:
                logger.debug("%s: unparseable run step '%s': %s", path, step.display_name, e.message)
                results.record_error(path, e.message, line=step.run.line)


# ── Action pinning ──

def new_action_dependency(uses: YamlScalar, path: str) -> Dependency:
    name, _, pinned_at = uses.value.partition("@")
    return Dependency(
        name=name,
        pinned_at=pinned_at or None,
        pinned=is_action_dependency_pinned(uses.value),
        kind=DependencyKind.GITHUB_ACTION,
        # uses always spans one line
        location=SourceLocation(path=path, start_line=uses.line, end_line=uses.line, snippet=uses.value),
    )


def validate_workflow_action_pinning(
    path: str,
    content: Union[bytes, str],
    results: PinningDependenciesData,
) -> None:
    """Record a GitHubAction dependency for every remote ``uses:``."""
    if not is_workflow_file(path):
        return
    if not file_contains_commands(content):
        return

    workflow = parse_workflow(content, path)
    for job in workflow.jobs:
        # Reusable workflow call
        if job.uses is not None and not job.uses.value.startswith("./"):
            results.add(new_action_dependency(job.uses, path))
        for step in job.steps:
            if step.uses is None or step.uses.value.startswith("./"):
                continue
            results.add(new_action_dependency(step.uses, path))
