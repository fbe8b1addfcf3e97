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

"""Shell analyzer: bashlex AST walk for download-then-run and unpinned installs.

Detects, per visited node:
- Nested ``sh -c '...'`` payloads (re-parsed and walked with the same taint set)
- Pipe-to-interpreter downloads (curl ... | bash)
- Execution of a file downloaded earlier in the same fragment
- Process substitution downloads (bash <(wget -qO- ...))
- Unpinned package-manager installs (go, pip, npm, choco, nuget)

Downloaded output files are recorded in a taint set that the caller owns
and passes in, so one Dockerfile or workflow job can span many fragments.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional, Union

import bashlex
import bashlex.errors

from pinscan.errors import ShellParsingError
from pinscan.models.dependencies import (
    Dependency,
    DependencyKind,
    PinningDependenciesData,
    SourceLocation,
)
from pinscan.scanner.command_utils import (
    SHELL_INTERPRETERS,
    SUPPORTED_SHELLS,
    Command,
    command_words,
    extract_command,
    extract_interpreter_and_command,
    get_output_file,
    is_binary_name,
    is_choco_unpinned_download,
    is_download_utility,
    is_execute_file,
    is_go_unpinned_download,
    is_interpreter,
    is_interpreter_with_file,
    is_npm_unpinned_download,
    is_nuget_unpinned_download,
    is_pip_unpinned_download,
    is_shell_interpreter_or_command,
    node_source,
    quoted_payload,
)

logger = logging.getLogger(__name__)

TaintedFiles = set[str]

# First match wins
PACKAGE_MANAGER_DETECTORS = (
    (is_go_unpinned_download, DependencyKind.GO_COMMAND),
    (is_pip_unpinned_download, DependencyKind.PIP_COMMAND),
    (is_npm_unpinned_download, DependencyKind.NPM_COMMAND),
    (is_choco_unpinned_download, DependencyKind.CHOCO_COMMAND),
    (is_nuget_unpinned_download, DependencyKind.NUGET_COMMAND),
)


def _as_text(content: Union[bytes, str]) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content


def file_contains_commands(content: Union[bytes, str], comment: str = "#") -> bool:
    """True if any non-blank line is not a comment.

    Files made only of comments (or empty) are skipped before parsing.
    """
    for line in _as_text(content).splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith(comment):
            return True
    return False


def parse_shell(source: str, path: str = "") -> list[Any]:
    """Parse shell text with bashlex, raising ShellParsingError on failure."""
    if not source.strip():
        return []
    try:
        return bashlex.parse(source)
    except bashlex.errors.ParsingError as e:
        raise ShellParsingError(str(e), path=path) from e
    except NotImplementedError as e:
        raise ShellParsingError(f"unsupported shell construct: {e}", path=path) from e
    except (IndexError, AttributeError, TypeError, ValueError) as e:
        # bashlex internals on inputs outside its grammar
        raise ShellParsingError(f"bashlex failed: {e!r}", path=path) from e


def iter_nodes(node: Any) -> Iterator[Any]:
    """Pre-order walk over every bashlex node below (and including) ``node``."""
    yield node
    for attr in ("parts", "list"):
        for child in getattr(node, attr, None) or []:
            if hasattr(child, "kind"):
                yield from iter_nodes(child)
    for attr in ("command", "output"):
        child = getattr(node, attr, None)
        if hasattr(child, "kind"):
            yield from iter_nodes(child)


def _first_statement(node: Any) -> Any:
    if getattr(node, "kind", None) == "list" and node.parts:
        return node.parts[0]
    return node


class _ShellFragment:
    """State for walking one parsed piece of shell text."""

    def __init__(
        self,
        path: str,
        source: str,
        start_line: int,
        end_line: int,
        tainted: TaintedFiles,
        results: PinningDependenciesData,
    ) -> None:
        self.path = path
        self.source = source
        self.start_line = start_line
        self.end_line = end_line
        self.tainted = tainted
        self.results = results

    def lines(self, node: Any) -> tuple[int, int]:
        line = self.source.count("\n", 0, node.pos[0]) + 1
        # end_line below start_line means the end is unknown
        if self.end_line >= self.start_line:
            return self.start_line + line, self.end_line + line
        return self.start_line + line, self.start_line + line

    def emit(self, node: Any, kind: DependencyKind) -> None:
        start, end = self.lines(node)
        self.results.add(
            Dependency(
                kind=kind,
                pinned=False,
                location=SourceLocation(
                    path=self.path,
                    start_line=start,
                    end_line=end,
                    snippet=node_source(node, self.source),
                ),
            )
        )

    def command(self, node: Any) -> tuple[Command, bool]:
        return extract_command(node, self.source)


# ── Detectors ──

def _walk_nested_command(frag: _ShellFragment, node: Any) -> None:
    """Re-parse ``<interpreter> -c '<payload>'`` as shell when it is a shell."""
    cmd, ok = frag.command(node)
    if not ok:
        return
    interpreter = extract_interpreter_and_command(cmd)
    if interpreter is None or not is_shell_interpreter_or_command([interpreter]):
        return
    payload = None
    for word in command_words(node):
        payload = quoted_payload(word, frag.source)
        if payload is not None:
            break
    if payload is None:
        return

    start, end = frag.lines(node)
    # Payload line 1 reports at the parent node's line
    validate_shell_file(frag.path, start - 1, end - 1, payload, frag.tainted, frag.results)


def _collect_fetch_pipe_execute(frag: _ShellFragment, node: Any) -> None:
    if node.kind != "pipeline":
        return
    commands = [p for p in node.parts if p.kind not in ("pipe", "reservedword")]
    for left, right in zip(commands, commands[1:]):
        left_cmd, ok = frag.command(left)
        if not ok or not is_download_utility(left_cmd):
            continue
        right_cmd, ok = frag.command(right)
        if not ok or not is_interpreter(right_cmd):
            continue
        frag.emit(node, DependencyKind.DOWNLOAD_THEN_RUN)


def _collect_execute_files(frag: _ShellFragment, node: Any) -> None:
    cmd, ok = frag.command(node)
    if not ok:
        return
    for path in sorted(frag.tainted):
        if is_interpreter_with_file(cmd, path) or is_execute_file(cmd, path):
            frag.emit(node, DependencyKind.DOWNLOAD_THEN_RUN)


def _collect_fetch_proc_subst_execute(frag: _ShellFragment, node: Any) -> None:
    cmd, ok = frag.command(node)
    if not ok or not is_interpreter(cmd):
        return

    words = command_words(node)
    if len(words) < 2:
        return
    arg = words[1]
    if len(arg.parts) != 1 or arg.parts[0].kind != "processsubstitution":
        return
    if not node_source(arg, frag.source).startswith("<("):
        return

    inner = _first_statement(arg.parts[0].command)
    inner_cmd, ok = frag.command(inner)
    if not ok or not is_download_utility(inner_cmd):
        return
    frag.emit(node, DependencyKind.DOWNLOAD_THEN_RUN)


def _collect_unpinned_package_manager_download(frag: _ShellFragment, node: Any) -> None:
    cmd, ok = frag.command(node)
    if not ok:
        return
    for detector, kind in PACKAGE_MANAGER_DETECTORS:
        if detector(cmd):
            frag.emit(node, kind)
            return


def _redirect_file(frag: _ShellFragment, node: Any) -> Optional[str]:
    for part in node.parts:
        if part.kind != "redirect" or part.type != ">":
            continue
        target = part.output
        if getattr(target, "kind", None) != "word" or target.parts:
            continue
        if node_source(target, frag.source) == target.word:
            return target.word
    return None


def _record_fetch_file(frag: _ShellFragment, node: Any) -> None:
    cmd, ok = frag.command(node)
    if not ok or not is_download_utility(cmd):
        return
    path = _redirect_file(frag, node)
    if path is None:
        path = get_output_file(cmd)
    if path is not None:
        logger.debug("%s: %s downloads to %s", frag.path, cmd[0], path)
        frag.tainted.add(path)


# ── Walker ──

def validate_shell_file(
    path: str,
    start_line: int,
    end_line: int,
    content: Union[bytes, str],
    tainted: TaintedFiles,
    results: PinningDependenciesData,
) -> None:
    """Parse ``content`` as shell and record every insecure pattern into ``results``.

    ``start_line``/``end_line`` offset the 1-based line of each node.
    ``tainted`` is read and extended in place. Raises ShellParsingError when
    the fragment, or a nested ``-c`` payload, does not parse; nested failures
    are raised after the rest of the fragment has been walked.
    """
    source = _as_text(content)
    trees = parse_shell(source, path)
    frag = _ShellFragment(path, source, start_line, end_line, tainted, results)

    nested_error: Optional[ShellParsingError] = None
    for tree in trees:
        for node in iter_nodes(tree):
            try:
                _walk_nested_command(frag, node)
            except ShellParsingError as e:
                if nested_error is None:
                    nested_error = e
            _collect_fetch_pipe_execute(frag, node)
            _collect_execute_files(frag, node)
            _collect_fetch_proc_subst_execute(frag, node)
            _collect_unpinned_package_manager_download(frag, node)
            _record_fetch_file(frag, node)

    if nested_error is not None:
        raise nested_error


# ── Shell script files ──

def _is_matching_shell_script_file(path: str, content: Union[bytes, str], shells: tuple[str, ...]) -> bool:
    has_shell_extension = any(path.endswith("." + name) for name in shells)

    lines = _as_text(content).splitlines()
    if not lines:
        return has_shell_extension
    first = lines[0]
    # #!/bin/XXX, #!XXX, #!/usr/bin/env XXX, #!env XXX
    if not first.startswith("#!"):
        return has_shell_extension

    parts = first[2:].split(" ")
    for name in shells:
        if is_binary_name(name, parts[0]):
            return True
        if len(parts) >= 2 and is_binary_name("env", parts[0]) and is_binary_name(name, parts[1]):
            return True
    # Shebang for some other interpreter
    return False


def is_shell_script_file(path: str, content: Union[bytes, str]) -> bool:
    """Any shell, including the ones bashlex cannot parse."""
    return _is_matching_shell_script_file(path, content, SHELL_INTERPRETERS)


def is_supported_shell_script_file(path: str, content: Union[bytes, str]) -> bool:
    """A shell script we can parse. The shebang decides; the extension is the fallback."""
    return _is_matching_shell_script_file(path, content, SUPPORTED_SHELLS)


def validate_shell_script(path: str, content: Union[bytes, str], results: PinningDependenciesData) -> None:
    """Analyze one shell script file as a single fragment with a fresh taint set."""
    if not is_supported_shell_script_file(path, content):
        return
    if not file_contains_commands(content):
        return
    validate_shell_file(path, 0, 0, content, set(), results)

