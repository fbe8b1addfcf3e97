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

"""Dockerfile analyzer: base-image pinning and RUN download detection.

FROM lines must reference an image digest (``@sha256:...``) or a build
stage that does. Multi-stage aliases carry their pinned state forward:
``FROM x@sha256:... AS base`` makes a later ``FROM base`` pinned.

RUN instructions are joined into one shell fragment each and fed to the
shell analyzer with a single taint set for the whole file. A RUN that opens
heredocs (``RUN <<EOF``) is analyzed through its heredoc bodies instead.
"""

from __future__ import annotations

import io
import json
import logging
import posixpath
import re
from typing import Any, Union

from dockerfile_parse import DockerfileParser

from pinscan.errors import DockerfileParsingError, InternalError
from pinscan.models.dependencies import (
    Dependency,
    DependencyKind,
    PinningDependenciesData,
    SourceLocation,
)
from pinscan.scanner.shell_analyzer import (
    file_contains_commands,
    is_shell_script_file,
    validate_shell_file,
)

logger = logging.getLogger(__name__)


# ── Dockerfile detection ──

# Source files that can match the *Dockerfile* glob but never are one
NON_DOCKERFILE_EXTENSIONS = (".go", ".c", ".cpp", ".rs", ".js", ".py", ".pyc", ".java")

VENDOR_DIRECTORIES = frozenset({"vendor", "third_party"})

# Dockerfile.template, Dockerfile_tmpl, Dockerfile-name.tpl
TEMPLATE_NAME_PARTS = frozenset({"template", "tmpl", "tpl"})

_PINNED_IMAGE = re.compile(r".*@sha256:([a-f\d]{64}|\${.*})")
_NAME_SEPARATORS = re.compile(r"[.\-_]")
# RUN --mount=... --network=... before the command
_RUN_FLAGS = re.compile(r"^(?:--\S+(?:\s+|$))+")
# <<EOF, <<-EOF, <<"EOF", <<'EOF'; not the <<< here-string
_HEREDOC_MARKER = re.compile(r"(?<!<)<<(?!<)(-?)\s*([\"']?)([A-Za-z_][\w.-]*)\2")
HEREDOC_INSTRUCTIONS = frozenset({"RUN", "COPY", "ADD"})


def is_dockerfile(path: str, content: Union[bytes, str]) -> bool:
    """Lenient: anything matched by name that is not source code or a shell script."""
    if path.endswith(NON_DOCKERFILE_EXTENSIONS):
        return False
    return not is_shell_script_file(path, content)


def file_is_in_vendor_dir(path: str) -> bool:
    parts = posixpath.normpath(path).split("/")
    return any(p.lower() in VENDOR_DIRECTORIES for p in parts)


def is_template_file(path: str) -> bool:
    parts = _NAME_SEPARATORS.split(posixpath.basename(path))
    return any(p.lower() in TEMPLATE_NAME_PARTS for p in parts)


def is_image_reference_pinned(name: str) -> bool:
    return _PINNED_IMAGE.match(name) is not None


# ── Parsing ──

def _attach_heredocs(instructions: list[dict[str, Any]], lines: list[str], path: str) -> list[dict[str, Any]]:
    """Move heredoc bodies onto the instruction that opens them.

    dockerfile-parse reads each body line as an instruction of its own;
    those pseudo-instructions are dropped.
    """
    kept = []
    body_end = -1
    for instruction in instructions:
        if instruction["startline"] <= body_end:
            continue
        kept.append(instruction)
        if instruction["instruction"] not in HEREDOC_INSTRUCTIONS:
            continue

        heredocs = []
        lineno = instruction["endline"] + 1
        for strip_tabs, _, delimiter in _HEREDOC_MARKER.findall(instruction["value"]):
            start = lineno
            body = []
            while lineno < len(lines):
                text = lines[lineno].lstrip("\t") if strip_tabs else lines[lineno]
                if text.rstrip() == delimiter:
                    break
                body.append(text + "\n")
                lineno += 1
            else:
                raise DockerfileParsingError(
                    f"unterminated heredoc {delimiter!r}", path=path, line=instruction["startline"] + 1
                )
            heredocs.append({"startline": start, "content": "".join(body)})
            body_end = lineno
            lineno += 1
        if heredocs:
            instruction["heredocs"] = heredocs
    return kept


def parse_instructions(content: Union[bytes, str], path: str = "") -> list[dict[str, Any]]:
    """Instruction dicts from dockerfile-parse (0-based ``startline``/``endline``).

    Instructions that open heredocs carry a ``heredocs`` list of
    ``{"startline": <first body line>, "content": <body>}``.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    try:
        parser = DockerfileParser(fileobj=io.BytesIO(content), env_replace=False)
        instructions = parser.structure
        lines = content.decode("utf-8").split("\n")
    except (ValueError, UnicodeDecodeError) as e:
        raise DockerfileParsingError(f"invalid Dockerfile: {e}", path=path) from e
    return _attach_heredocs(instructions, lines, path)


def _from_arguments(value: str) -> list[str]:
    # --platform=... and other flags are not image references
    return [token for token in value.split() if not token.startswith("--")]


def _run_command(value: str) -> str:
    """Shell text of a RUN value; exec-form JSON arrays are joined with spaces."""
    text = _RUN_FLAGS.sub("", value.strip())
    if text.startswith("["):
        try:
            argv = json.loads(text)
        except ValueError:
            return text
        if isinstance(argv, list) and all(isinstance(a, str) for a in argv):
            return " ".join(argv)
    return text


# ── FROM pinning ──

def validate_dockerfile_pinning(
    path: str,
    content: Union[bytes, str],
    results: PinningDependenciesData,
    *,
    skip_vendor: bool = True,
) -> None:
    """Record one DockerImage dependency per FROM line.

    Raises DockerfileParsingError on unparseable content and InternalError
    on a FROM line that is neither ``name`` nor ``name AS alias``.
    """
    if skip_vendor and file_is_in_vendor_dir(path):
        return
    if not is_dockerfile(path, content):
        return
    if not file_contains_commands(content):
        return
    if is_template_file(path):
        logger.debug("Skipping Dockerfile template %s", path)
        return

    pinned_as_names: dict[str, bool] = {}
    for instruction in parse_instructions(content, path):
        if instruction["instruction"] != "FROM":
            continue

        args = _from_arguments(instruction["value"])
        location = SourceLocation(
            path=path,
            start_line=instruction["startline"] + 1,
            end_line=instruction["endline"] + 1,
            snippet=instruction["content"].rstrip("\n"),
        )

        if args and args[0].lower() == "scratch":
            if len(args) == 3 and args[1].lower() == "as":
                pinned_as_names[args[2]] = True
            continue

        if len(args) == 3 and args[1].lower() == "as":
            name, alias = args[0], args[2]
            pinned_as_names[alias] = pinned_as_names.get(name, False) or is_image_reference_pinned(name)
            results.add(
                Dependency(
                    name=name,
                    pinned_at=alias,
                    pinned=pinned_as_names[alias],
                    kind=DependencyKind.DOCKER_IMAGE,
                    location=location,
                )
            )
        elif len(args) == 1:
            name = args[0]
            image, _, tag = name.partition(":")
            results.add(
                Dependency(
                    name=image,
                    pinned_at=tag or None,
                    pinned=pinned_as_names.get(name, False) or is_image_reference_pinned(name),
                    kind=DependencyKind.DOCKER_IMAGE,
                    location=location,
                )
            )
        else:
            raise InternalError(
                f"{path}:{location.start_line}: unexpected FROM arguments: {instruction['value']!r}"
            )


# ── RUN downloads ──

def validate_dockerfile_insecure_downloads(
    path: str,
    content: Union[bytes, str],
    results: PinningDependenciesData,
    *,
    skip_vendor: bool = True,
) -> None:
    """Walk every RUN instruction, sharing one taint set across the file.

    Raises DockerfileParsingError or ShellParsingError for unparseable
    content and InternalError for a RUN instruction with no arguments.
    """
    if skip_vendor and file_is_in_vendor_dir(path):
        return
    if not is_dockerfile(path, content):
        return
    if not file_contains_commands(content):
        return

    tainted: set[str] = set()
    for instruction in parse_instructions(content, path):
        if instruction["instruction"] != "RUN":
            continue
        if "heredocs" in instruction:
            for heredoc in instruction["heredocs"]:
                body_lines = heredoc["content"].count("\n")
                validate_shell_file(
                    path,
                    heredoc["startline"],
                    heredoc["startline"] + body_lines - 1,
                    heredoc["content"],
                    tainted,
                    results,
                )
            continue
        command = _run_command(instruction["value"])
        if not command:
            raise InternalError(f"{path}:{instruction['startline'] + 1}: RUN instruction with no arguments")
        validate_shell_file(
            path,
            instruction["startline"],
            instruction["endline"],
            command,
            tainted,
            results,
        )

