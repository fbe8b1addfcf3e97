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

"""GitHub workflow reader built on PyYAML's node graph.

``yaml.compose`` keeps start marks on every node, which gives us 1-based
line numbers for ``run:`` scripts and ``uses:`` references. Only the
fields the pinning analyzers need are modelled.
"""

from __future__ import annotations

import logging
import posixpath
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field

from pinscan.errors import WorkflowParsingError

logger = logging.getLogger(__name__)

BLOCK_STYLES = ("|", ">")


class YamlScalar(BaseModel):
    """A scalar value and where it starts. ``line`` is 1-based."""

    value: str
    line: int
    style: Optional[str] = None

    @property
    def is_block(self) -> bool:
        return self.style in BLOCK_STYLES


class Step(BaseModel):
    """One entry of ``jobs.<id>.steps``."""

    line: int
    name: Optional[str] = None
    id: Optional[str] = None
    uses: Optional[YamlScalar] = None
    run: Optional[YamlScalar] = None
    shell: Optional[YamlScalar] = None
    shell_is_malformed: bool = False
    if_condition: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id or f"line {self.line}"


class Job(BaseModel):
    """One entry of ``jobs``."""

    job_id: str
    line: int
    name: Optional[str] = None
    runs_on: list[str] = Field(default_factory=list)
    matrix_os: list[str] = Field(default_factory=list)
    include_os: list[str] = Field(default_factory=list)
    default_shell: Optional[str] = None
    uses: Optional[YamlScalar] = None
    steps: list[Step] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.job_id


class Workflow(BaseModel):
    default_shell: Optional[str] = None
    jobs: list[Job] = Field(default_factory=list)


# ── Workflow file detection ──

def is_workflow_file(path: str) -> bool:
    """``.yml``/``.yaml`` directly under ``.github/workflows``."""
    ext = posixpath.splitext(path)[1]
    if ext not in (".yml", ".yaml"):
        return False
    return posixpath.dirname(path.lower()) == ".github/workflows"


# ── Node helpers ──

def _get(node: Optional[yaml.Node], key: str) -> Optional[yaml.Node]:
    if not isinstance(node, yaml.MappingNode):
        return None
    for key_node, value_node in node.value:
        if isinstance(key_node, yaml.ScalarNode) and key_node.value == key:
            return value_node
    return None


def _scalar(node: Optional[yaml.Node]) -> Optional[YamlScalar]:
    if not isinstance(node, yaml.ScalarNode):
        return None
    return YamlScalar(value=node.value, line=node.start_mark.line + 1, style=node.style)


def _text(node: Optional[yaml.Node]) -> Optional[str]:
    scalar = _scalar(node)
    return scalar.value if scalar else None


def _string_list(node: Optional[yaml.Node]) -> list[str]:
    if isinstance(node, yaml.ScalarNode):
        return [node.value]
    if isinstance(node, yaml.SequenceNode):
        return [item.value for item in node.value if isinstance(item, yaml.ScalarNode)]
    return []


def _default_shell(node: Optional[yaml.Node]) -> Optional[str]:
    return _text(_get(_get(_get(node, "defaults"), "run"), "shell"))


def _runs_on(node: Optional[yaml.Node]) -> list[str]:
    # runs-on: label | [labels] | {group: ..., labels: ...}
    if isinstance(node, yaml.MappingNode):
        return _string_list(_get(node, "labels"))
    return _string_list(node)


def _include_os(matrix: Optional[yaml.Node]) -> list[str]:
    include = _get(matrix, "include")
    if not isinstance(include, yaml.SequenceNode):
        return []
    values = []
    for combination in include.value:
        value = _text(_get(combination, "os"))
        if value is not None:
            values.append(value)
    return values


def _parse_step(node: yaml.Node) -> Step:
    shell_node = _get(node, "shell")
    return Step(
        line=node.start_mark.line + 1,
        name=_text(_get(node, "name")),
        id=_text(_get(node, "id")),
        uses=_scalar(_get(node, "uses")),
        run=_scalar(_get(node, "run")),
        shell=_scalar(shell_node),
        shell_is_malformed=shell_node is not None and not isinstance(shell_node, yaml.ScalarNode),
        if_condition=_text(_get(node, "if")),
    )


def _parse_job(job_id: str, node: yaml.Node) -> Job:
    matrix = _get(_get(node, "strategy"), "matrix")
    steps_node = _get(node, "steps")
    steps = []
    if isinstance(steps_node, yaml.SequenceNode):
        steps = [_parse_step(s) for s in steps_node.value if isinstance(s, yaml.MappingNode)]
    return Job(
        job_id=job_id,
        line=node.start_mark.line + 1,
        name=_text(_get(node, "name")),
        runs_on=_runs_on(_get(node, "runs-on")),
        matrix_os=_string_list(_get(matrix, "os")),
        include_os=_include_os(matrix),
        default_shell=_default_shell(node),
        uses=_scalar(_get(node, "uses")),
        steps=steps,
    )


def parse_workflow(content: Union[bytes, str], path: str = "") -> Workflow:
    """Compose ``content`` and build a Workflow.

    Raises WorkflowParsingError on invalid YAML. Documents that are valid
    YAML but not workflow-shaped yield a Workflow with no jobs.
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    try:
        root = yaml.compose(content, Loader=yaml.SafeLoader)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        raise WorkflowParsingError(f"invalid workflow YAML: {e}", path=path, line=line) from e

    if not isinstance(root, yaml.MappingNode):
        logger.debug("%s: workflow root is not a mapping", path)
        return Workflow()

    jobs_node = _get(root, "jobs")
    jobs = []
    if isinstance(jobs_node, yaml.MappingNode):
        for key_node, value_node in jobs_node.value:
            if isinstance(key_node, yaml.ScalarNode) and isinstance(value_node, yaml.MappingNode):
                jobs.append(_parse_job(key_node.value, value_node))
    return Workflow(default_shell=_default_shell(root), jobs=jobs)
