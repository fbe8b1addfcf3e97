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

"""Pydantic models for pinning findings and the per-repository result."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DependencyKind(str, Enum):
    """How an external dependency is pulled into the build."""

    GITHUB_ACTION = "GitHubAction"
    DOCKER_IMAGE = "containerImage"
    DOWNLOAD_THEN_RUN = "downloadThenRun"
    GO_COMMAND = "goCommand"
    PIP_COMMAND = "pipCommand"
    NPM_COMMAND = "npmCommand"
    CHOCO_COMMAND = "chocoCommand"
    NUGET_COMMAND = "nugetCommand"


# Kinds produced by package-manager invocations in shell fragments
PACKAGE_MANAGER_KINDS = frozenset({
    DependencyKind.GO_COMMAND,
    DependencyKind.PIP_COMMAND,
    DependencyKind.NPM_COMMAND,
    DependencyKind.CHOCO_COMMAND,
    DependencyKind.NUGET_COMMAND,
})


class SourceLocation(BaseModel):
    """Where a dependency was found. Lines are 1-based."""

    model_config = ConfigDict(frozen=True)

    path: str
    start_line: int = 0
    end_line: int = 0
    snippet: str = ""

    @model_validator(mode="before")
    @classmethod
    def _clamp_end_line(cls, data: Any) -> Any:
        # Grammars that cannot report an end line hand us 0 or a smaller value.
        if isinstance(data, dict):
            start = data.get("start_line", 0)
            if data.get("end_line", 0) < start:
                data = {**data, "end_line": start}
        return data


class Dependency(BaseModel):
    """One external reference and whether it is pinned to an immutable identifier."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    pinned_at: Optional[str] = None
    pinned: bool = False
    kind: DependencyKind
    location: SourceLocation
    remediation: Optional[str] = None


class ProcessingError(BaseModel):
    """A file or element the engine had to skip."""

    path: str
    line: Optional[int] = None
    kind: str = "parsing"  # "parsing" or "element"
    message: str


class PinningDependenciesData(BaseModel):
    """Append-only result collection shared by every analyzer in one scan."""

    dependencies: list[Dependency] = Field(default_factory=list)
    processing_errors: list[ProcessingError] = Field(default_factory=list)

    def add(self, dependency: Dependency) -> None:
        self.dependencies.append(dependency)

    def record_error(self, path: str, message: str, *, kind: str = "parsing", line: Optional[int] = None) -> None:
        """Append a processing error unless the same one is already recorded.

        Workflow files are parsed by two analyzers; a broken one is reported once.
        """
        error = ProcessingError(path=path, line=line, kind=kind, message=message)
        if error not in self.processing_errors:
            self.processing_errors.append(error)

    def by_kind(self, kind: DependencyKind) -> list[Dependency]:
        return [d for d in self.dependencies if d.kind == kind]

    @property
    def unparsed_files(self) -> list[str]:
        """Paths that failed to parse, in scan order, without duplicates."""
        seen: dict[str, None] = {}
        for err in self.processing_errors:
            if err.kind == "parsing":
                seen.setdefault(err.path, None)
        return list(seen)
