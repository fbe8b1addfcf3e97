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

"""Repository-level NuGet settings that pin ``dotnet add package`` / ``nuget install``.

An unpinned NuGet command is still reproducible when the repository
restores from lock files or manages package versions centrally:

  - Central Package Management: a ``Directory.*.props`` file sets
    ``ManagePackageVersionsCentrally`` and lists every ``PackageVersion``.
    If all of those versions are fixed, the NuGet findings are pinned.
  - Locked restore: every ``*.csproj`` sets ``RestoreLockedMode``.

When only some versions are fixed, or only some projects are locked, the
findings stay unpinned and the remediation names what is left to fix.

Project files come from the scanned repository, so they are parsed with
defusedxml.
"""

from __future__ import annotations

import logging
import re

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import ParseError, fromstring
from pydantic import BaseModel, Field

from pinscan.models.dependencies import DependencyKind, PinningDependenciesData
from pinscan.scanner.coordinator import (
    PathMatcher,
    RepoClient,
    VisitResult,
    on_matching_file_content_do,
)

logger = logging.getLogger(__name__)

PROPS_GLOB = "Directory.*.props"
CSPROJ_GLOB = "*.csproj"

# 1.0.1, 1.0.1-beta.12, 1.0.1-alpha2, [1.0], [1.0.1], $(SomeVersionProperty)
_FIXED_VERSION = re.compile(
    r"^(\d+)\.(\d+)\.(\d+)(-[a-zA-Z]+(\.\d+)?|-[a-zA-Z]+\d*)?$"
    r"|^\[\d+\.\d+\]$"
    r"|^\[\d+\.\d+\.\d+\]$"
    r"|^\$\(.+\)$"
)

_TRUE_VALUES = frozenset({"1", "t", "true"})
_FALSE_VALUES = frozenset({"", "0", "f", "false"})


class MalformedProjectFileError(ValueError):
    """A props or csproj file that is not a usable MSBuild project."""


class NugetPackage(BaseModel):
    name: str = ""
    version: str = ""
    is_fixed: bool = False


class CentralPackageManagementConfig(BaseModel):
    enabled: bool = False
    package_versions: list[NugetPackage] = Field(default_factory=list)


class CsprojLockedMode(BaseModel):
    path: str
    locked: bool


# ── MSBuild XML ──

def _local_name(tag: str) -> str:
    # {http://schemas.microsoft.com/developer/msbuild/2003}Project -> Project
    return tag.rsplit("}", 1)[-1]


def _children(element, name: str) -> list:
    return [child for child in element if _local_name(child.tag) == name]


def _parse_project(content: bytes):
    try:
        root = fromstring(content)
    except (ParseError, DefusedXmlException) as e:
        raise MalformedProjectFileError(str(e)) from e
    if _local_name(root.tag) != "Project":
        raise MalformedProjectFileError(f"expected <Project> root element, got <{_local_name(root.tag)}>")
    return root


def _property_flag(group, name: str) -> bool:
    """True if any ``<name>`` under the PropertyGroup is set to a true value."""
    enabled = False
    for element in _children(group, name):
        value = (element.text or "").strip().lower()
        if value in _TRUE_VALUES:
            enabled = True
        elif value not in _FALSE_VALUES:
            raise MalformedProjectFileError(f"{name} is not a boolean: {element.text!r}")
    return enabled


def is_valid_fixed_version(version: str) -> bool:
    return _FIXED_VERSION.match(version) is not None


def get_central_package_management_config(content: bytes) -> CentralPackageManagementConfig:
    """Read ``ManagePackageVersionsCentrally`` and the PackageVersion items of a props file."""
    project = _parse_project(content)
    enabled = False
    for group in _children(project, "PropertyGroup"):
        if _property_flag(group, "ManagePackageVersionsCentrally"):
            enabled = True

    config = CentralPackageManagementConfig(enabled=enabled)
    if not enabled:
        return config

    for group in _children(project, "ItemGroup"):
        for item in _children(group, "PackageVersion"):
            version = item.get("Version", "")
            config.package_versions.append(
                NugetPackage(
                    name=item.get("Include", ""),
                    version=version,
                    is_fixed=is_valid_fixed_version(version),
                )
            )
    return config


def is_restore_locked_mode_enabled(content: bytes) -> bool:
    project = _parse_project(content)
    return any(_property_flag(group, "RestoreLockedMode") for group in _children(project, "PropertyGroup"))


# ── Post-processing ──

def _unpinned_nuget_indexes(results: PinningDependenciesData) -> list[int]:
    return [
        i
        for i, dep in enumerate(results.dependencies)
        if dep.kind == DependencyKind.NUGET_COMMAND and not dep.pinned
    ]


def _pin(results: PinningDependenciesData, indexes: list[int]) -> None:
    for i in indexes:
        results.dependencies[i] = results.dependencies[i].model_copy(
            update={"pinned": True, "remediation": None}
        )


def _append_remediation(results: PinningDependenciesData, indexes: list[int], note: str) -> None:
    for i in indexes:
        dep = results.dependencies[i]
        text = f"{dep.remediation} {note}" if dep.remediation else note
        results.dependencies[i] = dep.model_copy(update={"remediation": text})


def load_central_package_management(client: RepoClient, *, skip_testdata: bool = True) -> CentralPackageManagementConfig:
    """The first well-formed ``Directory.*.props`` file decides."""
    found: list[CentralPackageManagementConfig] = []

    def visit(path: str, content: bytes) -> VisitResult:
        try:
            found.append(get_central_package_management_config(content))
        except MalformedProjectFileError as e:
            logger.warning("Malformed properties file %s: %s", path, e)
            return VisitResult.CONTINUE
        return VisitResult.STOP

    on_matching_file_content_do(client, PathMatcher(PROPS_GLOB), visit, skip_testdata=skip_testdata)
    return found[0] if found else CentralPackageManagementConfig()


def load_csproj_locked_modes(client: RepoClient, *, skip_testdata: bool = True) -> list[CsprojLockedMode]:
    """``RestoreLockedMode`` for every well-formed ``*.csproj`` file."""
    modes: list[CsprojLockedMode] = []

    def visit(path: str, content: bytes) -> VisitResult:
        try:
            modes.append(CsprojLockedMode(path=path, locked=is_restore_locked_mode_enabled(content)))
        except MalformedProjectFileError as e:
            logger.warning("Malformed csproj file %s: %s", path, e)
        return VisitResult.CONTINUE

    on_matching_file_content_do(client, PathMatcher(CSPROJ_GLOB), visit, skip_testdata=skip_testdata)
    return modes


def post_process_nuget_dependencies(
    client: RepoClient,
    results: PinningDependenciesData,
    *,
    skip_testdata: bool = True,
) -> None:
    """Re-evaluate unpinned NuGet findings against the repository's NuGet settings.

    Runs after remediations are populated, so notes are appended to the
    existing fix text.
    """
    indexes = _unpinned_nuget_indexes(results)
    if not indexes:
        return

    cpm = load_central_package_management(client, skip_testdata=skip_testdata)
    csproj_modes = load_csproj_locked_modes(client, skip_testdata=skip_testdata)

    if cpm.enabled:
        unfixed = [p.version for p in cpm.package_versions if not p.is_fixed]
        if not unfixed:
            logger.debug("Central package management pins %d NuGet finding(s)", len(indexes))
            _pin(results, indexes)
            return
        _append_remediation(
            results,
            indexes,
            "Some centrally managed package versions are not fixed: " + ", ".join(unfixed),
        )
        return

    unlocked = [m.path for m in csproj_modes if not m.locked]
    if len(unlocked) == len(csproj_modes):
        # No csproj files, or none of them restore in locked mode
        return
    if not unlocked:
        logger.debug("RestoreLockedMode pins %d NuGet finding(s)", len(indexes))
        _pin(results, indexes)
        return
    _append_remediation(
        results,
        indexes,
        "Some csproj files set RestoreLockedMode to true while others do not: " + ", ".join(unlocked),
    )
