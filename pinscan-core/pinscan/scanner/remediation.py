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

"""Remediation text for unpinned dependencies.

Every unpinned Dependency gets a remediation populated before the report
is generated. Dependencies are frozen, so the list is rewritten in place
with updated copies.
"""

from __future__ import annotations

from typing import Optional

from pinscan.models.dependencies import Dependency, DependencyKind, PinningDependenciesData

# ── Kind → Fix mapping ──

KIND_FIXES: dict[DependencyKind, str] = {
    DependencyKind.DOWNLOAD_THEN_RUN: (
        "Download the script to a file, verify it against a known SHA-256 checksum, "
        "then execute it. Never pipe remote content straight into an interpreter."
    ),
    DependencyKind.GO_COMMAND: (
        "Install Go modules at a full commit hash or an exact semantic version, "
        "e.g. `go install example.com/tool@v1.2.3`, or declare them in go.mod."
    ),
    DependencyKind.PIP_COMMAND: (
        "Install from a requirements file with pinned hashes: "
        "`pip install --require-hashes -r requirements.txt`."
    ),
    DependencyKind.NPM_COMMAND: "Use `npm ci` so installs are verified against package-lock.json.",
    DependencyKind.CHOCO_COMMAND: "Add `--requirechecksums` to `choco install` so package checksums are enforced.",
    DependencyKind.NUGET_COMMAND: (
        "Pass an explicit version (`-Version` for nuget, `--version` for dotnet add package), "
        "or restore from a lock file with RestorePackagesWithLockFile and RestoreLockedMode."
    ),
}


def _action_fix(dep: Dependency) -> str:
    name = dep.name or "owner/repo"
    current = f" # {dep.pinned_at}" if dep.pinned_at else ""
    return (
        f"Pin the action to a full-length commit SHA: `uses: {name}@<40-char-sha>{current}`. "
        "Keep the tag in a trailing comment so update tools can still track it."
    )


def _image_fix(dep: Dependency) -> str:
    name = dep.name or "image"
    return (
        f"Pin the base image by digest: `FROM {name}@sha256:<digest>`. "
        f"Resolve the digest with `docker buildx imagetools inspect {name}`."
    )


def get_fix_for_dependency(dep: Dependency) -> Optional[str]:
    """Remediation text for an unpinned dependency, or None when it is pinned."""
    if dep.pinned:
        return None
    if dep.kind == DependencyKind.GITHUB_ACTION:
        return _action_fix(dep)
    if dep.kind == DependencyKind.DOCKER_IMAGE:
        return _image_fix(dep)
    return KIND_FIXES.get(dep.kind)


def populate_remediations(results: PinningDependenciesData) -> None:
    """Attach remediation text to every unpinned dependency that has none."""
    for i, dep in enumerate(results.dependencies):
        if dep.remediation is None:
            fix = get_fix_for_dependency(dep)
            if fix is not None:
                results.dependencies[i] = dep.model_copy(update={"remediation": fix})
