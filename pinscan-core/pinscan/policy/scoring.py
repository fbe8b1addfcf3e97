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

"""Pinning score: a 0-10 rating from the collected dependencies.

Each category scores ``10 * pinned // total`` (10 when it is empty). GitHub
actions are split into GitHub-owned and third-party tallies weighted 2:8.
The final score is the floored mean of the category scores.
"""

from __future__ import annotations

from pinscan.models.dependencies import (
    PACKAGE_MANAGER_KINDS,
    Dependency,
    DependencyKind,
    PinningDependenciesData,
)
from pinscan.models.report import CategoryScore, PinningScore

MAX_SCORE = 10

GITHUB_OWNED_WEIGHT = 2
THIRD_PARTY_WEIGHT = 8

GITHUB_OWNED_PREFIXES = ("actions/", "github/")

CATEGORY_ACTIONS = "GitHub actions"
CATEGORY_GITHUB_OWNED = "GitHub-owned actions"
CATEGORY_THIRD_PARTY = "third-party actions"
CATEGORY_IMAGES = "container images"
CATEGORY_DOWNLOADS = "download-then-run"
CATEGORY_PACKAGES = "package-manager installs"


def proportional_score(pinned: int, total: int) -> int:
    if total == 0:
        return MAX_SCORE
    return min(MAX_SCORE * pinned // total, MAX_SCORE)


def aggregate_scores(*scores: int) -> int:
    return sum(scores) // len(scores)


def aggregate_weighted(weighted: list[tuple[int, int]]) -> int:
    total_weight = sum(w for _, w in weighted)
    return sum(s * w for s, w in weighted) // total_weight


def is_github_owned_action(uses: str) -> bool:
    return uses.startswith(GITHUB_OWNED_PREFIXES)


def dependency_text(dep: Dependency) -> str:
    """One-line warning for an unpinned dependency."""
    if dep.kind == DependencyKind.GITHUB_ACTION:
        owner = "GitHub-owned" if is_github_owned_action(dep.location.snippet) else "third-party"
        return f"{owner} {dep.kind.value} not pinned by hash"
    return f"{dep.kind.value} not pinned by hash"


def _tally(name: str, deps: list[Dependency]) -> CategoryScore:
    pinned = sum(1 for d in deps if d.pinned)
    return CategoryScore(
        category=name,
        pinned=pinned,
        total=len(deps),
        score=proportional_score(pinned, len(deps)),
    )


def compute_score(results: PinningDependenciesData) -> PinningScore:
    """Score the dependencies of one scan."""
    actions = results.by_kind(DependencyKind.GITHUB_ACTION)
    github_owned = _tally(
        CATEGORY_GITHUB_OWNED,
        [d for d in actions if is_github_owned_action(d.location.snippet)],
    )
    third_party = _tally(
        CATEGORY_THIRD_PARTY,
        [d for d in actions if not is_github_owned_action(d.location.snippet)],
    )
    action_score = CategoryScore(
        category=CATEGORY_ACTIONS,
        pinned=github_owned.pinned + third_party.pinned,
        total=github_owned.total + third_party.total,
        score=aggregate_weighted([
            (github_owned.score, GITHUB_OWNED_WEIGHT),
            (third_party.score, THIRD_PARTY_WEIGHT),
        ]),
    )

    images = _tally(CATEGORY_IMAGES, results.by_kind(DependencyKind.DOCKER_IMAGE))
    downloads = _tally(CATEGORY_DOWNLOADS, results.by_kind(DependencyKind.DOWNLOAD_THEN_RUN))
    packages = _tally(
        CATEGORY_PACKAGES,
        [d for d in results.dependencies if d.kind in PACKAGE_MANAGER_KINDS],
    )

    score = aggregate_scores(action_score.score, images.score, downloads.score, packages.score)
    reason = (
        "all dependencies are pinned"
        if score == MAX_SCORE
        else "dependency not pinned by hash detected"
    )
    return PinningScore(
        score=score,
        reason=reason,
        categories=[action_score, github_owned, third_party, images, downloads, packages],
    )
