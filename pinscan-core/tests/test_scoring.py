"""Tests for the 0-10 pinning score."""

from pathlib import Path

from pinscan.models.dependencies import (
    Dependency,
    DependencyKind,
    PinningDependenciesData,
    SourceLocation,
)
from pinscan.policy.scoring import (
    aggregate_weighted,
    compute_score,
    dependency_text,
    proportional_score,
)
from pinscan.scanner.coordinator import LocalRepoClient
from pinscan.scanner.pinning import collect_pinning_dependencies

FIXTURES = Path(__file__).parent / "fixtures"


def _dep(kind: DependencyKind, pinned: bool, snippet: str = "") -> Dependency:
    return Dependency(
        kind=kind,
        pinned=pinned,
        location=SourceLocation(path="f", start_line=1, end_line=1, snippet=snippet),
    )


def _results(*deps: Dependency) -> PinningDependenciesData:
    results = PinningDependenciesData()
    for dep in deps:
        results.add(dep)
    return results


class TestArithmetic:
    """Score helpers."""

    def test_proportional(self):
        assert proportional_score(0, 0) == 10
        assert proportional_score(1, 2) == 5
        assert proportional_score(2, 3) == 6
        assert proportional_score(0, 4) == 0

    def test_weighted(self):
        assert aggregate_weighted([(5, 2), (10, 8)]) == 9
        assert aggregate_weighted([(10, 2), (0, 8)]) == 2


class TestComputeScore:
    """compute_score over collected dependencies."""

    def test_empty_is_perfect(self):
        score = compute_score(PinningDependenciesData())
        assert score.score == 10
        assert score.reason == "all dependencies are pinned"

    def test_all_pinned(self):
        score = compute_score(_results(
            _dep(DependencyKind.GITHUB_ACTION, True, "actions/checkout@abc"),
            _dep(DependencyKind.DOCKER_IMAGE, True),
        ))
        assert score.score == 10

    def test_third_party_weighs_more(self):
        github_owned_unpinned = compute_score(_results(
            _dep(DependencyKind.GITHUB_ACTION, False, "actions/checkout@v4"),
            _dep(DependencyKind.GITHUB_ACTION, True, "octo/deploy@abc"),
        ))
        third_party_unpinned = compute_score(_results(
            _dep(DependencyKind.GITHUB_ACTION, True, "actions/checkout@abc"),
            _dep(DependencyKind.GITHUB_ACTION, False, "octo/deploy@v1"),
        ))
        assert github_owned_unpinned.categories[0].score == 8
        assert third_party_unpinned.categories[0].score == 2
        assert github_owned_unpinned.score > third_party_unpinned.score

    def test_package_managers_share_a_category(self):
        score = compute_score(_results(
            _dep(DependencyKind.PIP_COMMAND, False),
            _dep(DependencyKind.NPM_COMMAND, False),
        ))
        packages = score.categories[-1]
        assert packages.total == 2
        assert packages.score == 0
        # actions, images and downloads are empty: (10 + 10 + 10 + 0) // 4
        assert score.score == 7
        assert score.reason == "dependency not pinned by hash detected"

    def test_sample_repo(self):
        results = collect_pinning_dependencies(LocalRepoClient(FIXTURES / "sample_repo"))
        assert compute_score(results).score == 3


class TestDependencyText:
    """Warning lines."""

    def test_action_owner(self):
        assert dependency_text(_dep(DependencyKind.GITHUB_ACTION, False, "actions/cache@v3")) == (
            "GitHub-owned GitHubAction not pinned by hash"
        )
        assert dependency_text(_dep(DependencyKind.GITHUB_ACTION, False, "octo/x@v1")) == (
            "third-party GitHubAction not pinned by hash"
        )

    def test_other_kinds(self):
        assert dependency_text(_dep(DependencyKind.DOWNLOAD_THEN_RUN, False)) == (
            "downloadThenRun not pinned by hash"
        )
