"""Tests for the result models, remediation text and JSON output."""

import json
from pathlib import Path

from pinscan.models.dependencies import (
    Dependency,
    DependencyKind,
    PinningDependenciesData,
    SourceLocation,
)
from pinscan.models.report import ScanReport
from pinscan.reporter.json_out import to_canonical_json, write_report
from pinscan.scanner.remediation import get_fix_for_dependency, populate_remediations


def _dep(kind: DependencyKind, pinned: bool = False, **kwargs) -> Dependency:
    return Dependency(
        kind=kind,
        pinned=pinned,
        location=SourceLocation(path="Dockerfile", start_line=1, end_line=1),
        **kwargs,
    )


class TestSourceLocation:
    """Line bookkeeping."""

    def test_end_line_clamped(self):
        loc = SourceLocation(path="a", start_line=5, end_line=0)
        assert loc.end_line == 5

    def test_multi_line_kept(self):
        loc = SourceLocation(path="a", start_line=5, end_line=7)
        assert loc.end_line == 7


class TestPinningDependenciesData:
    """Result collection helpers."""

    def test_unparsed_files_dedup(self):
        data = PinningDependenciesData()
        data.record_error("a.yml", "bad yaml")
        data.record_error("a.yml", "bad yaml again")
        data.record_error("b.yml", "no os", kind="element", line=4)
        data.record_error("c.sh", "bad shell")
        assert data.unparsed_files == ["a.yml", "c.sh"]

    def test_by_kind(self):
        data = PinningDependenciesData()
        data.add(_dep(DependencyKind.DOCKER_IMAGE))
        data.add(_dep(DependencyKind.NPM_COMMAND))
        assert len(data.by_kind(DependencyKind.NPM_COMMAND)) == 1


class TestRemediation:
    """Fix text for unpinned dependencies."""

    def test_pinned_has_no_fix(self):
        assert get_fix_for_dependency(_dep(DependencyKind.DOCKER_IMAGE, pinned=True)) is None

    def test_image_fix_names_image(self):
        fix = get_fix_for_dependency(_dep(DependencyKind.DOCKER_IMAGE, name="python", pinned_at="3.7"))
        assert "python@sha256:" in fix

    def test_action_fix_keeps_tag(self):
        fix = get_fix_for_dependency(
            _dep(DependencyKind.GITHUB_ACTION, name="actions/checkout", pinned_at="v4")
        )
        assert "actions/checkout@<40-char-sha> # v4" in fix

    def test_every_kind_has_a_fix(self):
        for kind in DependencyKind:
            assert get_fix_for_dependency(_dep(kind))

    def test_populate(self):
        data = PinningDependenciesData()
        data.add(_dep(DependencyKind.NPM_COMMAND))
        data.add(_dep(DependencyKind.DOCKER_IMAGE, pinned=True))
        populate_remediations(data)
        assert "npm ci" in data.dependencies[0].remediation
        assert data.dependencies[1].remediation is None


class TestJsonOutput:
    """Canonical JSON."""

    def test_sorted_keys_and_newline(self):
        text = to_canonical_json({"b": 1, "a": 2})
        assert text == '{\n  "a": 2,\n  "b": 1\n}\n'

    def test_report_round_trip_fields(self, tmp_path: Path):
        report = ScanReport(scan_target="/repo", dependencies=[_dep(DependencyKind.PIP_COMMAND)])
        out = tmp_path / "report.json"
        write_report(report, out)
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["scan_target"] == "/repo"
        assert data["dependencies"][0]["kind"] == "pipCommand"
        assert data["score"]["score"] == 10

    def test_write_report_leaves_no_temp_files(self, tmp_path: Path):
        out = tmp_path / "reports" / "pinscan.json"
        write_report(ScanReport(scan_target="/repo"), out)
        write_report(ScanReport(scan_target="/other"), out)
        assert [p.name for p in out.parent.iterdir()] == ["pinscan.json"]
        assert json.loads(out.read_text(encoding="utf-8"))["scan_target"] == "/other"
