"""Tests for the shell fragment walker and shell script files."""

import pytest

from pinscan.errors import ShellParsingError
from pinscan.models.dependencies import DependencyKind, PinningDependenciesData
from pinscan.scanner.shell_analyzer import (
    file_contains_commands,
    is_shell_script_file,
    is_supported_shell_script_file,
    validate_shell_file,
    validate_shell_script,
)


def _scan(content: str, path: str = "script.sh") -> PinningDependenciesData:
    results = PinningDependenciesData()
    validate_shell_script(path, content, results)
    return results


class TestPipeToInterpreter:
    """curl ... | bash style downloads."""

    @pytest.fixture(autouse=True)
    def setup(self):
        self.results = _scan("echo start\ncurl -sSL https://example.com/install.sh | sudo bash\n")

    def test_one_finding(self):
        assert len(self.results.dependencies) == 1

    def test_kind_and_pinned(self):
        dep = self.results.dependencies[0]
        assert dep.kind == DependencyKind.DOWNLOAD_THEN_RUN
        assert dep.pinned is False

    def test_reported_at_pipe_line(self):
        loc = self.results.dependencies[0].location
        assert loc.start_line == 2
        assert loc.end_line == 2
        assert loc.snippet == "curl -sSL https://example.com/install.sh | sudo bash"

    def test_pipe_to_non_interpreter_ignored(self):
        results = _scan("curl -s https://example.com/data.json | jq .\n")
        assert results.dependencies == []


class TestDownloadedFileExecution:
    """A file written by a download utility and executed later."""

    def test_wget_output_then_bash(self):
        results = _scan("wget -O /tmp/setup.sh https://example.com/setup.sh\nbash /tmp/setup.sh\n")
        assert len(results.dependencies) == 1
        assert results.dependencies[0].location.start_line == 2

    def test_curl_redirect_then_execute(self):
        """A stdout redirect marks the target as downloaded."""
        results = _scan("curl -s https://example.com/i.sh > i.sh\nchmod +x i.sh\n./i.sh\n")
        assert len(results.dependencies) == 1
        assert results.dependencies[0].location.start_line == 3

    def test_unrelated_file_not_flagged(self):
        results = _scan("wget -O /tmp/setup.sh https://example.com/setup.sh\nbash other.sh\n")
        assert results.dependencies == []

    def test_taint_shared_between_fragments(self):
        """The caller's taint set carries downloads into the next fragment."""
        tainted: set[str] = set()
        results = PinningDependenciesData()
        validate_shell_file("Dockerfile", 1, 1, "wget https://example.com/tool.sh", tainted, results)
        assert tainted == {"tool.sh"}
        validate_shell_file("Dockerfile", 2, 2, "sh tool.sh", tainted, results)
        assert len(results.dependencies) == 1
        assert results.dependencies[0].location.start_line == 3


class TestProcessSubstitution:
    """bash <(curl ...) downloads."""

    def test_detected(self):
        results = _scan("bash <(curl -fsSL https://example.com/install.sh)\n")
        assert len(results.dependencies) == 1
        assert results.dependencies[0].kind == DependencyKind.DOWNLOAD_THEN_RUN

    def test_non_download_ignored(self):
        results = _scan("bash <(echo ls)\n")
        assert results.dependencies == []


class TestNestedShell:
    """sh -c payloads are parsed and walked."""

    def test_single_quoted_payload(self):
        results = _scan("bash -c 'curl -s https://example.com/x.sh | sh'\n")
        assert len(results.dependencies) == 1
        assert results.dependencies[0].location.start_line == 1

    def test_payload_reported_at_parent_line(self):
        results = _scan("echo one\nsh -c \"pip install requests\"\n")
        assert len(results.dependencies) == 1
        dep = results.dependencies[0]
        assert dep.kind == DependencyKind.PIP_COMMAND
        assert dep.location.start_line == 2

    def test_python_payload_not_parsed(self):
        results = _scan("python -c 'import os; os.system(1)'\n")
        assert results.dependencies == []


class TestPackageManagers:
    """Unpinned package manager installs inside shell text."""

    @pytest.mark.parametrize("line,kind", [
        ("go get github.com/ossf/scorecard", DependencyKind.GO_COMMAND),
        ("pip install flask", DependencyKind.PIP_COMMAND),
        ("python3 -m pip install flask", DependencyKind.PIP_COMMAND),
        ("npm install", DependencyKind.NPM_COMMAND),
        ("choco install git", DependencyKind.CHOCO_COMMAND),
        ("nuget install Newtonsoft.Json", DependencyKind.NUGET_COMMAND),
    ])
    def test_kind(self, line, kind):
        results = _scan(line + "\n")
        assert [d.kind for d in results.dependencies] == [kind]

    def test_pinned_installs_not_reported(self):
        results = _scan("npm ci\npip install --require-hashes -r requirements.txt\ngo install example.com/x@v1.0.0\n")
        assert results.dependencies == []

    def test_inside_and_list(self):
        results = _scan("apt-get update && pip install flask && npm install\n")
        kinds = [d.kind for d in results.dependencies]
        assert kinds == [DependencyKind.PIP_COMMAND, DependencyKind.NPM_COMMAND]


class TestWalkerProperties:
    """Determinism and error reporting."""

    def test_idempotent(self):
        content = "wget -O a.sh https://x/a.sh\nbash a.sh\ncurl https://x | sh\npip install y\n"
        first = _scan(content)
        second = _scan(content)
        assert first.dependencies == second.dependencies
        assert len(first.dependencies) == 3

    def test_parse_error_raises(self):
        results = PinningDependenciesData()
        with pytest.raises(ShellParsingError):
            validate_shell_file("bad.sh", 0, 0, "echo 'unterminated\n", set(), results)

    def test_case_statement_is_a_parse_error(self):
        # bashlex does not implement case ... esac
        results = PinningDependenciesData()
        with pytest.raises(ShellParsingError):
            validate_shell_file("x.sh", 0, 0, 'case "$1" in\n  a) curl https://x | bash ;;\nesac\n', set(), results)
        assert results.dependencies == []

    def test_empty_fragment(self):
        results = PinningDependenciesData()
        validate_shell_file("x.sh", 0, 0, "", set(), results)
        assert results.dependencies == []

    def test_comment_only_file_skipped(self):
        """Files with nothing but comments are never parsed."""
        results = _scan("# curl https://example.com | bash\n\n# done\n")
        assert results.dependencies == []

    def test_file_contains_commands(self):
        assert not file_contains_commands("# a\n   # b\n\n")
        assert file_contains_commands("# a\necho hi\n")
        assert file_contains_commands(b"echo hi")


class TestShellScriptDetection:
    """Which files are treated as shell scripts."""

    @pytest.mark.parametrize("path,content,expected", [
        ("run.sh", "echo hi\n", True),
        ("run", "#!/bin/bash\necho hi\n", True),
        ("run", "#!/usr/bin/bash\necho hi\n", True),
        ("run", "#!/bin/env bash\necho hi\n", True),
        ("run", "#!/usr/bin/env sh\necho hi\n", True),
        ("run.sh", "#!/bin/mksh\necho hi\n", True),
        ("run.sh", "#!/usr/bin/awk -f\n{ print }\n", False),
        ("run.sh", "#!/bin/zsh\necho hi\n", False),
        ("run.py", "print('hi')\n", False),
        ("empty.bash", "", True),
    ])
    def test_supported(self, path, content, expected):
        assert is_supported_shell_script_file(path, content) is expected

    def test_any_shell_includes_dash(self):
        assert is_shell_script_file("run", "#!/bin/dash\necho hi\n")
        assert not is_supported_shell_script_file("run", "#!/bin/dash\necho hi\n")

    def test_unsupported_script_not_scanned(self):
        results = _scan("#!/bin/zsh\ncurl https://x | bash\n", path="run.zsh")
        assert results.dependencies == []

