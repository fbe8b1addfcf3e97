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

"""File walker and repository access for the pinning analyzers.

Primary strategy: git ls-files (if the target is a git checkout)
Fallback: recursive directory walk with .pinscanignore support

Analyzers never touch the filesystem themselves: they receive a path and
its bytes through ``on_matching_file_content_do``.
"""

from __future__ import annotations

import logging
import posixpath
import re
import subprocess
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol

logger = logging.getLogger(__name__)

# Default patterns to ignore when using directory walk fallback
DEFAULT_IGNORE_PATTERNS = {
    "__pycache__",
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    ".venv",
    "venv",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    "*.egg-info",
    ".eggs",
    "*.pyc",
    "*.pyo",
    "*.so",
    "*.dylib",
    "*.dll",
    # our own report output
    "pinscan_report.json",
}

IGNORE_FILE = ".pinscanignore"


class VisitResult(Enum):
    """What a file-content callback wants the iteration to do next.

    Errors are raised, not returned; raising also stops the iteration.
    """

    CONTINUE = "continue"
    STOP = "stop"


FileContentCallback = Callable[..., VisitResult]
PathPredicate = Callable[[str], bool]


class RepoClient(Protocol):
    """Read-only access to the files of one repository."""

    def list_files(self, predicate: PathPredicate) -> list[str]: ...

    def list_files_with_glob(self, pattern: str, case_sensitive: bool = False) -> list[str]: ...

    def read_file(self, path: str) -> bytes: ...


# ── Ignore handling ──

def _load_ignore_patterns(target_dir: Path, extra: Iterable[str] = ()) -> set[str]:
    """Default ignores plus .pinscanignore entries plus configured excludes."""
    patterns = set(DEFAULT_IGNORE_PATTERNS)
    patterns.update(extra)

    ignore_file = target_dir / IGNORE_FILE
    if ignore_file.exists():
        for line in ignore_file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                patterns.add(line)

    return patterns


def _should_ignore(path: Path, ignore_patterns: set[str]) -> bool:
    for pattern in ignore_patterns:
        if pattern.startswith("*"):
            suffix = pattern.lstrip("*")
            if path.name.endswith(suffix) or str(path).endswith(suffix):
                return True
        elif path.name == pattern or pattern in path.parts:
            return True
    return False


# ── Discovery ──

def get_files_git(target_dir: Path) -> Optional[list[Path]]:
    """Get tracked and untracked-but-not-ignored files using git ls-files.

    Returns None if git is not available or target_dir is not a git repo.
    """
    if not (target_dir / ".git").exists():
        return None
    try:
        result = subprocess.run(
            ["git", "ls-files", "--cached", "--others", "--exclude-standard"],
            cwd=str(target_dir),
            capture_output=True,
            text=True,
            timeout=30,
        )
    except FileNotFoundError:
        logger.debug("git not found in PATH")
        return None
    except subprocess.TimeoutExpired:
        logger.warning("git ls-files timed out")
        return None

    if result.returncode != 0:
        logger.debug("git ls-files failed: %s", result.stderr)
        return None

    return sorted(Path(line) for line in result.stdout.splitlines() if line)


def get_files_directory(target_dir: Path, ignore_patterns: set[str]) -> list[Path]:
    """Get files via recursive directory walk. Fallback when git is not available."""
    files = []
    for item in target_dir.rglob("*"):
        if item.is_file():
            rel_path = item.relative_to(target_dir)
            if not _should_ignore(rel_path, ignore_patterns):
                files.append(rel_path)
    return sorted(files)


def discover_files(target_dir: Path, exclude_patterns: Iterable[str] = ()) -> tuple[list[Path], str]:
    """Discover files to scan.

    Returns:
        (list of relative file paths, manifest_source: "git" or "directory")
    """
    if not target_dir.exists():
        raise FileNotFoundError(f"Target directory does not exist: {target_dir}")
    if not target_dir.is_dir():
        raise NotADirectoryError(f"Target is not a directory: {target_dir}")

    ignore_patterns = _load_ignore_patterns(target_dir, exclude_patterns)

    git_files = get_files_git(target_dir)
    if git_files is not None:
        files = [f for f in git_files if not _should_ignore(f, ignore_patterns)]
        logger.info("Discovered %d files via git ls-files", len(files))
        return files, "git"

    files = get_files_directory(target_dir, ignore_patterns)
    logger.info("Discovered %d files via directory walk", len(files))
    return files, "directory"


class LocalRepoClient:
    """RepoClient over a local directory. Paths are relative and slash-separated."""

    def __init__(self, root: Path, exclude_patterns: Iterable[str] = ()) -> None:
        self.root = root.resolve()
        files, self.manifest_source = discover_files(self.root, exclude_patterns)
        self._files = [f.as_posix() for f in files]

    @property
    def file_count(self) -> int:
        return len(self._files)

    def list_files(self, predicate: PathPredicate) -> list[str]:
        return [f for f in self._files if predicate(f)]

    def list_files_with_glob(self, pattern: str, case_sensitive: bool = False) -> list[str]:
        matcher = PathMatcher(pattern, case_sensitive)
        return self.list_files(matcher.matches)

    def read_file(self, path: str) -> bytes:
        return (self.root / path).read_bytes()


# ── Matching ──

def _glob_regex(pattern: str) -> re.Pattern:
    # `*` and `?` stop at `/`
    out = []
    for ch in pattern:
        if ch == "*":
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(ch))
    return re.compile("".join(out) + r"\Z")


class PathMatcher:
    """Glob over the full relative path, falling back to the file name."""

    def __init__(self, pattern: str, case_sensitive: bool = False) -> None:
        self.pattern = pattern
        self.case_sensitive = case_sensitive
        self._regex = _glob_regex(pattern if case_sensitive else pattern.lower())

    def matches(self, path: str) -> bool:
        if not self.case_sensitive:
            path = path.lower()
        if self._regex.match(path):
            return True
        return self._regex.match(posixpath.basename(path)) is not None


def is_testdata_file(path: str) -> bool:
    return (
        path.startswith("testdata/")
        or "/testdata/" in path
        or path.startswith("src/test/")
        or "/src/test/" in path
    )


def on_matching_file_content_do(
    client: RepoClient,
    matcher: PathMatcher,
    callback: FileContentCallback,
    *args: Any,
    skip_testdata: bool = True,
    on_read_error: Optional[Callable[[str, OSError], None]] = None,
) -> None:
    """Call ``callback(path, content, *args)`` for each matching file until it returns STOP.

    A file that cannot be read (deleted from the worktree, a symlink to a
    directory) is logged, handed to ``on_read_error`` and skipped.
    """

    def predicate(path: str) -> bool:
        if skip_testdata and is_testdata_file(path):
            return False
        return matcher.matches(path)

    for path in client.list_files(predicate):
        try:
            content = client.read_file(path)
        except OSError as e:
            logger.warning("Could not read %s: %s", path, e)
            if on_read_error is not None:
                on_read_error(path, e)
            continue
        if callback(path, content, *args) is VisitResult.STOP:
            break
