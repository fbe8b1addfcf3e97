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

"""Command extraction and utility classifiers for shell fragments.

Everything here works on a normalized argument list (a ``Command``):
- ``extract_command`` turns a bashlex ``command`` node into that list
- download utilities (curl, wget, gsutil, aws s3api get-object)
- interpreters (shells, python, other language runtimes)
- unpinned package-manager installs (go, pip, npm, choco, nuget/dotnet)
- GitHub action reference pinning

The name tables are module-level constants; the predicates are pure.
"""

from __future__ import annotations

import logging
import posixpath
import re
from typing import Any, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

Command = list[str]


# ── Name tables ──

# Shells bashlex can parse
SUPPORTED_SHELLS: tuple[str, ...] = ("sh", "bash", "mksh")
OTHER_SHELLS: tuple[str, ...] = ("dash", "ksh")
SHELL_NAMES: tuple[str, ...] = SUPPORTED_SHELLS + OTHER_SHELLS
SHELL_INTERPRETERS: tuple[str, ...] = ("exec", "su") + SHELL_NAMES
PYTHON_INTERPRETERS: tuple[str, ...] = ("python", "python3", "python2.7")
OTHER_INTERPRETERS: tuple[str, ...] = ("perl", "ruby", "php", "node", "nodejs", "java")
INTERPRETERS: tuple[str, ...] = OTHER_INTERPRETERS + SHELL_INTERPRETERS + PYTHON_INTERPRETERS

# aws is matched separately, only as `aws s3api get-object`
DOWNLOAD_UTILITIES: tuple[str, ...] = ("curl", "wget", "gsutil")

# go get/install flags skipped while looking for the package argument
GO_SKIPPED_FLAGS = frozenset({"-d", "-f", "-t", "-u", "-v", "-fix", "-insecure"})
NPM_INSTALL_VERBS = frozenset({"install", "i", "install-test", "update"})
CHOCO_CHECKSUM_FLAGS = frozenset({"--requirechecksum", "--requirechecksums", "--require-checksums"})


# ── Patterns ──

_GO_HASH = re.compile(r"^[A-Fa-f0-9]{40,}$")
_GO_SEMVER = re.compile(r"^v\d+\.\d+\.\d+(-[0-9A-Za-z-.]+)?(\+[0-9A-Za-z-.]+)?$")
_GO_REMOTE_MODULE = re.compile(r"\w+\.\w+/\w+")
_PIP_REMOTE_SOURCE = re.compile(r"^(git|svn|hg|bzr).+$")
_PIP_PINNED_GIT_SOURCE = re.compile(r"^git(\+(https?|ssh|git))?\:\/\/.*(.git)?@[a-fA-F0-9]{40}(#egg=.*)?$")
_LOCAL_ACTION = re.compile(r"^\..+[^/]")
_HASH_PINNED_ACTION = re.compile(r"@[a-fA-F\d]{40,}$")
_DIGEST_PINNED_DOCKER_ACTION = re.compile(r"^docker://.*@sha256:[a-fA-F\d]{64}$")

_SINGLE_QUOTED = re.compile(r"^'[^']*'$", re.DOTALL)
_DOUBLE_QUOTED_LITERAL = re.compile(r'^"(?:[^"\\$`]|\\.)*"$', re.DOTALL)


# ── Path helpers (slash-separated, like the scripts we read) ──

def _path_base(name: str) -> str:
    stripped = name.rstrip("/")
    if not stripped:
        return "/" if name else "."
    return posixpath.basename(stripped)


def _clean(name: str) -> str:
    return posixpath.normpath(name) if name else "."


def _is_directory_target(target: str) -> bool:
    return _clean(posixpath.dirname(target)) == _clean(target)


def _url_base(url: str) -> Optional[str]:
    try:
        return _path_base(urlparse(url).path)
    except ValueError as e:
        logger.debug("Unparseable download URL %r: %s", url, e)
        return None


# ── Command extraction ──

def node_source(node: Any, source: str) -> str:
    """Raw text a bashlex node was parsed from."""
    start, end = node.pos
    return source[start:end]


def word_literal(word: Any, source: str) -> Optional[str]:
    """Normalize one bashlex word, or None when it is not a single literal part.

    Single-quoted words keep their quotes, double-quoted words without
    expansions keep theirs, bare literals are returned as-is.
    """
    if getattr(word, "kind", None) != "word" or word.parts:
        return None
    raw = node_source(word, source)
    if _SINGLE_QUOTED.match(raw):
        return f"'{word.word}'"
    if _DOUBLE_QUOTED_LITERAL.match(raw):
        return f'"{word.word}"'
    if raw == word.word:
        return word.word
    # Concatenated quoting like foo"bar" or escaped characters
    return None


def quoted_payload(word: Any, source: str) -> Optional[str]:
    """Unquoted value of a single- or double-quoted literal word."""
    if getattr(word, "kind", None) != "word" or word.parts:
        return None
    raw = node_source(word, source)
    if _SINGLE_QUOTED.match(raw) or _DOUBLE_QUOTED_LITERAL.match(raw):
        return word.word
    return None


def command_words(node: Any) -> list[Any]:
    """Argument words of a bashlex command node, skipping assignments and redirects."""
    return [p for p in node.parts if getattr(p, "kind", None) == "word"]


def extract_command(node: Any, source: str) -> tuple[Command, bool]:
    """Turn a bashlex ``command`` node into a normalized argument list.

    Returns ``([], False)`` for any other node kind. Words that are not a
    single literal part are left out, and so is a bare ``sudo``.
    """
    if getattr(node, "kind", None) != "command":
        return [], False

    cmd: Command = []
    for word in command_words(node):
        value = word_literal(word, source)
        if value is None:
            continue
        if value == word.word and value.lower() == "sudo":
            continue
        cmd.append(value)
    return cmd, True


# ── Classifiers ──

def is_binary_name(expected: str, name: str) -> bool:
    """Case-insensitive comparison of the last path segment of ``name``."""
    return _path_base(name).lower() == expected.lower()


def _is_any_binary(names: tuple[str, ...], name: str) -> bool:
    return any(is_binary_name(b, name) for b in names)


def is_execute_file(cmd: Command, path: str) -> bool:
    if not cmd:
        return False
    return _clean(cmd[0]).lower() == _clean(path).lower()


def is_download_utility(cmd: Command) -> bool:
    if not cmd:
        return False
    if _is_any_binary(DOWNLOAD_UTILITIES, cmd[0]):
        return True
    return (
        is_binary_name("aws", cmd[0])
        and len(cmd) >= 3
        and cmd[1].lower() == "s3api"
        and cmd[2].lower() == "get-object"
    )


def is_interpreter(cmd: Command) -> bool:
    return bool(cmd) and _is_any_binary(INTERPRETERS, cmd[0])


def is_python_command(cmd: Command) -> bool:
    return bool(cmd) and _is_any_binary(PYTHON_INTERPRETERS, cmd[0])


def is_shell_interpreter_or_command(cmd: Command) -> bool:
    """True unless argv[0] is python or a non-shell language runtime."""
    if not cmd:
        return False
    if is_python_command(cmd):
        return False
    return not _is_any_binary(OTHER_INTERPRETERS, cmd[0])


def is_command(cmd: Command, binary: str) -> bool:
    """``binary`` appears in cmd, followed later by a flag containing ``c``."""
    seen_binary = False
    for arg in cmd:
        if is_binary_name(binary, arg):
            seen_binary = True
        elif seen_binary and arg.startswith("-") and "c" in arg:
            return True
    return False


def extract_interpreter_and_command(cmd: Command) -> Optional[str]:
    """Interpreter name of an ``<interpreter> ... -c`` invocation, if any."""
    if not cmd:
        return None
    for binary in INTERPRETERS:
        if is_command(cmd, binary):
            return binary
    return None


def is_interpreter_with_file(cmd: Command, path: str) -> bool:
    """An interpreter invoked with ``path`` as one of its arguments."""
    if not is_interpreter(cmd):
        return False
    target = _clean(path).lower()
    return any(_clean(arg).lower() == target for arg in cmd[1:])


# ── Download output files ──

def _wget_output_file(cmd: Command) -> Optional[str]:
    for i in range(1, len(cmd) - 1):
        if cmd[i].lower() == "-o":
            return cmd[i + 1]
    for arg in cmd[1:]:
        if arg.startswith("http"):
            return _url_base(arg)
    return None


def _gsutil_output_file(cmd: Command) -> Optional[str]:
    for i in range(1, len(cmd) - 1):
        if not cmd[i].startswith("gs://"):
            continue
        target = cmd[i + 1]
        if _is_directory_target(target):
            base = _url_base(cmd[i])
            if base is None:
                return None
            return _clean(posixpath.join(posixpath.dirname(target) or ".", base))
        return target
    return None


def _aws_output_file(cmd: Command) -> Optional[str]:
    if len(cmd) < 3 or cmd[1].lower() != "s3api" or cmd[2].lower() != "get-object":
        return None
    source, target = cmd[-2], cmd[-1]
    if _is_directory_target(target):
        base = _url_base(source)
        if base is None:
            return None
        return _clean(posixpath.join(posixpath.dirname(target) or ".", base))
    return target


def get_output_file(cmd: Command) -> Optional[str]:
    """File a download utility writes to, when it can be told from its arguments."""
    if not cmd:
        return None
    if is_binary_name("wget", cmd[0]):
        return _wget_output_file(cmd)
    if is_binary_name("gsutil", cmd[0]):
        return _gsutil_output_file(cmd)
    if is_binary_name("aws", cmd[0]):
        return _aws_output_file(cmd)
    return None


# ── Package managers ──

def is_npm_unpinned_download(cmd: Command) -> bool:
    """npm install/update without lockfile verification. ``npm ci`` is fine."""
    if not cmd or not is_binary_name("npm", cmd[0]):
        return False
    return any(arg.lower() in NPM_INSTALL_VERBS for arg in cmd[1:])


def is_go_unpinned_download(cmd: Command) -> bool:
    """go get/install of a remote module without a hash, ``none`` or exact semver."""
    if not cmd or not is_binary_name("go", cmd[0]):
        return False
    # `go install` with no package reads go.mod and go.sum
    if len(cmd) <= 2:
        return False

    found = False
    insecure = False
    i = 1
    while i < len(cmd) - 1:
        if cmd[i] in ("get", "install"):
            found = True
        if not found:
            i += 1
            continue

        while i < len(cmd) - 1 and cmd[i + 1] in GO_SKIPPED_FLAGS:
            if cmd[i + 1] == "-insecure":
                insecure = True
            i += 1

        if i + 1 >= len(cmd):
            # go get -d -v
            return False

        package = cmd[i + 1]
        # Anything that doesn't look like a module path is a local folder
        if not _GO_REMOTE_MODULE.search(package):
            return False

        parts = package.split("@")
        if len(parts) != 2:
            i += 1
            continue
        version = parts[1]
        if version == "none" or _GO_HASH.match(version) or (not insecure and _GO_SEMVER.match(version)):
            return False
        i += 1

    return found


def is_pinned_editable_source(source: str) -> bool:
    """Local paths are pinned; remote VCS sources only as git URLs at a full commit hash."""
    if not _PIP_REMOTE_SOURCE.match(source):
        return True
    # svn, hg and bzr never match this, so they stay unpinned
    return bool(_PIP_PINNED_GIT_SOURCE.match(source))


def is_unpinned_pip_install(cmd: Command) -> bool:
    if not cmd or not (is_binary_name("pip", cmd[0]) or is_binary_name("pip3", cmd[0])):
        return False

    is_install = False
    is_editable = False
    editable_pinned = False
    require_hashes = False
    additional_args = False
    has_wheel = False

    i = 1
    while i < len(cmd):
        arg = cmd[i]
        if arg.lower() == "install":
            is_install = True
            i += 1
            continue
        if not is_install:
            break
        if arg.lower() == "--no-deps":
            i += 1
            continue
        if arg in ("-e", "--editable"):
            is_editable = True
            if i + 1 < len(cmd):
                i += 1
                editable_pinned = is_pinned_editable_source(cmd[i])
            i += 1
            continue
        if arg.lower() == "--require-hashes":
            require_hashes = True
            break
        # Local wheel files count as pinned
        if arg.endswith(".whl"):
            has_wheel = True
            i += 1
            continue
        additional_args = True
        i += 1

    if is_editable:
        return not editable_pinned
    if require_hashes:
        return False
    if additional_args:
        return True
    if has_wheel:
        return False
    return is_install


def extract_pip_command(cmd: Command) -> Optional[Command]:
    """The ``pip ...`` tail of a ``python -m pip ...`` invocation."""
    for i in range(1, len(cmd) - 1):
        if cmd[i].lower() == "-m" and cmd[i + 1].lower() == "pip":
            return cmd[i + 1:]
    return None


def is_unpinned_python_pip_install(cmd: Command) -> bool:
    if not is_python_command(cmd):
        return False
    pip_cmd = extract_pip_command(cmd)
    return pip_cmd is not None and is_unpinned_pip_install(pip_cmd)


def is_pip_unpinned_download(cmd: Command) -> bool:
    if not cmd:
        return False
    return is_unpinned_pip_install(cmd) or is_unpinned_python_pip_install(cmd)


def is_choco_unpinned_download(cmd: Command) -> bool:
    """``choco install`` without a require-checksums flag."""
    if len(cmd) < 2:
        return False
    if not (is_binary_name("choco", cmd[0]) or is_binary_name("choco.exe", cmd[0])):
        return False
    if cmd[1].lower() != "install":
        return False
    for arg in cmd[1:]:
        if arg.split("=", 1)[0].lower() in CHOCO_CHECKSUM_FLAGS:
            return False
    return True


def _is_nuget_install(cmd: Command) -> bool:
    if not (is_binary_name("nuget", cmd[0]) or is_binary_name("nuget.exe", cmd[0])):
        return False
    return len(cmd) >= 2 and cmd[1].lower() == "install"


def _is_dotnet_add_package(cmd: Command) -> bool:
    if not (is_binary_name("dotnet", cmd[0]) or is_binary_name("dotnet.exe", cmd[0])):
        return False
    if len(cmd) < 3 or cmd[1].lower() != "add":
        return False
    # dotnet add [<PROJECT>] package <NAME>
    return any(arg.lower() == "package" for arg in cmd[2:4])


def is_nuget_unpinned_download(cmd: Command) -> bool:
    """nuget install or dotnet add package without an explicit version."""
    if not cmd:
        return False
    if _is_nuget_install(cmd):
        for arg in cmd[2:]:
            if arg.lower() == "-version" or arg.lower().endswith("packages.config"):
                return False
        return True
    if _is_dotnet_add_package(cmd):
        return not any(arg.lower() in ("-v", "--version") for arg in cmd[2:])
    return False


# ── GitHub actions ──

def is_action_dependency_pinned(uses: str) -> bool:
    """Local actions, full commit hashes and docker digests are pinned."""
    if _LOCAL_ACTION.match(uses):
        return True
    if _HASH_PINNED_ACTION.search(uses):
        return True
    return bool(_DIGEST_PINNED_DOCKER_ACTION.match(uses))
