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

"""Exception hierarchy for the pinning engine.

Parsing errors are file-scoped: the driver records them and moves on to the
next file. Internal errors signal an engine bug and propagate to the caller.
Element errors describe one malformed workflow step and are recorded
without skipping the rest of the file.
"""

from __future__ import annotations

from typing import Optional


class PinscanError(Exception):
    """Base exception for all pinscan errors."""


class ParsingError(PinscanError):
    """A file (or a fragment of one) could not be parsed by its grammar."""

    kind = "parsing"

    def __init__(self, message: str, path: str = "", line: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.line = line

    def __str__(self) -> str:
        where = self.path
        if self.line is not None:
            where = f"{where}:{self.line}"
        return f"{where}: {self.message}" if where else self.message


class ShellParsingError(ParsingError):
    """Shell text rejected by bashlex."""


class DockerfileParsingError(ParsingError):
    """Dockerfile content rejected by dockerfile-parse."""


class WorkflowParsingError(ParsingError):
    """Workflow YAML that is not valid YAML or not a workflow mapping."""


class ElementError(ParsingError):
    """A single workflow element (step or job) carries unusable metadata."""

    kind = "element"


class InternalError(PinscanError):
    """An engine invariant was violated, e.g. a FROM or RUN with no arguments."""
