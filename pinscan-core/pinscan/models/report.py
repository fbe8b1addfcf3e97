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

"""Pydantic models for the scan report."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from pinscan import __version__
from pinscan.models.dependencies import Dependency, ProcessingError


class CategoryScore(BaseModel):
    """Pinned/total tally and 0-10 score for one dependency category."""

    category: str
    pinned: int = 0
    total: int = 0
    score: int = 10


class PinningScore(BaseModel):
    """Aggregate 0-10 score plus the per-category breakdown."""

    score: int = 10
    reason: str = "all dependencies are pinned"
    categories: list[CategoryScore] = Field(default_factory=list)


class ScanReport(BaseModel):
    """Top-level report written by ``pinscan scan --json``."""

    version: str = __version__
    scan_target: str = ""
    scan_timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    manifest_source: str = "git"  # "git" or "directory"
    file_count: int = 0
    score: PinningScore = Field(default_factory=PinningScore)
    dependencies: list[Dependency] = Field(default_factory=list)
    processing_errors: list[ProcessingError] = Field(default_factory=list)
    unparsed_files: list[str] = Field(default_factory=list)
