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

"""Repository-wide driver for the pinning checks.

Runs, in order: GitHub action pinning, Dockerfile FROM pinning, Dockerfile
RUN downloads, shell script downloads, workflow run-step downloads, then
re-checks NuGet findings against the repository's NuGet settings. Every
finding lands in one PinningDependenciesData. Parse and read failures are
recorded per file and never stop the scan; InternalError propagates.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Union

from pinscan.config import ScanConfig
from pinscan.errors import ParsingError
from pinscan.models.dependencies import PinningDependenciesData
from pinscan.scanner.coordinator import (
    PathMatcher,
    RepoClient,
    VisitResult,
    on_matching_file_content_do,
)
from pinscan.scanner.dockerfile_analyzer import (
    validate_dockerfile_insecure_downloads,
    validate_dockerfile_pinning,
)
from pinscan.scanner.nuget import post_process_nuget_dependencies
from pinscan.scanner.remediation import populate_remediations
from pinscan.scanner.shell_analyzer import validate_shell_script
from pinscan.scanner.workflow_analyzer import (
    validate_workflow_action_pinning,
    validate_workflow_insecure_downloads,
)

logger = logging.getLogger(__name__)

Validator = Callable[[str, Union[bytes, str], PinningDependenciesData], None]

WORKFLOW_GLOB = ".github/workflows/*"
DOCKERFILE_GLOB = "*Dockerfile*"
ANY_FILE_GLOB = "*"


def _recording_errors(validator: Validator) -> Callable[..., VisitResult]:
    """Wrap a validator so parse failures become processing errors."""

    def visit(path: str, content: bytes, results: PinningDependenciesData) -> VisitResult:
        try:
            validator(path, content, results)
        except ParsingError as e:
            logger.debug("Skipping %s: %s", path, e)
            results.record_error(path, e.message, kind=e.kind, line=e.line)
        return VisitResult.CONTINUE

    return visit


def collect_pinning_dependencies(
    client: RepoClient,
    config: Optional[ScanConfig] = None,
) -> PinningDependenciesData:
    """Scan every candidate file reachable through ``client``."""
    config = config or ScanConfig()
    toggles = config.analyzers
    results = PinningDependenciesData()

    def record_read_error(path: str, error: OSError) -> None:
        results.record_error(path, f"could not read file: {error.strerror or error}")

    def run(pattern: str, case_sensitive: bool, validator: Validator) -> None:
        on_matching_file_content_do(
            client,
            PathMatcher(pattern, case_sensitive),
            _recording_errors(validator),
            results,
            skip_testdata=config.skip_testdata,
            on_read_error=record_read_error,
        )

    def dockerfile_pinning(path: str, content: Union[bytes, str], data: PinningDependenciesData) -> None:
        validate_dockerfile_pinning(path, content, data, skip_vendor=config.skip_vendor_dirs)

    def dockerfile_downloads(path: str, content: Union[bytes, str], data: PinningDependenciesData) -> None:
        validate_dockerfile_insecure_downloads(path, content, data, skip_vendor=config.skip_vendor_dirs)

    if toggles.actions:
        run(WORKFLOW_GLOB, True, validate_workflow_action_pinning)
    if toggles.dockerfile_pinning:
        run(DOCKERFILE_GLOB, False, dockerfile_pinning)
    if toggles.dockerfile_downloads:
        run(DOCKERFILE_GLOB, False, dockerfile_downloads)
    if toggles.shell_scripts:
        run(ANY_FILE_GLOB, False, validate_shell_script)
    if toggles.workflow_run:
        run(WORKFLOW_GLOB, False, validate_workflow_insecure_downloads)

    populate_remediations(results)
    post_process_nuget_dependencies(client, results, skip_testdata=config.skip_testdata)
    logger.info(
        "Found %d dependencies (%d unpinned), %d processing errors",
        len(results.dependencies),
        sum(1 for d in results.dependencies if not d.pinned),
        len(results.processing_errors),
    )
    return results
