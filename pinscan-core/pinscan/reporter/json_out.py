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

"""JSON rendering of a ScanReport.

The output is byte-stable for a given report: keys are sorted, indentation
is two spaces, line endings are LF and the document ends with a newline.
Dependencies keep scan order (analyzer order, then file order, then line),
so two scans of the same tree differ only in ``scan_timestamp``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Union

from pydantic import BaseModel

from pinscan.models.report import ScanReport

logger = logging.getLogger(__name__)

_DUMP_OPTIONS: dict[str, Any] = {"sort_keys": True, "indent": 2, "ensure_ascii": False}


def to_canonical_json(data: Union[BaseModel, dict[str, Any]]) -> str:
    """Serialize a pydantic model or plain mapping to the canonical form."""
    if isinstance(data, BaseModel):
        # Enum kinds serialize as their string values
        data = data.model_dump(mode="json")
    return json.dumps(data, **_DUMP_OPTIONS) + "\n"


def write_report(report: ScanReport, output_path: Path) -> None:
    """Write the report next to ``output_path`` and move it into place.

    A reader polling the path never sees a half-written report.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=output_path.parent, prefix=f".{output_path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(to_canonical_json(report))
        os.replace(tmp_name, output_path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.info(
        "Wrote report for %s (%d dependencies) to %s",
        report.scan_target,
        len(report.dependencies),
        output_path,
    )
