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

"""Scan configuration.

Looked up in order: an explicit ``--config`` file, ``<target>/.pinscan.yaml``,
then ``~/.pinscan/config.yaml``. A missing or invalid file yields defaults.

Example::

    analyzers:
      workflow_run: false
    exclude_patterns:
      - examples
    fail_under: 7
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".pinscan"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME = ".pinscan.yaml"


class AnalyzerToggles(BaseModel):
    """Which checks the driver runs."""

    actions: bool = True
    dockerfile_pinning: bool = True
    dockerfile_downloads: bool = True
    shell_scripts: bool = True
    workflow_run: bool = True


class ScanConfig(BaseModel):
    analyzers: AnalyzerToggles = Field(default_factory=AnalyzerToggles)
    skip_testdata: bool = True
    skip_vendor_dirs: bool = True
    exclude_patterns: list[str] = Field(default_factory=list)
    fail_under: Optional[int] = Field(default=None, ge=0, le=10)


def _read_config_file(path: Path) -> Optional[ScanConfig]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not read config %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: expected a mapping", path)
        return None
    try:
        return ScanConfig.model_validate(data)
    except ValidationError as e:
        logger.warning("Ignoring invalid config %s: %s", path, e)
        return None


def load_config(target_dir: Optional[Path] = None, explicit: Optional[Path] = None) -> ScanConfig:
    """Load the first config file found, or defaults."""
    candidates = []
    if explicit is not None:
        candidates.append(explicit)
    if target_dir is not None:
        candidates.append(target_dir / PROJECT_CONFIG_NAME)
    candidates.append(CONFIG_FILE)

    for path in candidates:
        if not path.exists():
            continue
        config = _read_config_file(path)
        if config is not None:
            logger.debug("Loaded config from %s", path)
            return config
    return ScanConfig()
