"""
Configuration
=============

Locations and the scoring table.  The data directory defaults to the
repository's ``data/`` and can be moved with ``PICKPOOL_DATA_DIR``.
Scoring tables are read once per path and cached.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from pickpool.models import ScoringConfig

_log = logging.getLogger("pickpool.config")

_REPO_DATA_DIR = Path(__file__).parent.parent / "data"
SCORING_FILENAME = "scoring.json"

_config_cache: Dict[Path, ScoringConfig] = {}


def get_data_dir() -> Path:
    override = os.environ.get("PICKPOOL_DATA_DIR")
    return Path(override) if override else _REPO_DATA_DIR


def load_scoring_config(path: Optional[str | Path] = None) -> ScoringConfig:
    """Load and cache a scoring table (default ``<data dir>/scoring.json``)."""
    resolved = Path(path) if path else get_data_dir() / SCORING_FILENAME
    cached = _config_cache.get(resolved)
    if cached is not None:
        return cached
    with open(resolved, encoding="utf-8") as f:
        config = ScoringConfig.from_dict(json.load(f))
    _config_cache[resolved] = config
    _log.info(f"Scoring config loaded from {resolved} ({len(config.stages)} stages)")
    return config


def clear_config_cache():
    _config_cache.clear()
