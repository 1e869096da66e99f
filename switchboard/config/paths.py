"""Filesystem locations"""

import os
from pathlib import Path


def data_dir() -> Path:
    """Directory holding credentials and the persisted fallback order"""
    override = os.environ.get("SWITCHBOARD_HOME")
    if override:
        return Path(override)
    return Path.home() / ".config" / "switchboard"
