"""Centralized path resolution for IntentBridge.

Paths are resolved relative to the project root (parent of src/).
"""

from __future__ import annotations

from pathlib import Path

# Project root: parent of the src/ directory
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Reference data
REFERENCES_DIR = PROJECT_ROOT / "references"
EXAMPLE_CONFIG_PATH = REFERENCES_DIR / "shortcuts.config.yaml"
