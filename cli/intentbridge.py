#!/usr/bin/env python3
"""
IntentBridge CLI: shortcuts config → Siri App Intents.

Usage:
    python cli/intentbridge.py generate
    python cli/intentbridge.py generate --config shortcuts.config.yaml --verbose

Installed as the `intentbridge` console script as well.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure src/ is importable
_SCRIPT_DIR = Path(__file__).resolve().parent
_SRC_DIR = _SCRIPT_DIR.parent / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from generate_shortcuts import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
