#!/usr/bin/env python3
"""
IntentBridge preview server: generate App Intents artifacts over HTTP.

Start with:
    python cli/server.py
    # API docs at http://localhost:8000/docs

Routes:
    GET  /health     → Health check
    POST /generate   → Every generated artifact for a config, as JSON
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Union

import yaml
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

# Ensure src/ is importable
_SCRIPT_DIR = Path(__file__).resolve().parent
_SRC_DIR = _SCRIPT_DIR.parent / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from artifact_generator import (  # noqa: E402
    CATALOG_FILENAME,
    PHRASES_FILENAME,
    SWIFT_FILENAME,
    TYPES_FILENAME,
    generate_artifacts,
)
from intent_config import ConfigError, parse_config  # noqa: E402

app = FastAPI(title="IntentBridge", version="0.1.0")

# ── Request Models ─────────────────────────────────────────────────────


class GenerateRequest(BaseModel):
    config: Union[dict[str, Any], str]  # decoded config, or YAML/JSON text
    existing_catalog: str | None = None
    existing_phrases: str | None = None
    source_name: str = "shortcuts.config.yaml"


class GenerateResponse(BaseModel):
    shortcuts: list[str]
    localization: bool
    artifacts: dict[str, str]
    warnings: list[str]


# ── Routes ─────────────────────────────────────────────────────────────


@app.get("/health")
async def health():
    return {"status": "ok", "service": "intentbridge"}


def _decode_config(config: Union[dict[str, Any], str]) -> Any:
    if isinstance(config, dict):
        return config
    try:
        return yaml.safe_load(config)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config: {e}") from e


@app.post("/generate", response_model=GenerateResponse)
async def generate(req: GenerateRequest):
    """Generate all artifacts for a config without touching the filesystem."""

    def run_generate():
        config = parse_config(_decode_config(req.config))
        result = generate_artifacts(
            config,
            existing_catalog=req.existing_catalog,
            existing_phrases=req.existing_phrases,
            source_name=req.source_name,
        )
        return config, result

    try:
        config, result = await asyncio.get_running_loop().run_in_executor(None, run_generate)
    except ConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))

    artifacts = {SWIFT_FILENAME: result.swift_source, TYPES_FILENAME: result.type_declarations}
    if result.catalog is not None:
        artifacts[CATALOG_FILENAME] = result.catalog
    if result.phrases is not None:
        artifacts[PHRASES_FILENAME] = result.phrases

    return GenerateResponse(
        shortcuts=[s.identifier for s in config.shortcuts],
        localization=config.localization,
        artifacts=artifacts,
        warnings=result.warnings,
    )


# ── Startup ────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    print(f"\n  IntentBridge server starting on http://localhost:{port}")
    print(f"  API docs at http://localhost:{port}/docs\n")
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
