"""
Artifact assembly for one generation run.

Takes a parsed ShortcutConfig plus whatever localization files already
exist, and produces every output text:

  GeneratedAppIntents.swift   always
  Localizable.xcstrings       when localization is enabled (merged)
  AppShortcuts.strings        when localization is enabled (merged)
  shortcuts.generated.d.ts    always

Nothing touches the filesystem until every text has been assembled, so a
failure part-way leaves previous outputs untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from intent_config import ShortcutConfig
from localization_merge import (
    extract_localizable_strings,
    extract_phrases,
    load_catalog,
    merge_catalog,
    merge_phrase_table,
)
from swift_codegen import generate_swift_file
from type_surface import generate_type_surface

logger = logging.getLogger(__name__)

SWIFT_FILENAME = "GeneratedAppIntents.swift"
CATALOG_FILENAME = "Localizable.xcstrings"
PHRASES_FILENAME = "AppShortcuts.strings"
TYPES_FILENAME = "shortcuts.generated.d.ts"

DEFAULT_SOURCE_NAME = "shortcuts.config.yaml"


@dataclass
class GenerationResult:
    """All generated texts for one config."""
    swift_source: str
    type_declarations: str
    catalog: str | None = None
    phrases: str | None = None
    localizable_strings: dict[str, str] = field(default_factory=dict)
    phrase_list: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def localized(self) -> bool:
        return self.catalog is not None

    def app_artifacts(self) -> dict[str, str]:
        """Files that belong in the app directory, by file name."""
        artifacts = {SWIFT_FILENAME: self.swift_source}
        if self.catalog is not None:
            artifacts[CATALOG_FILENAME] = self.catalog
        if self.phrases is not None:
            artifacts[PHRASES_FILENAME] = self.phrases
        return artifacts


def generate_artifacts(
    config: ShortcutConfig,
    existing_catalog: str | None = None,
    existing_phrases: str | None = None,
    source_name: str = DEFAULT_SOURCE_NAME,
) -> GenerationResult:
    """Build every artifact text, merging with existing localization files.

    An existing catalog that cannot be parsed is replaced by a fresh one and
    reported in `warnings`; existing phrase lines that don't match the
    `"key" = "value";` grammar are dropped.
    """
    use_localization = config.localization
    result = GenerationResult(
        swift_source=generate_swift_file(config, use_localization, source_name=source_name),
        type_declarations=generate_type_surface(config, source_name=source_name),
    )

    if use_localization:
        strings = extract_localizable_strings(config)
        if existing_catalog and load_catalog(existing_catalog) is None:
            result.warnings.append(
                f"Existing {CATALOG_FILENAME} could not be parsed; a new catalog was created"
            )
        result.localizable_strings = strings
        result.catalog = merge_catalog(strings, existing_catalog)

        phrases = extract_phrases(config)
        result.phrase_list = phrases
        result.phrases = merge_phrase_table(phrases, existing_phrases)

    return result


def read_existing(path: Path) -> tuple[str | None, str | None]:
    """Return (text, warning) for an optional input file."""
    if not path.exists():
        return None, None
    try:
        return path.read_text(encoding="utf-8"), None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read existing %s: %s", path.name, e)
        return None, f"Could not read existing {path.name}: {e}"


def generate_into(
    config: ShortcutConfig,
    output_dir: Path,
    types_path: Path,
    source_name: str = DEFAULT_SOURCE_NAME,
) -> tuple[GenerationResult, list[Path]]:
    """Generate against the files already in output_dir, then write.

    Returns the result and the paths written, app files first and the type
    declarations last.

    Raises:
        OSError: If an output file cannot be written.
    """
    existing_catalog = existing_phrases = None
    read_warnings: list[str] = []
    if config.localization:
        existing_catalog, warning = read_existing(output_dir / CATALOG_FILENAME)
        if warning:
            read_warnings.append(warning)
        existing_phrases, warning = read_existing(output_dir / PHRASES_FILENAME)
        if warning:
            read_warnings.append(warning)

    result = generate_artifacts(config, existing_catalog, existing_phrases, source_name)
    result.warnings[:0] = read_warnings
    return result, write_artifacts(result, output_dir, types_path)


def write_artifacts(result: GenerationResult, output_dir: Path, types_path: Path) -> list[Path]:
    written = []
    for filename, content in result.app_artifacts().items():
        path = output_dir / filename
        path.write_text(content, encoding="utf-8")
        logger.debug("Wrote %s", path)
        written.append(path)
    types_path.write_text(result.type_declarations, encoding="utf-8")
    logger.debug("Wrote %s", types_path)
    written.append(types_path)
    return written
