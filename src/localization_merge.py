"""
Localization artifacts: String Catalog (.xcstrings) and AppShortcuts.strings.

Both files are merged, never overwritten, on every generation run:
  - Localizable.xcstrings keeps every translator-supplied language entry;
    only the English (source) value of each derived key is refreshed, and
    keys that disappeared from the config are retained.
  - AppShortcuts.strings keeps existing lines verbatim (including custom
    translations) and appends identity lines for new phrases only.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable

from intent_config import ShortcutConfig
from template_utils import escape_for_swift, split_application_name

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_LANGUAGE = "en"
DEFAULT_CATALOG_VERSION = "1.0"

APP_GROUP_FAILED_KEY = "system.error.appGroupFailed"
APP_GROUP_FAILED_MESSAGE = "Failed to communicate with app"
TIMEOUT_KEY = "system.timeout"
TIMEOUT_MESSAGE = "Done"

APPLICATION_NAME_TOKEN = "${applicationName}"

# "key" = "value"; where key and value may contain escaped quotes.
_STRINGS_LINE_RE = re.compile(r'^"((?:[^"\\]|\\.)*)"\s*=\s*"((?:[^"\\]|\\.)*)";')


# =============================================================================
# EXTRACTION
# =============================================================================


def extract_localizable_strings(config: ShortcutConfig) -> dict[str, str]:
    """Collect every localizable string the generated Swift looks up.

    Keys follow `<identifier>.<field>` naming and match the keys used by
    swift_codegen; insertion order is config order.
    """
    strings: dict[str, str] = {}

    for shortcut in config.shortcuts:
        sid = shortcut.identifier
        strings[f"{sid}.title"] = shortcut.title
        if shortcut.description:
            strings[f"{sid}.description"] = shortcut.description

        for i, param in enumerate(shortcut.parameters):
            strings[f"{sid}.parameters.{i}.title"] = param.title
            if param.description:
                strings[f"{sid}.parameters.{i}.description"] = param.description
            strings[f"{sid}.parameters.{i}.prompt"] = param.default_prompt

        for i, dialog in enumerate(shortcut.state_dialogs):
            strings[f"{sid}.stateDialogs.{i}.message"] = dialog.message

    strings[APP_GROUP_FAILED_KEY] = APP_GROUP_FAILED_MESSAGE
    strings[TIMEOUT_KEY] = TIMEOUT_MESSAGE
    return strings


def normalize_phrase(phrase: str) -> str:
    """Rewrite a phrase so it carries the ${applicationName} token."""
    parts = split_application_name(phrase)
    if len(parts) == 1:
        return f"{phrase} in {APPLICATION_NAME_TOKEN}"
    return APPLICATION_NAME_TOKEN.join(parts)


def extract_phrases(config: ShortcutConfig) -> list[str]:
    """All Siri phrases in config order, normalized for AppShortcuts.strings."""
    return [
        normalize_phrase(phrase)
        for shortcut in config.shortcuts
        for phrase in shortcut.phrases
    ]


# =============================================================================
# STRING CATALOG
# =============================================================================


def _string_unit(value: str) -> dict:
    return {"stringUnit": {"state": "translated", "value": value}}


def _empty_catalog() -> dict[str, Any]:
    return {
        "sourceLanguage": DEFAULT_SOURCE_LANGUAGE,
        "strings": {},
        "version": DEFAULT_CATALOG_VERSION,
    }


def _dump_catalog(catalog: dict) -> str:
    return json.dumps(catalog, indent=2, ensure_ascii=False)


def load_catalog(text: str | None) -> dict | None:
    """Parse catalog text; None when absent or not a JSON object."""
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def generate_catalog(strings: dict[str, str]) -> str:
    """Build a fresh String Catalog holding only source-language entries."""
    return merge_catalog(strings, None)


def merge_catalog(new_defaults: dict[str, str], existing_text: str | None) -> str:
    """Merge newly derived source strings into an existing String Catalog.

    Args:
        new_defaults: key -> source-language text derived from the config.
        existing_text: Current Localizable.xcstrings content, or None.

    Returns:
        The merged catalog as pretty-printed JSON. Existing keys keep all
        their localizations with only the source-language value replaced;
        new keys get a source-language entry; no key is ever removed.
        Unparsable existing content is treated as absent.
    """
    catalog = _empty_catalog()

    if existing_text:
        existing = load_catalog(existing_text)
        if existing is None:
            logger.warning("Failed to parse existing String Catalog, creating new one")
        else:
            if isinstance(existing.get("strings"), dict):
                catalog["strings"] = dict(existing["strings"])
            if existing.get("sourceLanguage"):
                catalog["sourceLanguage"] = existing["sourceLanguage"]
            if existing.get("version"):
                catalog["version"] = existing["version"]

    source_language = DEFAULT_SOURCE_LANGUAGE
    strings = catalog["strings"]
    for key, value in new_defaults.items():
        entry = strings.get(key)
        if isinstance(entry, dict):
            localizations = entry.get("localizations")
            if not isinstance(localizations, dict):
                localizations = {}
                entry["localizations"] = localizations
            localizations[source_language] = _string_unit(value)
        else:
            strings[key] = {
                "extractionState": "manual",
                "localizations": {source_language: _string_unit(value)},
            }

    return _dump_catalog(catalog)


# =============================================================================
# APPSHORTCUTS.STRINGS
# =============================================================================


def _phrase_line(phrase: str) -> str:
    escaped = escape_for_swift(phrase)
    return f'"{escaped}" = "{escaped}";'


def generate_phrase_table(phrases: Iterable[str]) -> str:
    """Identity AppShortcuts.strings content for the given phrases."""
    return merge_phrase_table(list(phrases), None)


def merge_phrase_table(new_phrases: list[str], existing_text: str | None) -> str:
    """Merge phrases into existing AppShortcuts.strings content.

    Retained lines come first in their original order, untouched; every
    phrase whose key is not yet present is appended as `"p" = "p";`.
    Deduplication is by key only, never by translated value.
    """
    lines: list[str] = []
    keys: set[str] = set()

    if existing_text:
        for line in existing_text.split("\n"):
            match = _STRINGS_LINE_RE.match(line)
            if not match:
                continue
            key = match.group(1)
            if key in keys:
                # identical duplicates collapse, the first translation wins
                continue
            keys.add(key)
            lines.append(line)

    for phrase in new_phrases:
        key = escape_for_swift(phrase)
        if key in keys:
            continue
        keys.add(key)
        lines.append(_phrase_line(phrase))

    return "\n".join(lines)
