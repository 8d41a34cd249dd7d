"""
Template helpers for the Swift/TypeScript generators.

Pure string transforms shared by swift_codegen, type_surface and
localization_merge: identifier casing, Swift string-literal escaping,
`${name}` placeholder extraction and typed state-condition synthesis.
"""

from __future__ import annotations

import math
import re
from typing import Any

# Prefix of app-state keys synced by the application into the shared store.
APP_STATE_PREFIX = "appState_"

_SEPARATOR_RE = re.compile(r"[-_\s]+(.)?")
_PLACEHOLDER_RE = re.compile(r"\$\{(\w+)\}")
_SWIFT_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
# ${applicationName}, \(.applicationName) or (.applicationName)
_APPLICATION_NAME_RE = re.compile(r"\$\{applicationName\}|\\?\(\.applicationName\)")


def to_symbol_case(text: str) -> str:
    """Convert separator-delimited text to a capitalized-word symbol.

    Runs of hyphens, underscores and whitespace are dropped and the
    character following them is upper-cased; the first character is
    upper-cased as well. Other characters are left untouched, so
    "startTimer" becomes "StartTimer".

    >>> to_symbol_case("start-timer_action test")
    'StartTimerActionTest'
    >>> to_symbol_case("")
    ''
    """
    if not text:
        return ""
    collapsed = _SEPARATOR_RE.sub(
        lambda m: m.group(1).upper() if m.group(1) else "", text
    )
    return collapsed[:1].upper() + collapsed[1:]


def escape_for_swift(text: str) -> str:
    """Escape text for embedding inside a Swift double-quoted literal."""
    # Backslash first so the escapes inserted below are not doubled.
    return (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def extract_placeholders(template: str) -> list[str]:
    """Return `${name}` placeholder names in first-occurrence order.

    Duplicates are kept: each occurrence gets its own substitution block.
    """
    return _PLACEHOLDER_RE.findall(template)


def split_application_name(phrase: str) -> list[str]:
    """Split a phrase around its application-name tokens.

    Any of the `${applicationName}`, `\\(.applicationName)` and
    `(.applicationName)` spellings counts as a token. A phrase without one
    comes back as a single-element list.

    >>> split_application_name("Open ${applicationName} now")
    ['Open ', ' now']
    """
    return _APPLICATION_NAME_RE.split(phrase)


def is_swift_identifier(name: str) -> bool:
    """True if name can be used verbatim as a Swift property/type name."""
    return bool(_SWIFT_IDENTIFIER_RE.match(name))


def format_literal(value: Any) -> str:
    """Render a config scalar the way a JavaScript template literal would.

    Booleans become "true"/"false" and integral floats drop their ".0",
    so generated comments and conditions read the same as the config.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)


def swift_condition(state_key: str, show_when: Any) -> str:
    """Build the Swift expression that compares a shared-store value.

    Booleans are compared against their numeric 1/0 encoding because the
    application stores booleans as numbers. Unknown value shapes fall back
    to an existence check.
    """
    key = escape_for_swift(state_key)
    if isinstance(show_when, bool):
        return f'defaults.double(forKey: "{key}") == {1 if show_when else 0}'
    if isinstance(show_when, (int, float)):
        return f'defaults.double(forKey: "{key}") == {format_literal(show_when)}'
    if isinstance(show_when, str):
        return f'defaults.string(forKey: "{key}") == "{escape_for_swift(show_when)}"'
    return f'defaults.string(forKey: "{key}") != nil'


def app_state_key(name: str) -> str:
    """Shared-store key under which app state `name` is synced."""
    return f"{APP_STATE_PREFIX}{name}"
