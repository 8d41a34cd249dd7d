"""
TypeScript declaration generator.

Emits shortcuts.generated.d.ts: a discriminated union with one variant per
shortcut, keyed by the identifier literal, so app code can check call sites
against each shortcut's exact parameter shape.
"""

from __future__ import annotations

from intent_config import ShortcutConfig, ShortcutDefinition

_TS_TYPES = {
    "string": "string",
    "number": "number",
    "boolean": "boolean",
    "date": "Date",
}

_HEADER = """// AUTO-GENERATED - DO NOT EDIT
// Generated from {source_name}
// Run 'intentbridge generate' to regenerate

// This file augments the shortcut listener types with your shortcuts
// No manual import needed - types are automatically applied!

"""

_DEFINITIONS = """/**
 * Type-safe shortcut invocation
 * Provides autocomplete and type checking for shortcut identifiers and parameters
 *
 * Usage in your code:
 * import type {{ ShortcutInvocation }} from './shortcuts.generated';
 *
 * Or use the type assertion:
 * const shortcut = data as ShortcutInvocation;
 */
export type ShortcutInvocation =
{variants};

/**
 * Callback function for responding to Siri
 */
export type RespondCallback = (response?: {{ message?: string }}) => void;

/**
 * Listener function for shortcut events
 * Receives typed shortcut data with autocomplete
 */
export type ShortcutListener = (
  shortcut: ShortcutInvocation,
  respond: RespondCallback
) => void | Promise<void>;
"""


def ts_type(param_type: str) -> str:
    return _TS_TYPES[param_type]


def generate_variant(shortcut: ShortcutDefinition) -> str:
    """One `| { identifier: '...'; ... }` member of the union."""
    if shortcut.parameters:
        fields = "\n".join(
            f"    {p.name}{'?' if p.optional else ''}: {ts_type(p.type)};"
            for p in shortcut.parameters
        )
        return (
            "  | {\n"
            f"      identifier: '{shortcut.identifier}';\n"
            "      nonce: string;\n"
            "      parameters: {\n"
            f"{fields}\n"
            "      };\n"
            "      userConfirmed?: boolean;\n"
            "    }"
        )
    return (
        "  | {\n"
        f"      identifier: '{shortcut.identifier}';\n"
        "      nonce: string;\n"
        "      parameters?: never;\n"
        "      userConfirmed?: boolean;\n"
        "    }"
    )


def generate_type_surface(
    config: ShortcutConfig, source_name: str = "shortcuts.config.yaml"
) -> str:
    """Full .d.ts text; variant and field order follow the config."""
    variants = "\n".join(generate_variant(s) for s in config.shortcuts) or "  never"
    return _HEADER.format(source_name=source_name) + _DEFINITIONS.format(variants=variants)
