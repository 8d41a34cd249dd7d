"""Shortcut configuration loader for IntentBridge.

Loads the shortcut configuration (shortcuts.config.yaml) that drives code
generation. Each shortcut defines an identifier, Siri phrases, optional
parameters Siri asks the user for, and optional state dialogs that are
evaluated against app state before the app is woken.

Usage:
    from intent_config import load_config

    config = load_config("shortcuts.config.yaml")
    for shortcut in config.shortcuts:
        print(shortcut.identifier, shortcut.class_name)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

import yaml

from template_utils import is_swift_identifier, to_symbol_case

PARAMETER_TYPES = ("string", "number", "boolean", "date")

ShowWhen = Union[bool, str, int, float]


class ConfigError(ValueError):
    """Raised when a shortcut configuration is missing fields or malformed."""


@dataclass
class ShortcutParameter:
    """A value Siri requests from the user before the intent runs."""
    name: str
    title: str
    type: str  # "string", "number", "boolean" or "date"
    optional: bool = True
    description: str | None = None

    @property
    def default_prompt(self) -> str:
        return f"What {self.title.lower()}?"


@dataclass
class StateDialog:
    """Message or confirmation shown when an app-state key has a given value."""
    state_key: str
    show_when: ShowWhen
    message: str
    requires_confirmation: bool = True


@dataclass
class ShortcutDefinition:
    """One Siri shortcut: an App Intent plus its AppShortcut registration."""
    identifier: str
    title: str
    phrases: list[str]
    system_image_name: str | None = None
    description: str | None = None
    state_dialogs: list[StateDialog] = field(default_factory=list)
    parameters: list[ShortcutParameter] = field(default_factory=list)

    @property
    def class_name(self) -> str:
        """Swift struct name of the generated intent (e.g. StartTimerIntent)."""
        return f"{to_symbol_case(self.identifier)}Intent"

    @property
    def has_confirmation_dialogs(self) -> bool:
        return any(d.requires_confirmation for d in self.state_dialogs)

    def parameter(self, name: str) -> ShortcutParameter | None:
        for param in self.parameters:
            if param.name == name:
                return param
        return None


@dataclass
class ShortcutConfig:
    """Complete parsed configuration."""
    shortcuts: list[ShortcutDefinition]
    app_group_id: str | None = None
    localization: bool = False

    def get(self, identifier: str) -> ShortcutDefinition | None:
        for shortcut in self.shortcuts:
            if shortcut.identifier == identifier:
                return shortcut
        return None

    def resolve_app_group_id(self, bundle_id: str | None = None) -> str:
        """Configured App Group, else group.<bundle id> like the generated Swift."""
        if self.app_group_id:
            return self.app_group_id
        if not bundle_id:
            raise ConfigError("Cannot determine App Group: set appGroupId or pass a bundle identifier")
        return f"group.{bundle_id}"


# ── Parsing ────────────────────────────────────────────────────────────


def _pick(data: dict, camel: str, snake: str, default: Any = None) -> Any:
    """Read a field accepting both camelCase and snake_case spellings."""
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def _require_str(data: dict, key: str, where: str, snake: str | None = None) -> str:
    value = _pick(data, key, snake or key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{where}: '{key}' is required and must be a non-empty string")
    return value


def _optional_str(data: dict, key: str, where: str, snake: str | None = None) -> str | None:
    value = _pick(data, key, snake or key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{where}: '{key}' must be a string")
    return value


def _optional_bool(data: dict, key: str, where: str, default: bool, snake: str | None = None) -> bool:
    value = _pick(data, key, snake or key, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"{where}: '{key}' must be true or false")
    return value


def _parse_parameter(raw: Any, where: str) -> ShortcutParameter:
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: parameter must be a mapping")
    name = _require_str(raw, "name", where)
    if not is_swift_identifier(name):
        raise ConfigError(f"{where}: parameter name '{name}' is not a valid identifier")
    param_type = raw.get("type")
    if param_type not in PARAMETER_TYPES:
        raise ConfigError(
            f"{where}: parameter '{name}' has type {param_type!r}, "
            f"expected one of {list(PARAMETER_TYPES)}"
        )
    return ShortcutParameter(
        name=name,
        title=_require_str(raw, "title", where),
        type=param_type,
        optional=_optional_bool(raw, "optional", where, True),
        description=_optional_str(raw, "description", where),
    )


def _parse_state_dialog(raw: Any, where: str) -> StateDialog:
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: state dialog must be a mapping")
    show_when = _pick(raw, "showWhen", "show_when")
    if not isinstance(show_when, (bool, str, int, float)):
        raise ConfigError(f"{where}: 'showWhen' must be a boolean, string or number")
    message = _pick(raw, "message", "message")
    if not isinstance(message, str):
        raise ConfigError(f"{where}: 'message' is required and must be a string")
    return StateDialog(
        state_key=_require_str(raw, "stateKey", where, "state_key"),
        show_when=show_when,
        message=message,
        requires_confirmation=_optional_bool(
            raw, "requiresConfirmation", where, True, "requires_confirmation"
        ),
    )


def _parse_shortcut(raw: Any, index: int) -> ShortcutDefinition:
    where = f"shortcuts[{index}]"
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: shortcut must be a mapping")

    identifier = _require_str(raw, "identifier", where)
    where = f"shortcut '{identifier}'"
    if not is_swift_identifier(to_symbol_case(identifier)):
        raise ConfigError(
            f"{where}: identifier does not map to a valid Swift type name "
            f"({to_symbol_case(identifier)!r})"
        )

    phrases = raw.get("phrases")
    if not isinstance(phrases, list) or not phrases:
        raise ConfigError(f"{where}: 'phrases' must be a non-empty list")
    for phrase in phrases:
        if not isinstance(phrase, str) or not phrase.strip():
            raise ConfigError(f"{where}: every phrase must be a non-empty string")

    parameters = [
        _parse_parameter(p, f"{where} parameters[{i}]")
        for i, p in enumerate(raw.get("parameters") or [])
    ]
    seen: set[str] = set()
    for param in parameters:
        if param.name in seen:
            raise ConfigError(f"{where}: duplicate parameter name '{param.name}'")
        seen.add(param.name)

    dialogs = [
        _parse_state_dialog(d, f"{where} stateDialogs[{i}]")
        for i, d in enumerate(_pick(raw, "stateDialogs", "state_dialogs") or [])
    ]

    return ShortcutDefinition(
        identifier=identifier,
        title=_require_str(raw, "title", where),
        phrases=list(phrases),
        system_image_name=_optional_str(raw, "systemImageName", where, "system_image_name"),
        description=_optional_str(raw, "description", where),
        state_dialogs=dialogs,
        parameters=parameters,
    )


def parse_config(raw: Any) -> ShortcutConfig:
    """Validate a decoded config document and build a ShortcutConfig.

    Raises:
        ConfigError: If required fields are missing, values have the wrong
            type, or two shortcuts share an identifier.
    """
    if not isinstance(raw, dict) or "shortcuts" not in raw:
        raise ConfigError("Invalid config: must define { shortcuts: [...] }")
    shortcuts_raw = raw["shortcuts"]
    if not isinstance(shortcuts_raw, list):
        raise ConfigError("Invalid config: 'shortcuts' must be a list")
    if not shortcuts_raw:
        raise ConfigError("Invalid config: 'shortcuts' must not be empty")

    shortcuts = [_parse_shortcut(s, i) for i, s in enumerate(shortcuts_raw)]

    # Two intents with the same identifier would collide as Swift types.
    seen: dict[str, int] = {}
    for i, shortcut in enumerate(shortcuts):
        if shortcut.identifier in seen:
            raise ConfigError(
                f"Duplicate shortcut identifier '{shortcut.identifier}' "
                f"(shortcuts[{seen[shortcut.identifier]}] and shortcuts[{i}])"
            )
        seen[shortcut.identifier] = i

    return ShortcutConfig(
        shortcuts=shortcuts,
        app_group_id=_optional_str(raw, "appGroupId", "config", "app_group_id"),
        localization=_optional_bool(raw, "localization", "config", False),
    )


def load_config(config_path: str | Path) -> ShortcutConfig:
    """Load and validate a shortcut configuration from YAML or JSON.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigError: If the file can't be parsed or fails validation.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Shortcuts config not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e

    return parse_config(raw)
