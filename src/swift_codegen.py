"""
Swift App Intents Generator
===========================
Generates GeneratedAppIntents.swift from a ShortcutConfig.

Every shortcut becomes one `AppIntent` struct plus one `AppShortcut`
registration. The generated perform() talks to the app through the shared
App Group suite (see invocation_protocol):

  1. request missing parameter values from the user
  2. evaluate state dialogs against appState_* keys
  3. write parameters, pending command, nonce and timestamp
  4. post a Darwin notification to wake the app
  5. poll IosIntentsResponse_<nonce> (5.0s timeout, 0.1s interval)

Each fragment is produced by its own function so tests can pin exact text.

Usage:
    from intent_config import load_config
    from swift_codegen import generate_swift_file

    config = load_config("shortcuts.config.yaml")
    swift = generate_swift_file(config, config.localization)
"""

from __future__ import annotations

from dataclasses import dataclass

from darwin_notify import SHORTCUT_NOTIFICATION
from intent_config import ShortcutConfig, ShortcutDefinition, ShortcutParameter, StateDialog
from invocation_protocol import (
    COMMAND_NONCE_KEY,
    COMMAND_TIMESTAMP_KEY,
    PENDING_COMMAND_KEY,
    POLL_INTERVAL,
    RESPONSE_PREFIX,
    RESPONSE_TIMEOUT,
    TYPE_TAG_BOOLEAN,
    TYPE_TAG_DATE,
    USER_CONFIRMED_KEY,
    param_key,
    param_type_key,
)
from localization_merge import (
    APP_GROUP_FAILED_KEY,
    APP_GROUP_FAILED_MESSAGE,
    TIMEOUT_KEY,
    TIMEOUT_MESSAGE,
)
from template_utils import (
    app_state_key,
    escape_for_swift,
    extract_placeholders,
    format_literal,
    split_application_name,
    swift_condition,
)

DEFAULT_SYSTEM_IMAGE = "app"

_SWIFT_TYPES = {
    "string": "String?",
    "number": "Double?",
    "boolean": "Bool?",
    "date": "Date?",
}


def swift_type(param_type: str) -> str:
    """Swift property type; always optional, Siri fills required values on demand."""
    return _SWIFT_TYPES[param_type]


def _localized(key: str, default: str) -> str:
    return f'String(localized: "{key}", defaultValue: "{escape_for_swift(default)}")'


def _literal(text: str) -> str:
    return f'"{escape_for_swift(text)}"'


# =============================================================================
# STATE DIALOGS
# =============================================================================


def generate_message_interpolation(message: str, localization_key: str, use_localization: bool) -> str:
    """Swift for a dialog message with `${name}` placeholders.

    Without placeholders this is a single string expression. With them it
    is a `var message = ...` declaration followed by one substitution block
    per placeholder occurrence, reading appState_<name> as text first, then
    as a number. Unresolved placeholders stay in the text.
    """
    variables = extract_placeholders(message)

    if not variables:
        if use_localization:
            return _localized(localization_key, message)
        return _literal(message)

    if use_localization:
        code = f"var message = {_localized(localization_key, message)}\n"
    else:
        code = f"var message = {_literal(message)}\n"

    for name in variables:
        key = app_state_key(name)
        code += f"        // Interpolate {name}\n"
        code += f'        if let value = defaults.string(forKey: "{key}") {{\n'
        code += f'            message = message.replacingOccurrences(of: "${{{name}}}", with: value)\n'
        code += f'        }} else if let numValue = defaults.object(forKey: "{key}") as? NSNumber {{\n'
        code += f'            message = message.replacingOccurrences(of: "${{{name}}}", with: "\\(numValue)")\n'
        code += "        }\n"

    return code


@dataclass
class StateDialogCode:
    code: str
    is_confirmation: bool


def generate_state_dialog(
    index: int,
    class_name: str,
    dialog: StateDialog,
    condition: str,
    localization_key: str,
    use_localization: bool,
) -> StateDialogCode:
    """Swift `if` block for one state dialog.

    Confirmation dialogs set userConfirmedOverride and continue, or rethrow
    the cancellation so the app is never woken. Message-only dialogs return
    the message as the intent result.
    """
    requires_confirmation = dialog.requires_confirmation
    show_when = format_literal(dialog.show_when)

    if extract_placeholders(dialog.message):
        interpolation = generate_message_interpolation(
            dialog.message, localization_key, use_localization
        )
        message_code = (
            "// Interpolate message with current app state\n"
            f"            {interpolation}\n"
            "            "
        )
        dialog_value = "message"
    else:
        message_code = ""
        dialog_value = (
            _localized(localization_key, dialog.message)
            if use_localization
            else _literal(dialog.message)
        )

    if requires_confirmation:
        action_type = "confirmation"
        log_message = "Confirmation required"
        action_code = (
            "do {\n"
            "                try await requestConfirmation(\n"
            f"                    result: .result(dialog: IntentDialog(stringLiteral: {dialog_value}))\n"
            "                )\n"
            "                // User confirmed - set flag and continue\n"
            "                userConfirmedOverride = true\n"
            "            } catch {\n"
            "                // User cancelled - abort execution (the app will not be invoked)\n"
            f'                print("[{class_name}] User cancelled confirmation")\n'
            "                throw error\n"
            "            }"
        )
    else:
        action_type = "message and return"
        log_message = "Showing message (no confirmation)"
        action_code = f"return .result(dialog: IntentDialog(stringLiteral: {dialog_value}))"

    summary = f"{dialog.state_key} == {show_when}".replace("\r", " ").replace("\n", " ")
    log_line = escape_for_swift(f"[{class_name}] {log_message}: {dialog.state_key} is {show_when}")
    code = (
        "\n"
        f"        // State dialog #{index + 1}: Show {action_type} when {summary}\n"
        f"        if {condition} {{\n"
        f'            print("{log_line}")\n'
        f"            {message_code}{action_code}\n"
        "        }"
    )
    return StateDialogCode(code=code, is_confirmation=requires_confirmation)


def generate_state_dialogs(shortcut: ShortcutDefinition, use_localization: bool) -> str:
    if not shortcut.state_dialogs:
        return ""

    checks = []
    for index, dialog in enumerate(shortcut.state_dialogs):
        result = generate_state_dialog(
            index=index,
            class_name=shortcut.class_name,
            dialog=dialog,
            condition=swift_condition(app_state_key(dialog.state_key), dialog.show_when),
            localization_key=f"{shortcut.identifier}.stateDialogs.{index}.message",
            use_localization=use_localization,
        )
        checks.append(result.code)

    declaration = ""
    if shortcut.has_confirmation_dialogs:
        declaration = (
            "\n"
            "        // Track whether user confirmed any state-based dialogs\n"
            "        var userConfirmedOverride = false\n"
            "        "
        )

    return (
        "\n"
        "        // Check app state for state-based dialogs\n"
        f"        {declaration}{chr(10).join(checks)}\n"
        "    "
    )


# =============================================================================
# PARAMETERS
# =============================================================================


def generate_parameter_declarations(
    parameters: list[ShortcutParameter], use_localization: bool, identifier: str
) -> str:
    """`@Parameter` properties, one per configured parameter."""
    if not parameters:
        return ""

    declarations = []
    for index, param in enumerate(parameters):
        prefix = f"{identifier}.parameters.{index}"
        if use_localization:
            title = (
                f'LocalizedStringResource("{prefix}.title", '
                f'defaultValue: "{escape_for_swift(param.title)}")'
            )
        else:
            title = f'LocalizedStringResource("{escape_for_swift(param.title)}")'

        description = ""
        if param.description:
            if use_localization:
                description = (
                    f', description: LocalizedStringResource("{prefix}.description", '
                    f'defaultValue: "{escape_for_swift(param.description)}")'
                )
            else:
                description = (
                    f', description: LocalizedStringResource("{escape_for_swift(param.description)}")'
                )

        declarations.append(
            f"    @Parameter(title: {title}{description})\n"
            f"    var {param.name}: {swift_type(param.type)}"
        )

    return "\n" + "\n".join(declarations) + "\n"


def generate_initializers(parameters: list[ShortcutParameter]) -> str:
    """Default plus memberwise init; intents with parameters need both."""
    if not parameters:
        return ""

    param_list = ", ".join(f"{p.name}: {swift_type(p.type)}" for p in parameters)
    assignments = "\n".join(f"        self.{p.name} = {p.name}" for p in parameters)
    return (
        "\n"
        "    init() {}\n"
        "\n"
        f"    init({param_list}) {{\n"
        f"{assignments}\n"
        "    }\n"
    )


def generate_parameter_requests(
    parameters: list[ShortcutParameter], use_localization: bool, identifier: str
) -> str:
    """Ask Siri for every parameter still nil before going further."""
    if not parameters:
        return ""

    requests = []
    for index, param in enumerate(parameters):
        prompt_key = f"{identifier}.parameters.{index}.prompt"
        if use_localization:
            prompt = f"IntentDialog(stringLiteral: {_localized(prompt_key, param.default_prompt)})"
        else:
            prompt = f"IntentDialog(stringLiteral: {_literal(param.default_prompt)})"
        requests.append(
            f"        // Request {param.name} if not provided\n"
            f"        if {param.name} == nil {{\n"
            f"            {param.name} = try await ${param.name}.requestValue({prompt})\n"
            "        }"
        )

    return "\n" + "\n".join(requests) + "\n"


def generate_parameter_writes(parameters: list[ShortcutParameter], class_name: str) -> str:
    """Write resolved parameter values (and type tags) to the shared suite."""
    if not parameters:
        return ""

    writes = []
    for param in parameters:
        name = param.name
        key = param_key(name)
        type_key = param_type_key(name)

        if param.type == "date":
            body = (
                f'            print("[{class_name}] Writing parameter {name} (Date): \\({name})")\n'
                f'            defaults.set({name}.timeIntervalSince1970, forKey: "{key}")\n'
                f'            defaults.set("{TYPE_TAG_DATE}", forKey: "{type_key}")\n'
            )
        elif param.type == "boolean":
            body = (
                f'            print("[{class_name}] Writing parameter {name}: \\({name})")\n'
                f'            defaults.set({name}, forKey: "{key}")\n'
                f'            defaults.set("{TYPE_TAG_BOOLEAN}", forKey: "{type_key}")\n'
            )
        else:
            body = (
                f'            print("[{class_name}] Writing parameter {name}: \\({name})")\n'
                f'            defaults.set({name}, forKey: "{key}")\n'
            )

        writes.append(
            f"        if let {name} = {name} {{\n"
            f"{body}"
            "        } else {\n"
            f'            print("[{class_name}] Parameter {name} is nil")\n'
            "        }"
        )

    return "\n        // Write parameter values to shared UserDefaults\n" + "\n".join(writes) + "\n"


# =============================================================================
# INTENT STRUCT
# =============================================================================


def generate_intent_struct(shortcut: ShortcutDefinition, use_localization: bool) -> str:
    """Complete `struct <Name>Intent: AppIntent` for one shortcut."""
    class_name = shortcut.class_name
    identifier = shortcut.identifier

    parameter_declarations = generate_parameter_declarations(
        shortcut.parameters, use_localization, identifier
    )
    initializers = generate_initializers(shortcut.parameters)
    parameter_requests = generate_parameter_requests(
        shortcut.parameters, use_localization, identifier
    )
    parameter_writes = generate_parameter_writes(shortcut.parameters, class_name)
    dialog_code = generate_state_dialogs(shortcut, use_localization)

    if use_localization:
        title_value = f'"{identifier}.title"'
    else:
        title_value = _literal(shortcut.title)

    description_value = ""
    if shortcut.description:
        if use_localization:
            description_value = f'static var description = IntentDescription("{identifier}.description")'
        else:
            description_value = (
                f"static var description = IntentDescription({_literal(shortcut.description)})"
            )

    if use_localization:
        error_message = _localized(APP_GROUP_FAILED_KEY, APP_GROUP_FAILED_MESSAGE)
        timeout_message = _localized(TIMEOUT_KEY, TIMEOUT_MESSAGE)
    else:
        error_message = _literal(APP_GROUP_FAILED_MESSAGE)
        timeout_message = _literal(TIMEOUT_MESSAGE)

    confirmed_write = ""
    if shortcut.has_confirmation_dialogs:
        confirmed_write = (
            f'\n        defaults.set(userConfirmedOverride, forKey: "{USER_CONFIRMED_KEY}")'
        )

    return f"""
@available(iOS 16.0, *)
struct {class_name}: AppIntent {{
    static var title: LocalizedStringResource = {title_value}
    {description_value}
    static var openAppWhenRun: Bool {{ true }}
{parameter_declarations}{initializers}
    func perform() async throws -> some IntentResult & ProvidesDialog {{
        print("[{class_name}] Performing shortcut: {identifier}")

        // App Intents run in a separate process with sandbox restrictions.
        // Inter-process communication happens via UserDefaults with App Groups
        // (configured via App Capabilities in Xcode: group.<bundle-id>).
        guard let defaults = UserDefaults(suiteName: APP_GROUP_ID) else {{
            print("[{class_name}] ERROR: Failed to access App Group")
            return .result(dialog: IntentDialog(stringLiteral: {error_message}))
        }}
{parameter_requests}{dialog_code}
        let nonce = UUID().uuidString
{parameter_writes}
        defaults.set("{identifier}", forKey: "{PENDING_COMMAND_KEY}")
        defaults.set(nonce, forKey: "{COMMAND_NONCE_KEY}")
        defaults.set(Date().timeIntervalSince1970, forKey: "{COMMAND_TIMESTAMP_KEY}"){confirmed_write}

        print("[{class_name}] Command written to shared UserDefaults")

        // Post Darwin notification to wake up main app (cross-process notification)
        CFNotificationCenterPostNotification(
            CFNotificationCenterGetDarwinNotifyCenter(),
            CFNotificationName("{SHORTCUT_NOTIFICATION}" as CFString),
            nil, nil, true
        )

        print("[{class_name}] Darwin notification posted")

        // Poll UserDefaults for the app's response (with timeout).
        // The nonce ensures we don't receive stale responses from previous executions.
        let responseKey = "{RESPONSE_PREFIX}\\(nonce)"
        let timeout: TimeInterval = {format_literal(RESPONSE_TIMEOUT)}.0
        let pollInterval: TimeInterval = {POLL_INTERVAL}
        let startTime = Date()

        print("[{class_name}] Waiting for response...")

        while Date().timeIntervalSince(startTime) < timeout {{
            // Check for response with this specific nonce
            if let responseMessage = defaults.string(forKey: responseKey) {{
                print("[{class_name}] Received response: \\(responseMessage)")

                // Clean up to prevent duplicate processing
                defaults.removeObject(forKey: responseKey)

                // An empty responseMessage makes Siri speak its default feedback
                return .result(dialog: IntentDialog(stringLiteral: responseMessage))
            }}

            // Non-blocking sleep to reduce CPU usage while polling
            try? await Task.sleep(nanoseconds: UInt64(pollInterval * 1_000_000_000))
        }}

        print("[{class_name}] Timeout waiting for response")

        // Timeout reached - the app may have crashed, failed, or responded too slowly
        return .result(dialog: IntentDialog(stringLiteral: {timeout_message}))
    }}
}}"""


# =============================================================================
# APP SHORTCUTS
# =============================================================================


def swift_phrase(phrase: str) -> str:
    """Phrase literal guaranteed to mention the application name.

    Existing name tokens become `\\(.applicationName)` interpolations; the
    text around them is escaped.
    """
    parts = split_application_name(phrase)
    if len(parts) == 1:
        return f'"{escape_for_swift(phrase)} in \\(.applicationName)"'
    return '"' + "\\(.applicationName)".join(escape_for_swift(p) for p in parts) + '"'


def generate_app_shortcut(shortcut: ShortcutDefinition, use_localization: bool) -> str:
    """`AppShortcut(...)` registration entry for the provider."""
    # Phrases stay string literals: Siri extracts them at compile time.
    phrases = ",\n                ".join(swift_phrase(p) for p in shortcut.phrases)

    if use_localization:
        short_title = (
            f'LocalizedStringResource("{shortcut.identifier}.title", '
            f'defaultValue: "{escape_for_swift(shortcut.title)}")'
        )
    else:
        short_title = _literal(shortcut.title)

    return (
        "        AppShortcut(\n"
        f"            intent: {shortcut.class_name}(),\n"
        "            phrases: [\n"
        f"                {phrases}\n"
        "            ],\n"
        f"            shortTitle: {short_title},\n"
        f'            systemImageName: "{shortcut.system_image_name or DEFAULT_SYSTEM_IMAGE}"\n'
        "        )"
    )


# =============================================================================
# FILE
# =============================================================================


def generate_app_group_declaration(app_group_id: str | None) -> str:
    if app_group_id:
        return f'private let APP_GROUP_ID = "{escape_for_swift(app_group_id)}"'
    return (
        "private var APP_GROUP_ID: String {\n"
        "    guard let bundleId = Bundle.main.bundleIdentifier else {\n"
        '        fatalError("Cannot determine bundle identifier")\n'
        "    }\n"
        '    return "group.\\(bundleId)"\n'
        "}"
    )


def generate_swift_file(
    config: ShortcutConfig,
    use_localization: bool,
    source_name: str = "shortcuts.config.yaml",
) -> str:
    """Complete GeneratedAppIntents.swift text."""
    intents = "\n".join(generate_intent_struct(s, use_localization) for s in config.shortcuts)
    # The provider's @resultBuilder combines entries; no separator needed.
    app_shortcuts = "\n".join(generate_app_shortcut(s, use_localization) for s in config.shortcuts)

    return f"""//
// GeneratedAppIntents.swift
//
// AUTO-GENERATED - DO NOT EDIT
// Generated from {source_name}
// Run 'intentbridge generate' to regenerate
//

import Foundation
import AppIntents

// App Group for inter-process communication
// App Intents run in a separate process, so we use UserDefaults with App Group
// The App Group ID should be configured in your app's capabilities:
// Format: group.<bundle-identifier>
{generate_app_group_declaration(config.app_group_id)}

{intents}

@available(iOS 16.0, *)
struct GeneratedAppShortcutsProvider: AppShortcutsProvider {{
    static var appShortcuts: [AppShortcut] {{
{app_shortcuts}
    }}
}}
"""
