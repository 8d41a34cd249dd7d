"""
Intent-side runtime.

Executes a ShortcutDefinition with the same semantics as the perform()
method that swift_codegen emits, so the invocation protocol can be driven
from Python (tests, the preview server, desktop simulations):

    runner = IntentRunner(shortcut, store, prompter=ask, confirmer=confirm)
    result = await runner.perform(taskName="Buy milk")
    result.dialog, result.outcome

User interaction is injected: `prompter(param, prompt)` supplies missing
parameter values and `confirmer(message)` answers confirmation dialogs.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from darwin_notify import SHORTCUT_NOTIFICATION, NotificationCenter, darwin_notify_center
from intent_config import ShortcutDefinition, ShortcutParameter, StateDialog
from invocation_protocol import (
    POLL_INTERVAL,
    RESPONSE_TIMEOUT,
    new_nonce,
    poll_response,
    publish_command,
    write_parameter,
)
from localization_merge import (
    APP_GROUP_FAILED_KEY,
    APP_GROUP_FAILED_MESSAGE,
    TIMEOUT_KEY,
    TIMEOUT_MESSAGE,
)
from shared_store import SharedStore, SharedStoreError, StoreProvider, as_store_provider
from template_utils import app_state_key, extract_placeholders, format_literal

logger = logging.getLogger(__name__)

Prompter = Callable[[ShortcutParameter, str], Awaitable[Any]]
Confirmer = Callable[[str], Awaitable[bool]]
Localizer = Callable[[str, str], str]


class ConfirmationCancelled(Exception):
    """The user declined a state-dialog confirmation; the app is never woken."""


class Outcome(Enum):
    RESPONDED = "responded"
    TIMED_OUT = "timed_out"
    DIALOG_RETURNED = "dialog_returned"
    STORE_UNAVAILABLE = "store_unavailable"


@dataclass
class IntentResult:
    """What Siri would speak, and why."""

    dialog: str
    outcome: Outcome
    nonce: str | None = None


async def _always_confirm(message: str) -> bool:
    return True


def _source_text(key: str, default: str) -> str:
    return default


# =============================================================================
# STATE EVALUATION
# =============================================================================


def evaluate_condition(store: SharedStore, state_key: str, show_when: Any) -> bool:
    """Python twin of template_utils.swift_condition()."""
    key = app_state_key(state_key)
    if isinstance(show_when, bool):
        return store.double(key) == (1.0 if show_when else 0.0)
    if isinstance(show_when, (int, float)):
        return store.double(key) == float(show_when)
    if isinstance(show_when, str):
        return store.string(key) == show_when
    return store.string(key) is not None


def interpolate_message(store: SharedStore, message: str) -> str:
    """Substitute `${name}` with appState_<name>: text first, then number.

    Placeholders with no stored value are left as-is.
    """
    for name in extract_placeholders(message):
        key = app_state_key(name)
        text = store.string(key)
        if text is not None:
            message = message.replace(f"${{{name}}}", text)
            continue
        number = store.number(key)
        if number is not None:
            message = message.replace(f"${{{name}}}", format_literal(number))
    return message


# =============================================================================
# RUNNER
# =============================================================================


class IntentRunner:
    """Runs one shortcut against a shared store.

    Args:
        shortcut: The shortcut to perform.
        store: A SharedStore, or a factory that opens one (and may raise
            SharedStoreError, which becomes the fixed error reply).
        center: Notification center to signal the app through.
        prompter: Async callable asked for each parameter still missing.
            Without one, missing parameters stay unset.
        confirmer: Async callable for confirmation dialogs; returning False
            or raising ConfirmationCancelled aborts. Defaults to accepting.
        localize: `(key, default) -> text` lookup used when
            use_localization is on.
    """

    def __init__(
        self,
        shortcut: ShortcutDefinition,
        store: SharedStore | StoreProvider,
        center: NotificationCenter | None = None,
        *,
        prompter: Prompter | None = None,
        confirmer: Confirmer | None = None,
        localize: Localizer | None = None,
        use_localization: bool = False,
        timeout: float = RESPONSE_TIMEOUT,
        interval: float = POLL_INTERVAL,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.shortcut = shortcut
        self._store_provider = as_store_provider(store)
        self._center = center or darwin_notify_center()
        self._prompter = prompter
        self._confirmer = confirmer or _always_confirm
        self._localize = localize or _source_text
        self.use_localization = use_localization
        self.timeout = timeout
        self.interval = interval
        self._sleep = sleep

    @property
    def tag(self) -> str:
        return f"[{self.shortcut.class_name}]"

    def _text(self, key: str, default: str) -> str:
        if self.use_localization:
            return self._localize(key, default)
        return default

    async def _request_values(self, values: dict[str, Any]) -> dict[str, Any]:
        for index, param in enumerate(self.shortcut.parameters):
            if values.get(param.name) is not None or self._prompter is None:
                continue
            prompt = self._text(
                f"{self.shortcut.identifier}.parameters.{index}.prompt", param.default_prompt
            )
            values[param.name] = await self._prompter(param, prompt)
        return values

    def _dialog_message(self, store: SharedStore, index: int, dialog: StateDialog) -> str:
        message = self._text(
            f"{self.shortcut.identifier}.stateDialogs.{index}.message", dialog.message
        )
        return interpolate_message(store, message)

    async def _confirm(self, message: str) -> None:
        try:
            confirmed = await self._confirmer(message)
        except ConfirmationCancelled:
            logger.info("%s User cancelled confirmation", self.tag)
            raise
        if not confirmed:
            logger.info("%s User cancelled confirmation", self.tag)
            raise ConfirmationCancelled(self.shortcut.identifier)

    async def perform(self, **values: Any) -> IntentResult:
        """Run the shortcut; keyword arguments are pre-filled parameter values.

        Raises:
            ConfirmationCancelled: A confirmation dialog was declined.
            TypeError: A keyword does not name a declared parameter.
        """
        shortcut = self.shortcut
        declared = {p.name for p in shortcut.parameters}
        unknown = sorted(set(values) - declared)
        if unknown:
            raise TypeError(f"{shortcut.identifier} has no parameter(s): {', '.join(unknown)}")

        logger.info("%s Performing shortcut: %s", self.tag, shortcut.identifier)

        # Opening the suite and every later read or write share one failure reply.
        try:
            store = self._store_provider()
            return await self._run(store, dict(values))
        except SharedStoreError as e:
            logger.error("%s ERROR: Failed to access App Group: %s", self.tag, e)
            return IntentResult(
                self._text(APP_GROUP_FAILED_KEY, APP_GROUP_FAILED_MESSAGE),
                Outcome.STORE_UNAVAILABLE,
            )

    async def _run(self, store: SharedStore, values: dict[str, Any]) -> IntentResult:
        shortcut = self.shortcut
        values = await self._request_values(values)

        user_confirmed_override = False
        for index, dialog in enumerate(shortcut.state_dialogs):
            if not evaluate_condition(store, dialog.state_key, dialog.show_when):
                continue
            shown = format_literal(dialog.show_when)
            message = self._dialog_message(store, index, dialog)
            if dialog.requires_confirmation:
                logger.info("%s Confirmation required: %s is %s", self.tag, dialog.state_key, shown)
                await self._confirm(message)
                user_confirmed_override = True
            else:
                logger.info(
                    "%s Showing message (no confirmation): %s is %s",
                    self.tag, dialog.state_key, shown,
                )
                return IntentResult(message, Outcome.DIALOG_RETURNED)

        nonce = new_nonce()

        for param in shortcut.parameters:
            value = values.get(param.name)
            if value is None:
                logger.debug("%s Parameter %s is nil", self.tag, param.name)
                continue
            logger.debug("%s Writing parameter %s: %r", self.tag, param.name, value)
            write_parameter(store, param.name, param.type, value)

        publish_command(
            store,
            shortcut.identifier,
            nonce,
            user_confirmed=user_confirmed_override if shortcut.has_confirmation_dialogs else None,
        )
        logger.debug("%s Command written to shared store", self.tag)

        self._center.post(SHORTCUT_NOTIFICATION)
        logger.debug("%s Notification posted, waiting for response...", self.tag)

        response = await poll_response(
            store, nonce, timeout=self.timeout, interval=self.interval, sleep=self._sleep
        )
        if response is None:
            logger.warning("%s Timeout waiting for response", self.tag)
            return IntentResult(self._text(TIMEOUT_KEY, TIMEOUT_MESSAGE), Outcome.TIMED_OUT, nonce)

        logger.info("%s Received response: %r", self.tag, response)
        return IntentResult(response, Outcome.RESPONDED, nonce)
