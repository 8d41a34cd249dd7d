"""
Application-side bridge for shortcut invocations.

Two layers, mirroring the native module and the library wrapper an app
talks to:

  IntentsBridge     observes the shortcut notification, reads the pending
                    command from the shared store, clears it (only if the
                    nonce still matches) and hands it to one callback.
  ShortcutsManager  fans invocations out to listeners, gives each one a
                    respond() bound to the invocation nonce, and syncs
                    app state (appState_*) for state dialogs.

Usage:
    bridge = IntentsBridge(suite_provider("group.com.example.app"))
    bridge.start()
    manager = ShortcutsManager(bridge, config)

    def on_shortcut(shortcut, respond):
        if shortcut.identifier == "startTimer":
            respond("Timer started")

    subscription = manager.add_listener(on_shortcut)
    manager.update_app_state({"timerRunning": True})
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from darwin_notify import SHORTCUT_NOTIFICATION, NotificationCenter, darwin_notify_center
from intent_config import ShortcutConfig
from invocation_protocol import (
    PendingCommand,
    ParamValue,
    clear_pending_command,
    publish_response,
    read_pending_command,
)
from shared_store import SharedStore, SharedStoreError, StoreProvider, as_store_provider
from template_utils import app_state_key

logger = logging.getLogger(__name__)

Dispatcher = Callable[[Callable[[], None]], None]
CommandCallback = Callable[[PendingCommand], None]
RespondCallback = Callable[..., None]
Listener = Callable[["ShortcutInvocation", RespondCallback], Any]


def inline_dispatcher(fn: Callable[[], None]) -> None:
    fn()


def asyncio_dispatcher(loop: asyncio.AbstractEventLoop) -> Dispatcher:
    """Dispatcher that runs callbacks on `loop`'s thread (the app's main queue)."""

    def dispatch(fn: Callable[[], None]) -> None:
        loop.call_soon_threadsafe(fn)

    return dispatch


# =============================================================================
# NATIVE BRIDGE
# =============================================================================


class IntentsBridge:
    """Receives commands written by intents and exposes store primitives."""

    def __init__(
        self,
        store: SharedStore | StoreProvider,
        center: NotificationCenter | None = None,
        dispatcher: Dispatcher | None = None,
    ):
        self._store_provider = as_store_provider(store)
        self._center = center or darwin_notify_center()
        self._dispatch = dispatcher or inline_dispatcher
        self._lock = threading.Lock()
        self._callback: CommandCallback | None = None
        self._observer_token: int | None = None

    # ── lifecycle ──────────────────────────────────────────────────────

    def start(self) -> None:
        """Begin observing the shortcut notification (idempotent)."""
        if self._observer_token is not None:
            return
        self._observer_token = self._center.add_observer(SHORTCUT_NOTIFICATION, self._on_notification)
        logger.info("[IosIntents] Notification listener registered")

    def stop(self) -> None:
        if self._observer_token is None:
            return
        self._center.remove_observer(self._observer_token)
        self._observer_token = None
        logger.info("[IosIntents] Notification observer removed")

    @property
    def started(self) -> bool:
        return self._observer_token is not None

    def _on_notification(self, name: str) -> None:
        logger.debug("[IosIntents] Notification received: %s", name)
        self.handle_notification()

    # ── commands ───────────────────────────────────────────────────────

    def set_shortcut_callback(self, callback: CommandCallback) -> None:
        """Install the callback, then re-check for a command left by a cold start."""
        with self._lock:
            self._callback = callback
        logger.info("[IosIntents] Shortcut callback registered")
        self.handle_notification()

    def handle_notification(self) -> PendingCommand | None:
        """Read, clear and deliver the pending command, if any.

        Read and clear happen under one lock, so a duplicate notification
        finds nothing. While no callback is installed the command is left in
        the store for set_shortcut_callback() to pick up.
        """
        try:
            store = self._store_provider()
        except SharedStoreError as e:
            logger.error("[IosIntents] ERROR: Cannot access shared store: %s", e)
            return None

        with self._lock:
            callback = self._callback
            if callback is None:
                logger.debug("[IosIntents] No callback registered yet, leaving command pending")
                return None
            try:
                command = read_pending_command(store)
                if command is None:
                    logger.debug("[IosIntents] No pending command found")
                    return None
                logger.info(
                    "[IosIntents] Pending command found: %s, nonce: %s",
                    command.identifier, command.nonce,
                )
                cleared = clear_pending_command(store, command.nonce)
            except SharedStoreError as e:
                # An uncleared command is not delivered; the next notification retries it.
                logger.error("[IosIntents] ERROR: Cannot access shared store: %s", e)
                return None
            if cleared:
                logger.debug("[IosIntents] Pending command and parameters cleared")
            else:
                logger.warning("[IosIntents] Nonce mismatch, skipping clear")

        self._dispatch(lambda: callback(command))
        return command

    # ── store primitives ───────────────────────────────────────────────

    def _store(self) -> SharedStore:
        return self._store_provider()

    def get_shared_string(self, key: str) -> str | None:
        return self._store().string(key)

    def set_shared_string(self, key: str, value: str | None) -> None:
        """Write a string; None removes the key."""
        self._store().set(key, value)

    def get_shared_number(self, key: str) -> float | None:
        return self._store().number(key)

    def set_shared_number(self, key: str, value: float | None) -> None:
        """Write a number; None removes the key."""
        self._store().set(key, None if value is None else float(value))

    def publish_response(self, nonce: str, message: str | None) -> None:
        publish_response(self._store(), nonce, message)


# =============================================================================
# LISTENER MANAGER
# =============================================================================


@dataclass
class ShortcutInvocation:
    """What listeners receive for one shortcut run."""

    identifier: str
    nonce: str
    parameters: dict[str, Any] = field(default_factory=dict)
    user_confirmed: bool | None = None
    raw_parameters: dict[str, ParamValue] = field(default_factory=dict)

    @classmethod
    def from_command(
        cls, command: PendingCommand, config: ShortcutConfig | None = None
    ) -> ShortcutInvocation:
        """Resolve raw parameters against the declared types, when known."""
        definition = config.get(command.identifier) if config else None
        parameters = {}
        for name, raw in command.parameters.items():
            declared = definition.parameter(name) if definition else None
            parameters[name] = raw.resolve(declared.type if declared else None)
        return cls(
            identifier=command.identifier,
            nonce=command.nonce,
            parameters=parameters,
            user_confirmed=command.user_confirmed,
            raw_parameters=dict(command.parameters),
        )


class Subscription:
    """Handle returned by add_listener(); remove() is idempotent."""

    def __init__(self, manager: ShortcutsManager, listener: Listener):
        self._manager = manager
        self._listener = listener
        self.active = True

    def remove(self) -> None:
        if not self.active:
            return
        self.active = False
        self._manager._remove_listener(self._listener)


class ShortcutsManager:
    """Listener registry and app-state sync for one application.

    Pass bridge=None where no bridge is available; state updates and
    responses are then logged and dropped.
    """

    def __init__(self, bridge: IntentsBridge | None, config: ShortcutConfig | None = None):
        self._bridge = bridge
        self.config = config
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []
        self._native_callback_registered = False
        self._tracked_state_keys: dict[str, None] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    @property
    def tracked_state_keys(self) -> list[str]:
        return list(self._tracked_state_keys)

    def _ensure_native_callback(self) -> None:
        if self._native_callback_registered or self._bridge is None:
            return
        logger.info("Registering native callback for shortcut notifications...")
        self._native_callback_registered = True
        self._bridge.set_shortcut_callback(self._on_command)

    def add_listener(self, listener: Listener) -> Subscription:
        with self._lock:
            if listener in self._listeners:
                logger.debug("Shortcut listener already registered")
            else:
                self._listeners.append(listener)
                logger.debug("Added shortcut listener")
        self._ensure_native_callback()
        return Subscription(self, listener)

    def _remove_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
                logger.debug("Removed shortcut listener")
            if not self._listeners:
                self._native_callback_registered = False

    def cleanup(self, state_keys: list[str] | None = None) -> None:
        """Drop all listeners and clear app state.

        Clears the given state keys, or every key ever passed to
        update_app_state() when state_keys is None. Tracked keys are only
        forgotten on a full cleanup.
        """
        with self._lock:
            self._listeners.clear()
            self._native_callback_registered = False

        keys = list(self._tracked_state_keys) if state_keys is None else list(state_keys)
        if keys and self._bridge is not None:
            try:
                for key in keys:
                    self._bridge.set_shared_string(app_state_key(key), None)
            except SharedStoreError as e:
                logger.error("Error clearing app state: %s", e)

        if state_keys is None:
            self._tracked_state_keys.clear()
        logger.info("Shortcuts cleanup completed")

    def update_app_state(self, state: dict[str, Any]) -> None:
        """Sync app state into appState_<key> entries for state dialogs.

        Booleans are stored as 1/0 numbers, numbers and strings natively,
        None removes the key, and other values are stored as JSON text.
        """
        bridge = self._bridge
        if bridge is None:
            logger.warning("update_app_state: no bridge available")
            return

        logger.debug("Updating app state: %r", state)
        try:
            for key, value in state.items():
                state_key = app_state_key(key)
                self._tracked_state_keys[key] = None

                if isinstance(value, bool):
                    bridge.set_shared_number(state_key, 1 if value else 0)
                elif isinstance(value, (int, float)):
                    bridge.set_shared_number(state_key, value)
                elif isinstance(value, str):
                    bridge.set_shared_string(state_key, value)
                elif value is None:
                    bridge.set_shared_string(state_key, None)
                else:
                    try:
                        encoded = json.dumps(value)
                    except (TypeError, ValueError) as e:
                        logger.warning("Cannot serialize value for key %r: %s", key, e)
                        continue
                    bridge.set_shared_string(state_key, encoded)
        except SharedStoreError as e:
            logger.error("Error updating app state: %s", e)
            return
        logger.info("App state updated successfully")

    def respond(self, nonce: str, message: str | None = None) -> None:
        """Publish the reply for an invocation; None/"" means default feedback."""
        if self._bridge is None:
            logger.error("Cannot respond: no bridge available")
            return
        try:
            self._bridge.publish_response(nonce, message)
        except SharedStoreError as e:
            logger.error("Error sending response: %s", e)
            return
        logger.debug("Response sent for %s: %s", nonce, message or "(silent)")

    # ── dispatch ───────────────────────────────────────────────────────

    def _on_command(self, command: PendingCommand) -> None:
        self.handle_invocation(ShortcutInvocation.from_command(command, self.config))

    def handle_invocation(self, shortcut: ShortcutInvocation) -> None:
        """Call every listener; failures are logged per listener."""
        logger.info("Shortcut invoked: %s", shortcut.identifier)

        def respond(message: str | None = None) -> None:
            self.respond(shortcut.nonce, message)

        with self._lock:
            listeners = list(self._listeners)
        if not listeners:
            logger.warning("Shortcut invoked but no listeners registered")
            return

        for listener in listeners:
            try:
                result = listener(shortcut, respond)
            except Exception:
                logger.exception("Error in listener")
                continue
            if inspect.isawaitable(result):
                self._schedule(result)

    async def _guard(self, awaitable: Any) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception("Error in async listener")

    def _schedule(self, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._guard(awaitable))
            return
        task = loop.create_task(self._guard(awaitable))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
