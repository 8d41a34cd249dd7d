"""
Cross-process invocation protocol.

The intent process and the app process share nothing but a key-value suite
and a payload-less broadcast signal. One invocation moves through these
states, visible only as store contents:

    Idle -> CommandPending      intent writes command + nonce, posts signal
         -> Consumed            app reads it; clears only if the nonce still matches
         -> ResponseAwaited     app writes Response_<nonce> once handled
         -> ResponseConsumed    intent sees the response first and deletes it
          | TimedOut            intent gives up; a late response is orphaned

This module holds the key names, timing constants and the store operations
both sides (generated Swift, intent_runtime, shortcuts_bridge) agree on.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable

from shared_store import SharedStore

# =============================================================================
# KEYS & CONSTANTS
# =============================================================================

KEY_PREFIX = "IosIntents"
PENDING_COMMAND_KEY = f"{KEY_PREFIX}PendingCommand"
COMMAND_NONCE_KEY = f"{KEY_PREFIX}CommandNonce"
COMMAND_TIMESTAMP_KEY = f"{KEY_PREFIX}CommandTimestamp"
USER_CONFIRMED_KEY = f"{KEY_PREFIX}UserConfirmed"
PARAM_PREFIX = f"{KEY_PREFIX}Param_"
PARAM_TYPE_PREFIX = f"{KEY_PREFIX}ParamType_"
RESPONSE_PREFIX = f"{KEY_PREFIX}Response_"

COMMAND_KEYS = (
    PENDING_COMMAND_KEY,
    COMMAND_NONCE_KEY,
    COMMAND_TIMESTAMP_KEY,
    USER_CONFIRMED_KEY,
)

TYPE_TAG_DATE = "date"
TYPE_TAG_BOOLEAN = "boolean"

RESPONSE_TIMEOUT = 5.0  # seconds the intent waits for the app
POLL_INTERVAL = 0.1  # seconds between response checks


def param_key(name: str) -> str:
    return f"{PARAM_PREFIX}{name}"


def param_type_key(name: str) -> str:
    return f"{PARAM_TYPE_PREFIX}{name}"


def response_key(nonce: str) -> str:
    return f"{RESPONSE_PREFIX}{nonce}"


def new_nonce() -> str:
    """Uppercase UUID string, same shape as Swift's UUID().uuidString."""
    return str(uuid.uuid4()).upper()


# =============================================================================
# PARAMETER VALUES
# =============================================================================


class ParamKind(Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class ParamValue:
    """A parameter as decoded from the store, before schema resolution."""

    kind: ParamKind
    value: Any  # str for TEXT, float for NUMBER/TIMESTAMP, bool for BOOLEAN

    @classmethod
    def text(cls, value: str) -> ParamValue:
        return cls(ParamKind.TEXT, value)

    @classmethod
    def number(cls, value: float) -> ParamValue:
        return cls(ParamKind.NUMBER, float(value))

    @classmethod
    def boolean(cls, value: bool) -> ParamValue:
        return cls(ParamKind.BOOLEAN, bool(value))

    @classmethod
    def timestamp(cls, value: float) -> ParamValue:
        return cls(ParamKind.TIMESTAMP, float(value))

    def to_python(self) -> Any:
        """Natural Python value: TIMESTAMP becomes an aware UTC datetime."""
        if self.kind is ParamKind.TIMESTAMP:
            return datetime.fromtimestamp(self.value, tz=timezone.utc)
        return self.value

    def resolve(self, declared_type: str | None) -> Any:
        """Coerce to the declared config type ("string", "number", ...).

        Values that cannot be coerced are returned as to_python().
        """
        if declared_type == "string":
            if self.kind is ParamKind.TEXT:
                return self.value
            return str(self.to_python())
        if declared_type == "number":
            if self.kind is ParamKind.TEXT:
                try:
                    return float(self.value)
                except ValueError:
                    return self.value
            return float(self.value)
        if declared_type == "boolean":
            if self.kind is ParamKind.TEXT:
                lowered = self.value.strip().lower()
                if lowered in ("true", "yes", "1"):
                    return True
                if lowered in ("false", "no", "0"):
                    return False
                return self.value
            return bool(self.value)
        if declared_type == "date":
            if self.kind in (ParamKind.TIMESTAMP, ParamKind.NUMBER):
                return datetime.fromtimestamp(self.value, tz=timezone.utc)
            if self.kind is ParamKind.TEXT:
                try:
                    return datetime.fromisoformat(self.value)
                except ValueError:
                    return self.value
        return self.to_python()


def _to_epoch_seconds(value: Any) -> float:
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise TypeError(f"Cannot encode {type(value).__name__} as a date parameter")


def write_parameter(store: SharedStore, name: str, param_type: str, value: Any) -> None:
    """Write one resolved parameter the way the generated intent does.

    Dates become epoch seconds plus a "date" tag and booleans are stored
    natively plus a "boolean" tag; strings and numbers need no tag.
    """
    if param_type == "date":
        store.set(param_key(name), _to_epoch_seconds(value))
        store.set(param_type_key(name), TYPE_TAG_DATE)
    elif param_type == "boolean":
        store.set(param_key(name), bool(value))
        store.set(param_type_key(name), TYPE_TAG_BOOLEAN)
    elif param_type == "number":
        store.set(param_key(name), float(value))
    else:
        store.set(param_key(name), str(value))


def read_parameters(store: SharedStore) -> dict[str, ParamValue]:
    """Decode every Param_<name> key present, whatever the schema says."""
    snapshot = store.snapshot()
    parameters: dict[str, ParamValue] = {}
    for key, raw in snapshot.items():
        if not key.startswith(PARAM_PREFIX):
            continue
        name = key[len(PARAM_PREFIX):]
        tag = snapshot.get(param_type_key(name))
        is_numeric = isinstance(raw, (bool, int, float))

        if tag == TYPE_TAG_DATE and (is_numeric or isinstance(raw, str)):
            try:
                parameters[name] = ParamValue.timestamp(float(raw))
            except ValueError:
                parameters[name] = ParamValue.text(raw)
        elif tag == TYPE_TAG_BOOLEAN and is_numeric:
            parameters[name] = ParamValue.boolean(bool(raw))
        elif isinstance(raw, str):
            parameters[name] = ParamValue.text(raw)
        elif is_numeric:
            parameters[name] = ParamValue.number(float(raw))
    return parameters


# =============================================================================
# COMMANDS
# =============================================================================


@dataclass
class PendingCommand:
    """A command as read from the store by the app side."""

    identifier: str
    nonce: str
    timestamp: float
    parameters: dict[str, ParamValue] = field(default_factory=dict)
    user_confirmed: bool | None = None


def publish_command(
    store: SharedStore,
    identifier: str,
    nonce: str,
    user_confirmed: bool | None = None,
    timestamp: float | None = None,
) -> None:
    """Write the pending command keys (parameters are written beforehand)."""
    store.set(PENDING_COMMAND_KEY, identifier)
    store.set(COMMAND_NONCE_KEY, nonce)
    store.set(COMMAND_TIMESTAMP_KEY, time.time() if timestamp is None else timestamp)
    if user_confirmed is not None:
        store.set(USER_CONFIRMED_KEY, bool(user_confirmed))


def read_pending_command(store: SharedStore) -> PendingCommand | None:
    identifier = store.string(PENDING_COMMAND_KEY)
    nonce = store.string(COMMAND_NONCE_KEY)
    if identifier is None or nonce is None:
        return None

    confirmed_raw = store.get(USER_CONFIRMED_KEY)
    user_confirmed = None
    if isinstance(confirmed_raw, (bool, int, float)):
        user_confirmed = bool(confirmed_raw)

    return PendingCommand(
        identifier=identifier,
        nonce=nonce,
        timestamp=store.double(COMMAND_TIMESTAMP_KEY),
        parameters=read_parameters(store),
        user_confirmed=user_confirmed,
    )


def clear_pending_command(store: SharedStore, nonce: str) -> bool:
    """Remove the command, its parameters and their type tags.

    Only clears when the stored nonce still equals `nonce`; a newer command
    written in the meantime is left intact. Returns whether it cleared.
    """
    if store.string(COMMAND_NONCE_KEY) != nonce:
        return False
    stale = list(COMMAND_KEYS) + [
        key
        for key in store.keys()
        if key.startswith(PARAM_PREFIX) or key.startswith(PARAM_TYPE_PREFIX)
    ]
    store.remove_many(stale)
    return True


# =============================================================================
# RESPONSES
# =============================================================================


def publish_response(store: SharedStore, nonce: str, message: str | None) -> None:
    """Write the reply for nonce; "" asks Siri for its default feedback."""
    store.set(response_key(nonce), message or "")


def take_response(store: SharedStore, nonce: str) -> str | None:
    """Read and delete the reply for nonce, if it has arrived."""
    key = response_key(nonce)
    message = store.string(key)
    if message is not None:
        store.remove(key)
    return message


async def poll_response(
    store: SharedStore,
    nonce: str,
    timeout: float = RESPONSE_TIMEOUT,
    interval: float = POLL_INTERVAL,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> str | None:
    """Poll for the reply until timeout; None when nothing arrived."""
    start = clock()
    while clock() - start < timeout:
        message = take_response(store, nonce)
        if message is not None:
            return message
        await sleep(interval)
    return None


def find_orphaned_responses(store: SharedStore, active_nonces: Iterable[str] = ()) -> list[str]:
    """Response keys nobody is waiting for (late replies after a timeout).

    Diagnostic only: nothing is deleted.
    """
    active = {response_key(n) for n in active_nonces}
    return sorted(
        key for key in store.keys() if key.startswith(RESPONSE_PREFIX) and key not in active
    )
