"""
Shared key-value store between the intent process and the app process.

Models an App Group UserDefaults suite: a flat namespace of property-list
scalars (str, bool, int, float) that both processes read and write with
independent, non-transactional operations.

Two backends:
  InMemorySharedStore  thread-safe dict, for tests and single-process use
  PlistSharedStore     one binary plist file per suite, re-read on every
                       access so writes from another process are visible;
                       each read-modify-write holds an flock on a sibling
                       .lock file

Usage:
    from shared_store import open_suite

    defaults = open_suite("group.com.example.app")
    defaults.set("appState_timerRunning", 1)
    defaults.double("appState_timerRunning")   # 1.0
"""

from __future__ import annotations

import fcntl
import os
import plistlib
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Union
from xml.parsers.expat import ExpatError

StoreValue = Union[str, bool, int, float]

STORE_DIR_ENV = "INTENTBRIDGE_STORE_DIR"
DEFAULT_STORE_DIR = Path.home() / ".intentbridge" / "groups"


class SharedStoreError(RuntimeError):
    """The shared suite cannot be opened, read or written."""


def _number_text(value: bool | int | float) -> str:
    """NSNumber.stringValue: booleans as 1/0, integral doubles without ".0"."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class SharedStore:
    """Typed accessors on top of a minimal get/set/remove/keys backend.

    Typed reads follow UserDefaults conventions: `string()` returns str
    values and the decimal text of numbers, `number()` returns bools and
    numbers as float, and `double()` returns 0.0 for anything missing or
    non-numeric.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()

    # -- backend --------------------------------------------------------

    def _read_all(self) -> dict[str, StoreValue]:
        raise NotImplementedError

    def _write_all(self, data: dict[str, StoreValue]) -> None:
        raise NotImplementedError

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the suite for one read-modify-write."""
        with self._lock:
            yield

    # -- raw access -----------------------------------------------------

    def get(self, key: str) -> StoreValue | None:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: StoreValue | None) -> None:
        """Store a scalar; None removes the key."""
        if value is None:
            self.remove(key)
            return
        if not isinstance(value, (str, bool, int, float)):
            raise TypeError(f"Unsupported shared store value for {key!r}: {type(value).__name__}")
        with self._exclusive():
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._exclusive():
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)

    def remove_many(self, keys: list[str]) -> None:
        with self._exclusive():
            data = self._read_all()
            removed = False
            for key in keys:
                if key in data:
                    del data[key]
                    removed = True
            if removed:
                self._write_all(data)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._read_all().keys())

    def snapshot(self) -> dict[str, StoreValue]:
        """Copy of the whole suite (dictionaryRepresentation)."""
        with self._lock:
            return dict(self._read_all())

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    # -- typed reads ----------------------------------------------------

    def string(self, key: str) -> str | None:
        value = self.get(key)
        if isinstance(value, str):
            return value
        if isinstance(value, (bool, int, float)):
            return _number_text(value)
        return None

    def number(self, key: str) -> float | None:
        value = self.get(key)
        if isinstance(value, bool):
            return 1.0 if value else 0.0
        if isinstance(value, (int, float)):
            return float(value)
        return None

    def double(self, key: str) -> float:
        value = self.get(key)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return 0.0
        number = self.number(key) if value is not None else None
        return number if number is not None else 0.0


class InMemorySharedStore(SharedStore):
    """Process-local suite backed by a dict."""

    def __init__(self, initial: dict[str, StoreValue] | None = None) -> None:
        super().__init__()
        self._data: dict[str, StoreValue] = dict(initial or {})

    def _read_all(self) -> dict[str, StoreValue]:
        return self._data

    def _write_all(self, data: dict[str, StoreValue]) -> None:
        self._data = data


class PlistSharedStore(SharedStore):
    """Suite persisted as a binary plist, shared by every process that opens it."""

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        self.lock_path = self.path.with_name(f".{self.path.name}.lock")
        self._lock_depth = 0

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        # flock excludes other processes and other instances on the same path;
        # the RLock plus depth count keeps nested use within one instance safe.
        with self._lock:
            if self._lock_depth:
                self._lock_depth += 1
                try:
                    yield
                finally:
                    self._lock_depth -= 1
                return
            try:
                fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
            except OSError as e:
                raise SharedStoreError(f"Cannot lock shared suite {self.path}: {e}") from e
            try:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX)
                except OSError as e:
                    raise SharedStoreError(f"Cannot lock shared suite {self.path}: {e}") from e
                self._lock_depth = 1
                try:
                    yield
                finally:
                    self._lock_depth = 0
                    fcntl.flock(fd, fcntl.LOCK_UN)
            finally:
                os.close(fd)

    def _read_all(self) -> dict[str, StoreValue]:
        try:
            with open(self.path, "rb") as f:
                data = plistlib.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError, ExpatError) as e:
            raise SharedStoreError(f"Cannot read shared suite {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise SharedStoreError(f"Shared suite {self.path} is not a dictionary")
        return data

    def _write_all(self, data: dict[str, StoreValue]) -> None:
        # Write to a sibling temp file and rename so readers never see a torn file.
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    plistlib.dump(data, f, fmt=plistlib.FMT_BINARY)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise SharedStoreError(f"Cannot write shared suite {self.path}: {e}") from e


def store_dir() -> Path:
    """Directory holding plist suites (INTENTBRIDGE_STORE_DIR overrides)."""
    override = os.environ.get(STORE_DIR_ENV)
    return Path(override).expanduser() if override else DEFAULT_STORE_DIR


def open_suite(app_group_id: str, base_dir: str | Path | None = None) -> PlistSharedStore:
    """Open the plist suite for an App Group, creating its directory.

    Raises:
        SharedStoreError: If the group id is empty or unusable as a file
            name, or the suite directory cannot be created.
    """
    if not app_group_id or "/" in app_group_id or app_group_id in (".", ".."):
        raise SharedStoreError(f"Invalid App Group identifier: {app_group_id!r}")
    directory = Path(base_dir) if base_dir is not None else store_dir()
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SharedStoreError(f"Cannot access App Group directory {directory}: {e}") from e
    return PlistSharedStore(directory / f"{app_group_id}.plist")


StoreProvider = Callable[[], SharedStore]


def as_store_provider(source: SharedStore | StoreProvider) -> StoreProvider:
    """Normalize a store or a store factory into a factory.

    Factories are called on every access, so a suite that cannot be opened
    surfaces as SharedStoreError at the point of use.
    """
    if isinstance(source, SharedStore):
        return lambda: source
    return source


def suite_provider(app_group_id: str, base_dir: str | Path | None = None) -> StoreProvider:
    return lambda: open_suite(app_group_id, base_dir)
