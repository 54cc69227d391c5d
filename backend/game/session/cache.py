"""Key/value stores backing a device's game session.

TransientStore holds the active game and user for the life of the process
and notifies subscribers when a value changes. DurableCache implementations
remember which role a device held in each game across restarts.
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from shared.dal import ChangeNotifier

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.dal import Subscription

logger = structlog.get_logger()

_CACHE_DIR_MODE = 0o700
_CACHE_FILE_MODE = 0o600


class TransientStore:
    """In-memory key/value map with change notification.

    Setting a key to a value equal to its current one does not notify.
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._notifier = ChangeNotifier()

    def get(self, key: str) -> Any:  # noqa: ANN401
        return self._values.get(key)

    def set(self, key: str, value: Any) -> None:  # noqa: ANN401
        old = self._values.get(key)
        if old == value:
            return
        if value is None:
            self._values.pop(key, None)
        else:
            self._values[key] = value
        self._notifier.notify(key, old, value)

    def subscribe(self, key: str, callback: Callable[[Any, Any], None]) -> Subscription:
        """Call callback(old, new) each time the value under key changes."""
        return self._notifier.subscribe(key, callback)


class DurableCache(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self, key: str) -> None: ...


class MemoryCache:
    """DurableCache that lives only as long as the process. For tests and kiosks."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def clear(self, key: str) -> None:
        self._values.pop(key, None)


class FileCache:
    """DurableCache persisted as a JSON object in a single file.

    Every write replaces the file atomically (temp file, fsync, rename) with
    owner-only permissions. A missing, unreadable or corrupt file is treated
    as empty.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).resolve()
        self._values = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._commit({**self._values, key: value})

    def clear(self, key: str) -> None:
        if key not in self._values:
            return
        self._commit({k: v for k, v in self._values.items() if k != key})

    def _commit(self, values: dict[str, str]) -> None:
        # Only adopt the new values once they are on disk.
        self._write(values)
        self._values = values

    def _read(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError:
            logger.warning("could not read session cache", path=str(self._path))
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("corrupt session cache ignored", path=str(self._path))
            return {}
        if not isinstance(data, dict):
            logger.warning("corrupt session cache ignored", path=str(self._path))
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, values: dict[str, str]) -> None:
        directory = self._path.parent
        directory.mkdir(mode=_CACHE_DIR_MODE, parents=True, exist_ok=True)
        content = json.dumps(values, sort_keys=True)

        fd, tmp_path = tempfile.mkstemp(dir=str(directory), suffix=".tmp", prefix=".session_")
        fd_owned = True
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                fd_owned = False  # os.fdopen took ownership; it will close fd
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, _CACHE_FILE_MODE)  # noqa: PTH101
            Path(tmp_path).replace(self._path)
        except BaseException:
            if fd_owned:
                with contextlib.suppress(OSError):
                    os.close(fd)
            with contextlib.suppress(OSError):
                Path(tmp_path).unlink()
            raise
