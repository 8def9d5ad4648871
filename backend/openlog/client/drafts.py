"""
OpenLog — Draft persistence for the generated changelog.

One draft string per repository. Writes are best-effort: losing an
autosave is never a correctness problem, so storage errors are logged
and the session carries on.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Protocol

from openlog.utils.logging import logger


class DraftStore(Protocol):
    def load(self, key: str) -> str | None: ...

    def save(self, key: str, value: str) -> None: ...

    def clear(self, key: str) -> None: ...


class MemoryDraftStore:
    """Process-local store, used by default and in tests."""

    def __init__(self):
        self.items: dict[str, str] = {}
        self.writes = 0

    def load(self, key: str) -> str | None:
        return self.items.get(key)

    def save(self, key: str, value: str) -> None:
        self.items[key] = value
        self.writes += 1

    def clear(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileDraftStore:
    """All drafts in a single JSON object file, keyed by repository."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("  Draft file %s unreadable: %s", self.path, exc)
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)} if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            logger.warning("  Draft file %s not written: %s", self.path, exc)

    def load(self, key: str) -> str | None:
        return self._read_all().get(key)

    def save(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def clear(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)


class DebouncedAutosave:
    """
    Coalesces draft writes: only the last value scheduled within a quiet
    period of ``delay`` seconds reaches the store.
    """

    def __init__(self, store: DraftStore, key: str, delay: float = 0.8):
        self.store = store
        self.key = key
        self.delay = delay
        self._pending: str | None = None
        self._handle: asyncio.TimerHandle | None = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def schedule(self, value: str) -> None:
        self._pending = value
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no event loop to defer on
            self.flush()
            return
        self._handle = loop.call_later(self.delay, self.flush)

    def flush(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._pending is None:
            return
        value, self._pending = self._pending, None
        self.store.save(self.key, value)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending = None
