"""Recently used media and file history."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from umdloader.storage.settings import KeyValueStore

logger = logging.getLogger(__name__)

MAX_RECENT = 10


class RecentKind(Enum):
    """The two independent history lists."""

    UMD = "umd"
    FILE = "file"

    @property
    def store_key(self) -> str:
        return f"recent.{self.value}"


@dataclass(frozen=True)
class MruEntry:
    """A single history entry; its rank is its index in the list."""

    path: str
    title: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "title": self.title}


class MruList:
    """Bounded, deduplicated recency list persisted through a key-value store.

    Rank 0 is the most recently used entry. Every mutation is written back to
    the store immediately and announced to subscribers.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        capacity: int = MAX_RECENT,
    ):
        if capacity < 1:
            msg = "capacity must be at least 1"
            raise ValueError(msg)
        self.store = store
        self.key = key
        self.capacity = capacity
        self._entries: list[MruEntry] = []
        self._listeners: list[Callable[["MruList"], None]] = []
        self._load()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return any(entry.path == path for entry in self._entries)

    def list(self) -> list[MruEntry]:
        """Entries ordered most recent first."""
        return list(self._entries)

    def find(self, path: str) -> MruEntry | None:
        for entry in self._entries:
            if entry.path == path:
                return entry
        return None

    def subscribe(self, callback: Callable[["MruList"], None]) -> None:
        """Register a callback invoked after every change."""
        self._listeners.append(callback)

    def add(self, path: str, title: str) -> None:
        """Insert at rank 0, replacing any entry with the same path."""
        self._entries = [entry for entry in self._entries if entry.path != path]
        self._entries.insert(0, MruEntry(path=path, title=title))
        del self._entries[self.capacity :]
        self._changed()

    def remove(self, path: str) -> None:
        """Delete the entry for path; absent paths are ignored."""
        remaining = [entry for entry in self._entries if entry.path != path]
        if len(remaining) == len(self._entries):
            return
        logger.debug("Removed %s from %s", path, self.key)
        self._entries = remaining
        self._changed()

    def move_to_front(self, path: str) -> bool:
        """Move an existing entry to rank 0 keeping its title."""
        entry = self.find(path)
        if entry is None:
            return False
        self.add(entry.path, entry.title)
        return True

    def clear(self) -> None:
        self._entries = []
        self._changed()

    def _changed(self) -> None:
        self._save()
        for callback in self._listeners:
            callback(self)

    def _save(self) -> None:
        payload = json.dumps([entry.to_dict() for entry in self._entries])
        self.store.write(self.key, payload)

    def _load(self) -> None:
        raw = self.store.read(self.key)
        if not raw:
            return

        try:
            items = json.loads(raw)
            entries = [MruEntry(path=item["path"], title=item["title"]) for item in items]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring corrupt recent list {self.key}: {e}")
            return

        # Older or hand-edited stores may hold duplicates or too many entries
        seen: set[str] = set()
        for entry in entries:
            if entry.path in seen:
                continue
            seen.add(entry.path)
            self._entries.append(entry)
        del self._entries[self.capacity :]


class RecentHistory:
    """The media (UMD) and plain-file history lists side by side."""

    def __init__(self, store: KeyValueStore, capacity: int = MAX_RECENT):
        self.umd = MruList(store, RecentKind.UMD.store_key, capacity)
        self.file = MruList(store, RecentKind.FILE.store_key, capacity)

    def for_kind(self, kind: RecentKind) -> MruList:
        return self.umd if kind is RecentKind.UMD else self.file

    def subscribe(self, callback: Callable[[MruList], None]) -> None:
        self.umd.subscribe(callback)
        self.file.subscribe(callback)
