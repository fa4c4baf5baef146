"""
Undo/redo history for the structural editor.

The history is one list of snapshots and a cursor. Entries before the cursor
can be undone, entries from the cursor on can be redone. Undo and redo swap
the live schema with the snapshot at the cursor, so every state is stored
exactly once and a round trip restores it deep-equal.
"""

import logging

from attrs import frozen

from formtree.core.cloning import safe_deep_clone
from formtree.core.types import FormSchema

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


@frozen
class HistorySnapshot:
    schema: FormSchema
    label: str = ""


class History:
    """Bounded snapshot list with a cursor.

    Notes:
      - Snapshots are cycle-safe deep copies; callers may keep mutating the
        schema they pushed.
      - Pushing while entries are available for redo discards them.
      - When the limit is exceeded the oldest entry is dropped.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError(f"History limit must be positive, got {limit}")
        self.limit = limit
        self._entries: list[HistorySnapshot] = []
        self._cursor = 0

    @property
    def cursor(self) -> int:
        """Number of entries that can be undone."""
        return self._cursor

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def labels(self) -> list[str]:
        """Labels of all stored entries, oldest first."""
        return [entry.label for entry in self._entries]

    def push(self, schema: FormSchema, label: str = "") -> HistorySnapshot:
        """
        Record the state before a mutation.

        Params:
            schema: Whole schema as it is before the mutation
            label: Name of the mutation, for display

        Returns:
            The stored snapshot
        """
        del self._entries[self._cursor :]
        snapshot = HistorySnapshot(safe_deep_clone(schema), label)
        self._entries.append(snapshot)
        self._cursor += 1

        overflow = len(self._entries) - self.limit
        if overflow > 0:
            del self._entries[:overflow]
            self._cursor -= overflow
            logger.debug("History limit %d reached, dropped %d entries", self.limit, overflow)
        return snapshot

    def undo(self, current: FormSchema) -> HistorySnapshot | None:
        """
        Step back one entry.

        Params:
            current: Live schema, stored in place of the returned snapshot so
                that `redo` can bring it back

        Returns:
            Snapshot to restore, or None when there is nothing to undo
        """
        if not self.can_undo:
            return None
        self._cursor -= 1
        snapshot = self._entries[self._cursor]
        self._entries[self._cursor] = HistorySnapshot(safe_deep_clone(current), snapshot.label)
        return snapshot

    def redo(self, current: FormSchema) -> HistorySnapshot | None:
        """
        Step forward one entry.

        Params:
            current: Live schema, stored in place of the returned snapshot

        Returns:
            Snapshot to restore, or None when there is nothing to redo
        """
        if not self.can_redo:
            return None
        snapshot = self._entries[self._cursor]
        self._entries[self._cursor] = HistorySnapshot(safe_deep_clone(current), snapshot.label)
        self._cursor += 1
        return snapshot

    def clear(self) -> None:
        self._entries.clear()
        self._cursor = 0
