"""Per-run provenance token store.

A key-value store passed between the nodes of one run. Every write is
attributed to the node currently holding the token, so consumers can ask
not only for a key's value but for who last set it and the full history
of values with their timestamps.

Writes require a current writer: a token that has not been handed to a
node yet is in an illegal state for writing.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from fieldtrace.contracts import WriterNotSetError
from fieldtrace.engine.clock import DEFAULT_CLOCK, Clock

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class TimestampedValue:
    """One recorded write: which node wrote what, and when."""

    writer: str
    value: Any
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"writer": self.writer, "value": self.value, "timestamp": self.timestamp.isoformat()}


class ProvenanceToken:
    """Key-value store recording the writer of every value.

    Example:
        token = ProvenanceToken()
        token.set_current_writer("parse")
        token.put("row_count", 42)
        token.get_last_writer("row_count")  # "parse"
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._history: dict[str, list[TimestampedValue]] = {}
        self._current_writer: str | None = None

    @property
    def current_writer(self) -> str | None:
        return self._current_writer

    def set_current_writer(self, writer: str | None) -> None:
        """Hand the token to ``writer``; None revokes write access."""
        if writer is not None and not writer:
            raise ValueError("Writer name must be a non-empty string")
        self._current_writer = writer

    def put(self, key: str, value: Any) -> None:
        """Record ``value`` for ``key`` attributed to the current writer.

        Raises:
            WriterNotSetError: If no current writer has been set
        """
        if self._current_writer is None:
            raise WriterNotSetError(f"Cannot put '{key}': no current writer is set on this token")
        entry = TimestampedValue(writer=self._current_writer, value=value, timestamp=self._clock.now())
        self._history.setdefault(key, []).append(entry)
        logger.debug("Provenance token value recorded", key=key, writer=self._current_writer)

    def get_value(self, key: str) -> Any | None:
        """Current value of ``key``, or None if it was never written."""
        entries = self._history.get(key)
        return entries[-1].value if entries else None

    def get_last_writer(self, key: str) -> str | None:
        """Node that last wrote ``key``, or None if it was never written."""
        entries = self._history.get(key)
        return entries[-1].writer if entries else None

    def get_history(self, key: str) -> tuple[TimestampedValue, ...] | None:
        """Every write of ``key`` in write order, or None if never written."""
        entries = self._history.get(key)
        return tuple(entries) if entries else None

    def keys(self) -> Iterator[str]:
        return iter(self._history)

    def __contains__(self, key: object) -> bool:
        return key in self._history

    def deep_copy(self) -> ProvenanceToken:
        """Independent copy sharing no mutable state with this token.

        The current writer is not copied: the copy must be handed to a
        node before it can be written.
        """
        copied = ProvenanceToken(clock=self._clock)
        copied._history = {key: [copy.deepcopy(entry) for entry in entries] for key, entries in self._history.items()}
        return copied
