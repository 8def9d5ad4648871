"""
OpenLog — Streamed generation contracts.

Progress counters and the events the client-side demultiplexer emits
while it reads a generation stream.
"""

from __future__ import annotations

import enum
from typing import Any, Literal

from pydantic import BaseModel


class GenerationState(str, enum.Enum):
    IDLE = "IDLE"
    GENERATING = "GENERATING"
    COMPLETE = "COMPLETE"
    CANCELLED = "CANCELLED"
    ERRORED = "ERRORED"


TERMINAL_STATES = frozenset(
    {GenerationState.COMPLETE, GenerationState.CANCELLED, GenerationState.ERRORED}
)


class StreamProgress(BaseModel):
    total_chunks: int = 0
    current_chunk: int | None = None
    completed_chunks: int = 0

    def reset(self) -> None:
        self.total_chunks = 0
        self.current_chunk = None
        self.completed_chunks = 0

    @property
    def fraction(self) -> float:
        if self.total_chunks <= 0:
            return 0.0
        return min(1.0, self.completed_chunks / self.total_chunks)


class StreamEvent(BaseModel):
    kind: Literal["meta", "chunk_start", "chunk_done", "final", "append", "replace"]
    value: Any = None
