"""
OpenLog — Client-side reader for the generation stream.

Splits the raw response body into document content and control records
(see ``openlog.pipeline.framing``), keeping a growing Markdown buffer and
chunk progress counters. Control data is cosmetic: a record that does not
parse is dropped and reading carries on.
"""

from __future__ import annotations

import asyncio
import codecs
import json
from typing import Any, AsyncIterable, Callable

from openlog.models.stream import StreamEvent, StreamProgress
from openlog.pipeline.framing import SENTINEL

# An unterminated control line longer than this is given up on.
MAX_CONTROL_LINE = 4096


def _is_sentinel_prefix(text: str) -> bool:
    return 0 < len(text) < len(SENTINEL) and SENTINEL.startswith(text)


def _decode_record(line: str) -> dict[str, Any] | None:
    try:
        record = json.loads(line[len(SENTINEL):])
    except ValueError:
        return None
    return record if isinstance(record, dict) else None


def _as_index(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


class StreamReader:
    """
    Incremental demultiplexer for one generation stream.

    ``feed()`` takes segments as they arrive (``str`` or raw ``bytes``) and
    returns the events they produced. ``buffer`` always holds the document
    as rendered so far.
    """

    def __init__(self, progress: StreamProgress | None = None):
        self.buffer = ""
        self.progress = progress if progress is not None else StreamProgress()
        self.expect_final_replace = False
        self.replaced = False
        # unterminated control line (or a bare sentinel prefix) from the last read
        self._pending_control = ""
        # text read after it while waiting for the newline
        self._pending_more = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, segment: str | bytes) -> list[StreamEvent]:
        if isinstance(segment, bytes):
            segment = self._decoder.decode(segment)
        if not segment:
            return []

        events: list[StreamEvent] = []
        if self._pending_control:
            segment = self._resume_pending(segment, events)
            if segment is None:
                return events
        self._feed_text(segment, events)
        return events

    def finish(self) -> list[StreamEvent]:
        """End of stream: apply whatever is still held and flush the decoder."""
        events: list[StreamEvent] = []
        held = self._pending_control + self._pending_more
        leftover = self._pending_more
        if held.startswith(SENTINEL):
            record = _decode_record(held)
            if record is not None:
                events.extend(self._apply_control(record))
                leftover = ""
        else:
            leftover = held
        self._pending_control = self._pending_more = ""
        leftover += self._decoder.decode(b"", final=True)
        if leftover:
            events.append(self._apply_content(leftover))
        return events

    async def consume(
        self,
        segments: AsyncIterable[str | bytes],
        cancel: asyncio.Event | None = None,
        on_event: Callable[[StreamEvent], None] | None = None,
    ) -> bool:
        """
        Read ``segments`` to the end.

        Returns True when the stream ended on its own, False when ``cancel``
        was set; nothing received after cancellation is applied.
        """
        async for segment in segments:
            if cancel is not None and cancel.is_set():
                return False
            for event in self.feed(segment):
                if on_event is not None:
                    on_event(event)
        if cancel is not None and cancel.is_set():
            return False
        for event in self.finish():
            if on_event is not None:
                on_event(event)
        return True

    def _feed_text(self, segment: str, events: list[StreamEvent]) -> None:
        if _is_sentinel_prefix(segment):
            self._pending_control = segment
            return
        content = segment
        if segment.startswith(SENTINEL):
            content = self._read_control(segment, events)
        if content:
            events.append(self._apply_content(content))

    def _resume_pending(self, segment: str, events: list[StreamEvent]) -> str | None:
        """
        Re-attach a control line cut off by the previous read.

        Returns the text still to be processed, or None while the line is
        still waiting for its newline. A held line that never parses is
        dropped like any other malformed record; text read after it is kept.
        """
        fragment, more = self._pending_control, self._pending_more
        self._pending_control = self._pending_more = ""
        if not fragment.startswith(SENTINEL):
            return fragment + segment

        held = fragment + more
        candidate = held + segment
        nl = candidate.find("\n")
        line = candidate if nl == -1 else candidate[:nl]
        if _decode_record(line) is not None:
            if nl == -1:
                self._pending_control, self._pending_more = fragment, more + segment
                return None
            return candidate

        record = _decode_record(held)
        if record is not None:
            events.extend(self._apply_control(record))
            return segment
        if nl == -1 and len(candidate) <= MAX_CONTROL_LINE:
            self._pending_control, self._pending_more = fragment, more + segment
            return None
        return more + segment

    def _read_control(self, segment: str, events: list[StreamEvent]) -> str:
        """Apply the leading run of control lines; return trailing content, if any."""
        pos = 0
        while pos < len(segment):
            nl = segment.find("\n", pos)
            if nl == -1:
                line = segment[pos:]
                if line.startswith(SENTINEL) or _is_sentinel_prefix(line):
                    # finished by the next read
                    self._pending_control = line
                    return ""
                return segment[pos:] if line.strip() else ""
            line = segment[pos:nl]
            if line.startswith(SENTINEL):
                record = _decode_record(line)
                if record is not None:
                    events.extend(self._apply_control(record))
            elif line.strip():
                return segment[pos:]
            pos = nl + 1
        return ""

    def _apply_control(self, record: dict[str, Any]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        p = self.progress

        meta = record.get("meta")
        if isinstance(meta, dict):
            p.total_chunks = _as_index(meta.get("totalChunks")) or 0
            events.append(StreamEvent(kind="meta", value=p.total_chunks))

        index = _as_index(record.get("chunkIndex"))
        if index is not None:
            p.current_chunk = index
            events.append(StreamEvent(kind="chunk_start", value=index))

        done = _as_index(record.get("chunkDone"))
        if done is not None:
            p.completed_chunks = max(p.completed_chunks, done + 1)
            p.current_chunk = None
            events.append(StreamEvent(kind="chunk_done", value=done))

        if record.get("final"):
            self.expect_final_replace = True
            events.append(StreamEvent(kind="final"))
        return events

    def _apply_content(self, content: str) -> StreamEvent:
        if self.expect_final_replace:
            self.buffer = content
            self.expect_final_replace = False
            self.replaced = True
            return StreamEvent(kind="replace", value=content)
        self.buffer += content
        return StreamEvent(kind="append", value=content)
