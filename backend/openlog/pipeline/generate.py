"""
OpenLog — Streaming changelog generator.

Runs one generation request as a sequence of steps:

  meta → (chunkIndex → content… → chunkDone → separator) × N → final → merged

Every step writes framed segments to the response body as soon as they
are available, so the client can render partial output and progress.
"""

from __future__ import annotations

import time
import uuid
from typing import AsyncIterator, Protocol, Sequence

from openlog.core.config import ChunkingConfig
from openlog.errors import OpenLogError
from openlog.llm.prompts import build_chunk_prompt
from openlog.models.commit import Commit
from openlog.pipeline.framing import (
    CHUNK_SEPARATOR,
    build_chunks,
    chunk_done_record,
    chunk_start_record,
    final_record,
    meta_record,
)
from openlog.pipeline.merge import post_process_merge
from openlog.utils.logging import logger


class TextStreamer(Protocol):
    def stream_text(self, prompt: str, model: str) -> AsyncIterator[str]: ...


class ChangelogGenerator:
    """Turns selected commits into a framed, streamed Markdown changelog."""

    def __init__(
        self,
        repo: str,
        commits: Sequence[Commit],
        llm: TextStreamer,
        model: str,
        chunking: ChunkingConfig,
    ):
        self.job_id = uuid.uuid4().hex[:12]
        self.repo = repo
        self.commits = list(commits)
        self.llm = llm
        self.model = model
        self.chunks = build_chunks(self.commits, chunking)
        self.chunk_outputs: list[str] = []
        self.failed_chunks: list[int] = []

    async def stream(self) -> AsyncIterator[str]:
        logger.info(
            "[%s] Generation starting — %s, %d commits in %d chunks, model=%s",
            self.job_id, self.repo, len(self.commits), len(self.chunks), self.model,
        )
        start = time.perf_counter()

        yield meta_record(len(self.commits), len(self.chunks))

        for index, lines in enumerate(self.chunks):
            yield chunk_start_record(index, len(lines))
            parts: list[str] = []
            async for piece in self._generate_chunk(index, lines):
                parts.append(piece)
                yield piece
            self.chunk_outputs.append("".join(parts))
            yield chunk_done_record(index)
            yield CHUNK_SEPARATOR

        try:
            merged = post_process_merge(CHUNK_SEPARATOR.join(self.chunk_outputs))
        except Exception:
            logger.exception("[%s] Post-process merge failed", self.job_id)
        else:
            yield final_record()
            yield merged

        logger.info(
            "[%s] Generation complete — %d/%d chunks ok in %.0f ms",
            self.job_id, len(self.chunks) - len(self.failed_chunks), len(self.chunks),
            (time.perf_counter() - start) * 1000,
        )

    async def _generate_chunk(self, index: int, lines: list[str]) -> AsyncIterator[str]:
        """Stream one chunk. Provider failures end the chunk early instead of the stream."""
        t = time.perf_counter()
        prompt = build_chunk_prompt(lines, self.repo)
        try:
            async for piece in self.llm.stream_text(prompt, self.model):
                yield piece
        except OpenLogError as exc:
            self.failed_chunks.append(index)
            logger.warning("[%s] Chunk %d failed: %s", self.job_id, index, exc.code)
        except Exception:
            self.failed_chunks.append(index)
            logger.exception("[%s] Chunk %d failed", self.job_id, index)
        else:
            logger.info(
                "  ✓ chunk %d (%d lines) — %dms",
                index, len(lines), int((time.perf_counter() - t) * 1000),
            )
