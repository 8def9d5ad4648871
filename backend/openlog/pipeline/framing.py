"""
OpenLog — Generation stream framing.

The response body of ``POST /v1/generate`` is a sequence of UTF-8 text
segments. A segment starting with ``~~JSON~~`` carries one or more
newline-terminated control records, each prefixed by the sentinel:

  ~~JSON~~{"meta": {"totalCommits": 12, "totalChunks": 3}}
  ~~JSON~~{"chunkIndex": 0, "chunkLines": 5}
  ~~JSON~~{"chunkDone": 0}
  ~~JSON~~{"final": true}

Every other segment is Markdown content. After a ``final`` record the
next content segment replaces the whole document.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

from openlog.core.config import ChunkingConfig
from openlog.pipeline.grouping import chunk_list, format_commit_line, group_commits_by_type

SENTINEL = "~~JSON~~"

CHUNK_SEPARATOR = "\n\n"


def encode_control(record: dict[str, Any]) -> str:
    """Frame one control record. Compact JSON never holds a raw newline."""
    return SENTINEL + json.dumps(record, separators=(",", ":"), ensure_ascii=False) + "\n"


def meta_record(total_commits: int, total_chunks: int) -> str:
    return encode_control({"meta": {"totalCommits": total_commits, "totalChunks": total_chunks}})


def chunk_start_record(index: int, lines: int) -> str:
    return encode_control({"chunkIndex": index, "chunkLines": lines})


def chunk_done_record(index: int) -> str:
    return encode_control({"chunkDone": index})


def final_record() -> str:
    return encode_control({"final": True})


def build_chunks(commits: Sequence, chunking: ChunkingConfig) -> list[list[str]]:
    """
    Split commits into prompt chunks, one or more per commit type.

    Each chunk is a list of formatted commit lines. Empty groups produce
    no chunk.
    """
    size = chunking.effective_chunk_size
    out: list[list[str]] = []
    for group in group_commits_by_type(commits).values():
        if not group:
            continue
        lines = [format_commit_line(c) for c in group]
        out.extend(chunk_list(lines, size))
    return out
