"""Unit tests for generation stream framing."""

import json

from openlog.core.config import ChunkingConfig
from openlog.models.commit import Commit
from openlog.pipeline.framing import (
    SENTINEL,
    build_chunks,
    chunk_done_record,
    encode_control,
    final_record,
    meta_record,
)


def _chunking(size=20, disable=False, dynamic=True, max_lines=40) -> ChunkingConfig:
    return ChunkingConfig(
        chunk_size=size, disable_chunking=disable, dynamic_chunking=dynamic, max_chunk_lines=max_lines
    )


def _commits(n: int, prefix: str = "feat") -> list[Commit]:
    return [Commit(hash=f"{prefix}{i}", message=f"{prefix}: change {i}") for i in range(n)]


class TestEncodeControl:
    def test_single_line_with_sentinel(self):
        line = encode_control({"note": "two\nlines"})
        assert line.startswith(SENTINEL)
        assert line.endswith("\n")
        assert line.count("\n") == 1
        assert json.loads(line[len(SENTINEL):]) == {"note": "two\nlines"}

    def test_records(self):
        assert meta_record(12, 3) == SENTINEL + '{"meta":{"totalCommits":12,"totalChunks":3}}\n'
        assert chunk_done_record(0) == SENTINEL + '{"chunkDone":0}\n'
        assert final_record() == SENTINEL + '{"final":true}\n'


class TestChunkingConfig:
    def test_effective_size_dynamic_caps(self):
        assert _chunking(size=100, max_lines=40).effective_chunk_size == 40

    def test_effective_size_static(self):
        assert _chunking(size=100, dynamic=False).effective_chunk_size == 100

    def test_disabled(self):
        assert _chunking(disable=True).effective_chunk_size == -1


class TestBuildChunks:
    def test_one_chunk_per_type(self):
        commits = _commits(3, "feat") + _commits(2, "fix")
        chunks = build_chunks(commits, _chunking())
        assert len(chunks) == 2
        assert len(chunks[0]) == 3
        assert chunks[1][0].startswith("- fix: fix: change 0")

    def test_split_large_groups(self):
        chunks = build_chunks(_commits(5), _chunking(size=2))
        assert [len(c) for c in chunks] == [2, 2, 1]

    def test_disable_chunking_keeps_group_whole(self):
        chunks = build_chunks(_commits(50), _chunking(size=2, disable=True))
        assert [len(c) for c in chunks] == [50]

    def test_no_commits(self):
        assert build_chunks([], _chunking()) == []
