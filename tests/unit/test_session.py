"""Unit tests for the generation session view-model."""

import asyncio

import pytest

from openlog.client.drafts import MemoryDraftStore
from openlog.client.session import ERROR_PLACEHOLDER, GenerationSession
from openlog.errors import GenerationStreamError, ValidationError
from openlog.models.commit import Commit
from openlog.models.release import PublishResult
from openlog.models.stream import GenerationState

REPO = "acme/widgets"

COMMITS = {
    REPO: [
        Commit(hash="aaa", message="feat: one", author_name="alice"),
        Commit(hash="bbb", message="fix: two", author_name="bob"),
    ],
    "acme/other": [Commit(hash="ccc", message="chore: three")],
}


class FakeAPI:
    """Scripted API: each generate call plays the next script.

    A script item is a text segment, an ``asyncio.Event`` to wait on, or an
    exception to raise.
    """

    def __init__(self, scripts=None, publish_result=None):
        self.scripts = list(scripts or [])
        self.publish_result = publish_result or PublishResult(
            success=True, url="https://github.com/acme/widgets/releases/tag/v1.0.0"
        )
        self.generate_calls = []
        self.publish_calls = []
        self.commits = {k: list(v) for k, v in COMMITS.items()}

    async def list_commits(self, repo):
        return list(self.commits.get(repo, []))

    async def stream_generate(self, repo, commits, model=None):
        self.generate_calls.append((repo, [c.hash for c in commits]))
        script = self.scripts.pop(0) if self.scripts else []
        for item in script:
            if isinstance(item, asyncio.Event):
                await item.wait()
            elif isinstance(item, Exception):
                raise item
            else:
                yield item

    async def publish(self, repo, tag_name, title, body):
        self.publish_calls.append((repo, tag_name, title, body))
        return self.publish_result


async def wait_until(predicate, timeout=1.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


STREAM = [
    '~~JSON~~{"meta":{"totalCommits":2,"totalChunks":2}}\n',
    '~~JSON~~{"chunkIndex":0,"chunkLines":1}\n',
    "## Features\n- one",
    '~~JSON~~{"chunkDone":0}\n',
    "\n\n",
    '~~JSON~~{"chunkIndex":1,"chunkLines":1}\n',
    "## Fixes\n- two",
    '~~JSON~~{"chunkDone":1}\n',
    "\n\n",
    '~~JSON~~{"final":true}\n',
    "# v1\n\n## Features\n\n- one\n\n## Fixes\n\n- two",
]


async def _loaded_session(api, **kwargs) -> GenerationSession:
    session = GenerationSession(api, REPO, **kwargs)
    await session.load_commits()
    return session


class TestSelection:
    @pytest.mark.asyncio
    async def test_toggle_and_toggle_all(self):
        session = await _loaded_session(FakeAPI())
        session.toggle("aaa")
        assert session.selected == {"aaa"}
        session.toggle("aaa")
        assert session.selected == set()
        session.toggle("not-a-commit")
        assert session.selected == set()
        session.toggle_all()
        assert session.selected == {"aaa", "bbb"}
        session.toggle_all()
        assert session.selected == set()

    @pytest.mark.asyncio
    async def test_switch_repository_clears_selection(self):
        session = await _loaded_session(FakeAPI())
        session.select_all()
        await session.switch_repository("acme/other")
        assert session.selected == set()
        assert session.commit_hashes == {"ccc"}
        assert session.selected <= session.commit_hashes

    @pytest.mark.asyncio
    async def test_reload_prunes_stale_hashes(self):
        api = FakeAPI()
        session = await _loaded_session(api)
        session.select_all()
        api.commits[REPO] = [COMMITS[REPO][1]]
        await session.load_commits()
        assert session.selected == {"bbb"}


class TestGenerate:
    @pytest.mark.asyncio
    async def test_requires_selection(self):
        session = await _loaded_session(FakeAPI([STREAM]))
        with pytest.raises(ValidationError):
            await session.generate()
        assert session.state == GenerationState.IDLE

    @pytest.mark.asyncio
    async def test_complete_with_final_replace(self):
        api = FakeAPI([STREAM])
        session = await _loaded_session(api)
        session.select_all()
        state = await session.generate()
        assert state == GenerationState.COMPLETE
        assert session.document == "# v1\n\n## Features\n\n- one\n\n## Fixes\n\n- two"
        assert session.polished is True
        assert session.progress.total_chunks == 2
        assert session.progress.completed_chunks == 2
        assert session.progress.current_chunk is None
        assert session.can_publish
        assert api.generate_calls == [(REPO, ["aaa", "bbb"])]

    @pytest.mark.asyncio
    async def test_progress_resets_each_generation(self):
        api = FakeAPI([STREAM, ['~~JSON~~{"meta":{"totalChunks":5}}\n', "x"]])
        session = await _loaded_session(api)
        session.select_all()
        await session.generate()
        await session.generate()
        assert session.progress.total_chunks == 5
        assert session.progress.completed_chunks == 0
        assert session.document == "x"

    @pytest.mark.asyncio
    async def test_cancel_keeps_partial_content(self):
        gate = asyncio.Event()
        api = FakeAPI([["Hello ", gate, "World"]])
        session = await _loaded_session(api)
        session.select_all()

        task = session.start_generation()
        await wait_until(lambda: session.document == "Hello ")
        assert session.is_generating
        session.cancel()
        gate.set()
        state = await task

        assert state == GenerationState.CANCELLED
        assert session.document == "Hello "
        assert session.error is None
        assert not session.can_publish

    @pytest.mark.asyncio
    async def test_new_generation_cancels_the_one_in_flight(self):
        gate = asyncio.Event()
        api = FakeAPI([["first ", gate, "late"], ["second"]])
        session = await _loaded_session(api)
        session.select_all()

        first = session.start_generation()
        await wait_until(lambda: session.document == "first ")
        state = await session.generate()
        gate.set()
        await first

        assert state == GenerationState.COMPLETE
        assert session.state == GenerationState.COMPLETE
        assert session.document == "second"

    @pytest.mark.asyncio
    async def test_error_keeps_partial_content(self):
        api = FakeAPI([["Partial ", GenerationStreamError("Upstream failed")]])
        session = await _loaded_session(api)
        session.select_all()
        state = await session.generate()
        assert state == GenerationState.ERRORED
        assert session.error == "Upstream failed"
        assert session.document == "Partial "

    @pytest.mark.asyncio
    async def test_error_without_content_shows_placeholder_and_retry_works(self):
        api = FakeAPI([[GenerationStreamError("Upstream failed", status=500)], ["ok"]])
        session = await _loaded_session(api)
        session.select_all()
        await session.generate()
        assert session.document == ERROR_PLACEHOLDER
        assert session.can_regenerate

        state = await session.retry()
        assert state == GenerationState.COMPLETE
        assert session.error is None
        assert session.document == "ok"


class TestPublish:
    @pytest.mark.asyncio
    async def test_empty_tag_rejected_before_network(self):
        api = FakeAPI([STREAM])
        session = await _loaded_session(api)
        session.select_all()
        await session.generate()
        with pytest.raises(ValidationError):
            await session.publish("  ")
        assert api.publish_calls == []

    @pytest.mark.asyncio
    async def test_publish_requires_complete_generation(self):
        api = FakeAPI()
        session = await _loaded_session(api)
        session.edit("## Hand written")
        with pytest.raises(ValidationError):
            await session.publish("v1.0.0")
        assert api.publish_calls == []

    @pytest.mark.asyncio
    async def test_publish_derives_title_and_clears_draft(self):
        drafts = MemoryDraftStore()
        api = FakeAPI([STREAM])
        session = await _loaded_session(api, drafts=drafts, autosave_delay=0.001)
        session.select_all()
        await session.generate()
        await asyncio.sleep(0.01)
        assert drafts.load(REPO)

        result = await session.publish("v1.0.0")
        assert result.success
        repo, tag, title, body = api.publish_calls[0]
        assert (repo, tag, title) == (REPO, "v1.0.0", "v1")
        assert body == session.document
        assert drafts.load(REPO) is None

    @pytest.mark.asyncio
    async def test_failed_publish_keeps_draft(self):
        drafts = MemoryDraftStore()
        api = FakeAPI([STREAM], publish_result=PublishResult(success=False, error="No GitHub token found"))
        session = await _loaded_session(api, drafts=drafts)
        session.select_all()
        await session.generate()
        session._autosave.flush()
        result = await session.publish("v1.0.0")
        assert result.success is False
        assert drafts.load(REPO)


class TestDraftsAndSubscriptions:
    @pytest.mark.asyncio
    async def test_draft_loaded_on_start(self):
        drafts = MemoryDraftStore()
        drafts.save(REPO, "saved draft")
        session = GenerationSession(FakeAPI(), REPO, drafts=drafts)
        assert session.document == "saved draft"
        assert session.copy() == "saved draft"

    @pytest.mark.asyncio
    async def test_edits_autosave_debounced(self):
        drafts = MemoryDraftStore()
        session = GenerationSession(FakeAPI(), REPO, drafts=drafts, autosave_delay=0.02)
        session.edit("a")
        session.edit("ab")
        await asyncio.sleep(0.08)
        assert drafts.load(REPO) == "ab"
        assert drafts.writes == 1

    @pytest.mark.asyncio
    async def test_subscribe_and_close(self):
        session = await _loaded_session(FakeAPI())
        calls = []
        unsubscribe = session.subscribe(lambda s: calls.append(len(s.selected)))
        session.toggle("aaa")
        assert calls == [1]
        unsubscribe()
        session.toggle("bbb")
        assert calls == [1]

        session.subscribe(lambda s: calls.append("late"))
        await session.close()
        session.toggle("aaa")
        assert "late" not in calls

    @pytest.mark.asyncio
    async def test_close_flushes_pending_draft(self):
        drafts = MemoryDraftStore()
        session = GenerationSession(FakeAPI(), REPO, drafts=drafts, autosave_delay=10)
        session.edit("unsaved")
        await session.close()
        assert drafts.load(REPO) == "unsaved"
