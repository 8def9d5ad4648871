"""
OpenLog — Generation session (view-model).

Owns everything a changelog workstation shows for one repository: the
loaded commits, the selection, the generated document, chunk progress
and the generation state machine:

  IDLE → GENERATING → COMPLETE | CANCELLED | ERRORED → GENERATING …

Only one generation runs at a time; starting another cancels the one in
flight before the document is reset.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Protocol, Sequence

import httpx

from openlog.client.drafts import DebouncedAutosave, DraftStore, MemoryDraftStore
from openlog.client.stream import StreamReader
from openlog.errors import OpenLogError, ValidationError
from openlog.github.publish import derive_release_title
from openlog.models.commit import Commit
from openlog.models.release import PublishResult
from openlog.models.stream import GenerationState, StreamEvent, StreamProgress, TERMINAL_STATES
from openlog.utils.logging import logger

ERROR_PLACEHOLDER = "## Error\nFailed to generate changelog."

Listener = Callable[["GenerationSession"], Any]


class ChangelogAPI(Protocol):
    async def list_commits(self, repo: str) -> list[Commit]: ...

    def stream_generate(self, repo: str, commits: Sequence[Commit], model: str | None = None): ...

    async def publish(self, repo: str, tag_name: str, title: str, body: str) -> PublishResult: ...


def _user_message(exc: BaseException) -> str:
    """Short, non-leaking message for display."""
    if isinstance(exc, OpenLogError):
        return exc.message
    if isinstance(exc, httpx.HTTPError):
        return "Network error while generating changelog."
    return "Failed to generate changelog."


class GenerationSession:
    def __init__(
        self,
        api: ChangelogAPI,
        repo: str,
        drafts: DraftStore | None = None,
        autosave_delay: float = 0.8,
        model: str | None = None,
    ):
        self.api = api
        self.repo = repo
        self.model = model
        self.drafts = drafts if drafts is not None else MemoryDraftStore()
        self.autosave_delay = autosave_delay
        self._autosave = DebouncedAutosave(self.drafts, repo, autosave_delay)

        self.commits: list[Commit] = []
        self.selected: set[str] = set()
        self.document = self.drafts.load(repo) or ""
        self.progress = StreamProgress()
        self.state = GenerationState.IDLE
        self.error: str | None = None
        self.polished = False

        self._generation = 0
        self._cancel: asyncio.Event | None = None
        self._reader_task: asyncio.Task | None = None
        self._task: asyncio.Task | None = None
        self._listeners: list[Listener] = []

    # ── Subscriptions ─────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(session)`` after every change. Returns the unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Session listener failed")

    # ── Commits and selection ─────────────────────────────

    @property
    def commit_hashes(self) -> set[str]:
        return {c.hash for c in self.commits}

    @property
    def selected_commits(self) -> list[Commit]:
        return [c for c in self.commits if c.hash in self.selected]

    async def load_commits(self) -> list[Commit]:
        """Fetch commits for the current repository; the selection keeps only hashes still present."""
        try:
            commits = await self.api.list_commits(self.repo)
        except (OpenLogError, httpx.HTTPError) as exc:
            logger.warning("Failed to load commits for %s: %s", self.repo, exc)
            commits = []
            self.error = _user_message(exc) if isinstance(exc, OpenLogError) else "Failed to load commits."
        self.commits = list(commits)
        self.selected &= self.commit_hashes
        self._notify()
        return self.commits

    async def switch_repository(self, repo: str) -> list[Commit]:
        await self.cancel_and_wait()
        self._autosave.flush()
        self.repo = repo
        self._autosave = DebouncedAutosave(self.drafts, repo, self.autosave_delay)
        self.commits = []
        self.selected = set()
        self.document = self.drafts.load(repo) or ""
        self.progress.reset()
        self.state = GenerationState.IDLE
        self.error = None
        self.polished = False
        return await self.load_commits()

    def toggle(self, commit_hash: str) -> None:
        if commit_hash not in self.commit_hashes:
            return
        if commit_hash in self.selected:
            self.selected.discard(commit_hash)
        else:
            self.selected.add(commit_hash)
        self._notify()

    def select_all(self) -> None:
        self.selected = self.commit_hashes
        self._notify()

    def clear_selection(self) -> None:
        self.selected = set()
        self._notify()

    def toggle_all(self) -> None:
        if self.commits and len(self.selected) == len(self.commits):
            self.clear_selection()
        else:
            self.select_all()

    # ── Generation ────────────────────────────────────────

    @property
    def is_generating(self) -> bool:
        return self.state == GenerationState.GENERATING

    @property
    def can_publish(self) -> bool:
        return self.state == GenerationState.COMPLETE and bool(self.document.strip())

    @property
    def can_regenerate(self) -> bool:
        return self.state in TERMINAL_STATES and bool(self.selected)

    def start_generation(self) -> asyncio.Task:
        """Run ``generate()`` in the background so the caller stays free to cancel."""
        self._task = asyncio.create_task(self.generate())
        return self._task

    async def generate(self) -> GenerationState:
        if not self.selected:
            raise ValidationError(["Select at least one commit"])

        await self.cancel_and_wait()
        self._generation += 1
        generation = self._generation
        cancel = asyncio.Event()
        self._cancel = cancel

        self.state = GenerationState.GENERATING
        self.error = None
        self.document = ""
        self.polished = False
        self.progress.reset()
        self._notify()

        reader = StreamReader(progress=self.progress)

        def on_event(event: StreamEvent) -> None:
            if generation != self._generation or cancel.is_set():
                return
            self.document = reader.buffer
            if event.kind == "replace":
                self.polished = True
            if event.kind in ("append", "replace"):
                self._autosave.schedule(self.document)
            self._notify()

        segments = self.api.stream_generate(self.repo, self.selected_commits, self.model)
        self._reader_task = asyncio.create_task(reader.consume(segments, cancel, on_event))
        try:
            finished = await self._reader_task
        except asyncio.CancelledError:
            if not cancel.is_set():
                # the caller was cancelled, not the stream
                cancel.set()
                if generation == self._generation:
                    self.state = GenerationState.CANCELLED
                    self._notify()
                raise
            finished = False
        except Exception as exc:
            if generation == self._generation and not cancel.is_set():
                logger.warning("Generation for %s failed: %s", self.repo, exc)
                self.error = _user_message(exc)
                self.document = reader.buffer or ERROR_PLACEHOLDER
                self.state = GenerationState.ERRORED
                self._notify()
                return self.state
            finished = False
        finally:
            if generation == self._generation:
                self._reader_task = None
                self._cancel = None

        if generation == self._generation:
            self.state = GenerationState.COMPLETE if finished else GenerationState.CANCELLED
            self._notify()
        return self.state

    async def retry(self) -> GenerationState:
        return await self.generate()

    def cancel(self) -> None:
        """Stop the stream in flight; whatever arrived so far stays in the document."""
        if self._cancel is None:
            return
        self._cancel.set()
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
        if self.state == GenerationState.GENERATING:
            self.state = GenerationState.CANCELLED
            self._notify()

    async def cancel_and_wait(self) -> None:
        reader_task = self._reader_task
        self.cancel()
        if reader_task is not None:
            await asyncio.gather(reader_task, return_exceptions=True)

    # ── Document ──────────────────────────────────────────

    def edit(self, text: str) -> None:
        self.document = text
        self._autosave.schedule(text)
        self._notify()

    def copy(self) -> str:
        return self.document

    async def publish(self, tag: str) -> PublishResult:
        if not (tag or "").strip():
            raise ValidationError(["Please enter a version tag (e.g. v1.0.0)"])
        if not self.can_publish:
            raise ValidationError(["Generate a changelog before publishing"])

        title = derive_release_title(self.document)
        result = await self.api.publish(self.repo, tag.strip(), title, self.document)
        if result.success:
            self._autosave.cancel()
            self.drafts.clear(self.repo)
        else:
            logger.warning("Publish of %s %s failed: %s", self.repo, tag, result.error)
        return result

    async def close(self) -> None:
        """Tear down the view: stop generation, write the pending draft, drop listeners."""
        await self.cancel_and_wait()
        if self._task is not None and not self._task.done():
            await asyncio.gather(self._task, return_exceptions=True)
        self._autosave.flush()
        self._listeners.clear()
