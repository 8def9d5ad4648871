"""OpenLog data models — typed contracts shared by the API and the client."""

from openlog.models.commit import Commit, CommitType, Repo
from openlog.models.release import PublishResult, ReleaseModel
from openlog.models.stream import (
    GenerationState,
    StreamEvent,
    StreamProgress,
    TERMINAL_STATES,
)

__all__ = [
    "Commit",
    "CommitType",
    "Repo",
    "PublishResult",
    "ReleaseModel",
    "GenerationState",
    "StreamEvent",
    "StreamProgress",
    "TERMINAL_STATES",
]
