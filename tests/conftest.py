from collections.abc import Mapping

import pytest

from github_bedrock_analyzer.clients.github import FileFetcher
from github_bedrock_analyzer.clients.models.github import FileRecord, RepositorySnapshot
from github_bedrock_analyzer.config import ActionInputs
from github_bedrock_analyzer.models.session import AgentSession, EventContext, EventKind


class FakeSnapshotSource:
    """An in-memory repository. A file whose content is an exception fails to fetch with that exception."""

    def __init__(self, files: Mapping[str, bytes | BaseException], default_branch: str = "main"):
        self.files: dict[str, bytes | BaseException] = dict(files)
        self.default_branch: str = default_branch
        self.requested_refs: list[str | None] = []
        self.fetched_paths: list[str] = []

    async def get_repository_snapshot(self, owner: str, repo: str, ref: str | None = None) -> RepositorySnapshot:
        self.requested_refs.append(ref)

        return RepositorySnapshot(ref=ref or self.default_branch, files=[FileRecord(path=path) for path in self.files])

    def file_fetcher(self, owner: str, repo: str, ref: str | None = None) -> FileFetcher:
        async def fetch(path: str) -> bytes:
            self.fetched_paths.append(path)

            content = self.files[path]
            if isinstance(content, BaseException):
                raise content

            return content

        return fetch


class FakeAgentBackend:
    """Records every invocation and answers with a fixed response."""

    def __init__(self, response: str = "The agent's analysis.", error: Exception | None = None):
        self.response: str = response
        self.error: Exception | None = error
        self.calls: list[tuple[AgentSession, str]] = []

    async def invoke_agent(self, session: AgentSession, prompt: str) -> str:
        self.calls.append((session, prompt))

        if self.error:
            raise self.error

        return self.response


@pytest.fixture
def action_inputs() -> ActionInputs:
    return ActionInputs.from_raw(action_prompt="Review the repository.", agent_id="AGENT123", agent_alias_id="ALIAS456")


@pytest.fixture
def dispatch_event() -> EventContext:
    return EventContext(kind=EventKind.DISPATCH, owner="octo-org", repo="octo-repo", run_id="7", sha="abc123")


@pytest.fixture
def schedule_event() -> EventContext:
    return EventContext(kind=EventKind.SCHEDULE, owner="octo-org", repo="octo-repo", run_id="8", sha="def456")


@pytest.fixture
def agent_backend() -> FakeAgentBackend:
    return FakeAgentBackend()
