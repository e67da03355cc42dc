from collections.abc import Callable
from datetime import datetime
from logging import Logger
from typing import Any, Protocol

from fastmcp.utilities.logging import get_logger

from github_bedrock_analyzer.clients.github import FileFetcher
from github_bedrock_analyzer.clients.models.github import RepositorySnapshot
from github_bedrock_analyzer.config import ActionInputs
from github_bedrock_analyzer.context.aggregator import AggregatedContext, ContextAggregator
from github_bedrock_analyzer.context.prompts import PromptContext
from github_bedrock_analyzer.context.report import format_report, format_response
from github_bedrock_analyzer.errors import ConfigurationError, EmptyContextError
from github_bedrock_analyzer.models.ignore import IgnoreRuleSet
from github_bedrock_analyzer.models.session import AgentSession, EventContext, derive_session_id


class SnapshotSource(Protocol):
    async def get_repository_snapshot(self, owner: str, repo: str, ref: str | None = None) -> RepositorySnapshot: ...

    def file_fetcher(self, owner: str, repo: str, ref: str | None = None) -> FileFetcher: ...


class AgentBackend(Protocol):
    async def invoke_agent(self, session: AgentSession, prompt: str) -> str: ...


class AnalysisRunner:
    """Runs one analysis: snapshot the repository, build the prompt, ask the agent and render the report.

    The snapshot source may be omitted for prompt-only runs, which never read the repository.
    """

    snapshot_source: SnapshotSource | None
    agent_backend: AgentBackend
    logger: Logger

    def __init__(self, snapshot_source: SnapshotSource | None, agent_backend: AgentBackend, logger: Logger | None = None):
        self.snapshot_source = snapshot_source
        self.agent_backend = agent_backend
        self.logger = logger or get_logger(name=__name__)

    def _get_trace_logger(self, debug: bool) -> Callable[[str], Any]:
        return self.logger.info if debug else self.logger.debug

    def new_session(self, inputs: ActionInputs, event: EventContext, now: datetime | None = None) -> AgentSession:
        return AgentSession(
            agent_id=inputs.agent_id,
            agent_alias_id=inputs.agent_alias_id,
            session_id=derive_session_id(event_kind=event.kind, run_id=event.run_id, now=now),
            memory_id=inputs.memory_id,
        )

    async def gather_context(self, inputs: ActionInputs, event: EventContext, ignore_file_text: str | None = None) -> AggregatedContext:
        """Snapshot the repository and gather the content and status of every file not matched by the ignore rules.

        The file limit applies to the files that survive filtering, so ignored files never use it up.
        """

        if self.snapshot_source is None:
            msg = "A snapshot source is required to gather repository context"
            raise ConfigurationError(message=msg)

        owner, repo = event.require_repository()

        trace_logger = self._get_trace_logger(debug=inputs.debug)

        snapshot: RepositorySnapshot = await self.snapshot_source.get_repository_snapshot(owner=owner, repo=repo, ref=event.ref)

        trace_logger(f"Enumerated {len(snapshot.files)} files in {owner}/{repo}@{snapshot.ref}")

        rules: IgnoreRuleSet = IgnoreRuleSet.merge(caller_patterns=inputs.ignore_patterns, ignore_file_text=ignore_file_text)

        trace_logger(f"Ignore patterns: {list(rules.patterns)}")

        aggregator = ContextAggregator(
            fetch=self.snapshot_source.file_fetcher(owner=owner, repo=repo, ref=snapshot.ref),
            truncate_lines=inputs.truncate_lines,
            truncate_characters=inputs.truncate_characters,
            logger=self.logger,
        )

        return await aggregator.aggregate(files=snapshot.files, rules=rules, limit_files=inputs.max_files)

    async def run(self, inputs: ActionInputs, event: EventContext, ignore_file_text: str | None = None, now: datetime | None = None) -> str:
        """Run the analysis and return the rendered report.

        Raises:
            EmptyContextError: If no file survived filtering. The agent is not invoked.
            AgentInvocationError: If the agent could not be invoked.
            ClientError: If the repository could not be enumerated.
        """

        trace_logger = self._get_trace_logger(debug=inputs.debug)

        session: AgentSession = self.new_session(inputs=inputs, event=event, now=now)

        trace_logger(f"Session ID: {session.session_id}")

        if inputs.prompt_only:
            trace_logger(f"Using prompt: {inputs.action_prompt}")

            response: str = await self.agent_backend.invoke_agent(session=session, prompt=inputs.action_prompt)

            return format_response(response=response)

        aggregated_context: AggregatedContext = await self.gather_context(inputs=inputs, event=event, ignore_file_text=ignore_file_text)

        if aggregated_context.is_empty:
            raise EmptyContextError(ignored_count=aggregated_context.ignored_count)

        prompt: str = PromptContext.from_aggregated_context(aggregated_context=aggregated_context, instruction=inputs.action_prompt).render()

        trace_logger(f"Using prompt:\n{prompt}")

        response = await self.agent_backend.invoke_agent(session=session, prompt=prompt)

        return format_report(
            response=response,
            event_label=event.label,
            files_analyzed_count=len(aggregated_context.content_blocks),
            diffs_analyzed_count=len(aggregated_context.status_entries),
            records=aggregated_context.records,
            generated_at=now,
        )
