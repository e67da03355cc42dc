import re
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

from github_bedrock_analyzer.errors import ConfigurationError


class EventKind(StrEnum):
    """The kind of event that triggered the run."""

    DISPATCH = "workflow_dispatch"
    SCHEDULE = "schedule"
    ADHOC = "adhoc"

    @classmethod
    def from_event_name(cls, event_name: str | None) -> Self:
        """Map a GitHub event name to an event kind. A missing event name means a direct invocation."""

        if not event_name or not event_name.strip():
            return cls.ADHOC

        try:
            return cls(event_name.strip())
        except ValueError:
            msg = f"Unsupported triggering event: {event_name}"
            raise ConfigurationError(message=msg, setting="GITHUB_EVENT_NAME") from None


class EventContext(BaseModel):
    """The host environment's description of the triggering event."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind = Field(description="The kind of event that triggered the run.")
    owner: str | None = Field(default=None, description="The owner of the repository being analyzed, if known.")
    repo: str | None = Field(default=None, description="The name of the repository being analyzed, if known.")
    run_id: str | None = Field(default=None, description="The unique identifier of the workflow run, if any.")
    sha: str | None = Field(default=None, description="The commit that triggered the run, if any.")

    @property
    def label(self) -> str:
        return self.kind.value

    @property
    def ref(self) -> str | None:
        """The ref to snapshot. Only dispatched runs pin a commit, other runs use the default branch."""

        if self.kind is EventKind.DISPATCH:
            return self.sha

        return None

    def require_repository(self) -> tuple[str, str]:
        if not self.owner or not self.repo:
            msg = "Input required and not supplied: GITHUB_REPOSITORY"
            raise ConfigurationError(message=msg, setting="GITHUB_REPOSITORY")

        return self.owner, self.repo


class AgentSession(BaseModel):
    """The identity of a conversation with a Bedrock agent."""

    model_config = ConfigDict(frozen=True)

    agent_id: str = Field(description="The identifier of the agent.")
    agent_alias_id: str = Field(description="The identifier of the agent alias.")
    session_id: str = Field(description="The identifier of the session, unique to a single run.")
    memory_id: str | None = Field(default=None, description="An opaque handle the agent uses to recall state across runs.")


EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def iso_timestamp(now: datetime) -> str:
    return now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def derive_session_id(event_kind: EventKind, run_id: str | None = None, now: datetime | None = None) -> str:
    """Derive a session identifier for the run.

    Dispatched runs use the workflow run identifier. Scheduled runs use the digits of the current
    ISO 8601 timestamp, suffixed with the run identifier when the host provides one so that two
    firings within the same millisecond do not share a session. Direct invocations use the epoch
    milliseconds.
    """

    if now is None:
        now = datetime.now(tz=UTC)

    if event_kind is EventKind.DISPATCH:
        if not run_id:
            msg = "A workflow run identifier is required for dispatched runs"
            raise ConfigurationError(message=msg, setting="GITHUB_RUN_ID")

        return f"workflow-{run_id}"

    if event_kind is EventKind.SCHEDULE:
        digits: str = re.sub(r"\D", "", iso_timestamp(now))

        return f"schedule-{digits}-{run_id}" if run_id else f"schedule-{digits}"

    return f"session-{(now - EPOCH) // timedelta(milliseconds=1)}"
