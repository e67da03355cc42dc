import os
from pathlib import Path
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

from github_bedrock_analyzer.context.aggregator import DEFAULT_LIMIT_FILES, DEFAULT_TRUNCATE_CONTENT_CHARACTERS, DEFAULT_TRUNCATE_CONTENT_LINES
from github_bedrock_analyzer.errors import ConfigurationError
from github_bedrock_analyzer.models.session import EventContext, EventKind

DEFAULT_IGNORE_FILE = ".bedrockignore"


def require_input(name: str, value: str | None) -> str:
    if value is None or not value.strip():
        msg = f"Input required and not supplied: {name}"
        raise ConfigurationError(message=msg, setting=name)

    return value.strip()


def optional_input(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None

    return value.strip()


class ActionInputs(BaseModel):
    """The validated inputs of a run."""

    model_config = ConfigDict(frozen=True)

    action_prompt: str = Field(description="The instruction sent to the agent along with the repository context.")
    agent_id: str = Field(description="The identifier of the Bedrock agent.")
    agent_alias_id: str = Field(description="The identifier of the Bedrock agent alias.")
    memory_id: str | None = Field(default=None, description="The memory identifier forwarded to the agent.")
    ignore_patterns: str = Field(default="", description="Comma-delimited glob patterns of files to exclude.")
    debug: bool = Field(default=False, description="Whether to log the prompt and other trace information.")
    prompt_only: bool = Field(default=False, description="Whether to send the instruction without any repository context.")
    max_files: int = Field(default=DEFAULT_LIMIT_FILES, description="The maximum number of files to analyze after filtering.")
    truncate_lines: int = Field(default=DEFAULT_TRUNCATE_CONTENT_LINES, description="The number of lines to keep per file.")
    truncate_characters: int = Field(default=DEFAULT_TRUNCATE_CONTENT_CHARACTERS, description="The number of characters to keep per file.")

    @classmethod
    def from_raw(
        cls,
        action_prompt: str | None,
        agent_id: str | None,
        agent_alias_id: str | None,
        memory_id: str | None = None,
        ignore_patterns: str | None = None,
        debug: bool = False,
        prompt_only: bool = False,
        max_files: int = DEFAULT_LIMIT_FILES,
        truncate_lines: int = DEFAULT_TRUNCATE_CONTENT_LINES,
        truncate_characters: int = DEFAULT_TRUNCATE_CONTENT_CHARACTERS,
    ) -> Self:
        """Validate raw inputs, raising a ConfigurationError for any missing required input."""

        return cls(
            action_prompt=require_input("action_prompt", action_prompt),
            agent_id=require_input("agent_id", agent_id),
            agent_alias_id=require_input("agent_alias_id", agent_alias_id),
            memory_id=optional_input(memory_id),
            ignore_patterns=ignore_patterns or "",
            debug=debug,
            prompt_only=prompt_only,
            max_files=max_files,
            truncate_lines=truncate_lines,
            truncate_characters=truncate_characters,
        )


def split_repository(repository: str | None) -> tuple[str, str]:
    repository = require_input("GITHUB_REPOSITORY", repository)

    owner, _, repo = repository.partition("/")

    if not owner or not repo or "/" in repo:
        msg = f"Expected GITHUB_REPOSITORY in the form owner/repo, got {repository}"
        raise ConfigurationError(message=msg, setting="GITHUB_REPOSITORY")

    return owner, repo


def get_event_context(environ: dict[str, str] | None = None, require_repository: bool = True) -> EventContext:
    """Read the triggering event from the GitHub Actions environment.

    The repository is only optional when no repository context will be gathered.
    """

    if environ is None:
        environ = dict(os.environ)

    owner: str | None = None
    repo: str | None = None

    if require_repository or environ.get("GITHUB_REPOSITORY"):
        owner, repo = split_repository(environ.get("GITHUB_REPOSITORY"))

    return EventContext(
        kind=EventKind.from_event_name(environ.get("GITHUB_EVENT_NAME")),
        owner=owner,
        repo=repo,
        run_id=optional_input(environ.get("GITHUB_RUN_ID")),
        sha=optional_input(environ.get("GITHUB_SHA")),
    )


def read_ignore_file(ignore_file: str | Path, workspace: str | Path | None = None) -> str | None:
    """Read the repository ignore file from disk. A missing file is not an error."""

    ignore_file_path: Path = Path(ignore_file)

    if workspace is not None and not ignore_file_path.is_absolute():
        ignore_file_path = Path(workspace) / ignore_file_path

    if not ignore_file_path.is_file():
        return None

    try:
        return ignore_file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        msg = f"Unable to read the ignore file {ignore_file_path}: {e}"
        raise ConfigurationError(message=msg, setting="ignore_file") from e
