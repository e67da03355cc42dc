"""The entrypoint for the GitHub Bedrock Analyzer action."""

import asyncio
from logging import Logger

import click
from fastmcp.utilities.logging import configure_logging, get_logger

from github_bedrock_analyzer import workflow_commands
from github_bedrock_analyzer.clients.bedrock import BedrockAgentClient
from github_bedrock_analyzer.clients.github import SnapshotClient
from github_bedrock_analyzer.config import DEFAULT_IGNORE_FILE, ActionInputs, get_event_context, read_ignore_file
from github_bedrock_analyzer.context.aggregator import DEFAULT_LIMIT_FILES, DEFAULT_TRUNCATE_CONTENT_CHARACTERS, DEFAULT_TRUNCATE_CONTENT_LINES
from github_bedrock_analyzer.errors import AnalyzerError, EmptyContextError
from github_bedrock_analyzer.models.session import EventContext
from github_bedrock_analyzer.runner import AnalysisRunner, SnapshotSource

logger: Logger = get_logger(name=__name__)


@click.command()
@click.option("--action-prompt", envvar="INPUT_ACTION_PROMPT", default="", help="The instruction to send to the agent")
@click.option("--agent-id", envvar="INPUT_AGENT_ID", default="", help="The identifier of the Bedrock agent")
@click.option("--agent-alias-id", envvar="INPUT_AGENT_ALIAS_ID", default="", help="The identifier of the Bedrock agent alias")
@click.option("--memory-id", envvar="INPUT_MEMORY_ID", default="", help="The memory identifier to forward to the agent")
@click.option("--ignore-patterns", envvar="INPUT_IGNORE_PATTERNS", default="", help="Comma-delimited glob patterns of files to exclude")
@click.option("--ignore-file", envvar="INPUT_IGNORE_FILE", default=DEFAULT_IGNORE_FILE, help="The ignore file, relative to the workspace")
@click.option("--workspace", envvar="GITHUB_WORKSPACE", default=".", help="The directory the repository is checked out in")
@click.option("--step-summary", envvar="GITHUB_STEP_SUMMARY", default=None, help="A file to append the report to")
@click.option("--max-files", envvar="INPUT_MAX_FILES", type=int, default=DEFAULT_LIMIT_FILES, help="The maximum number of files to analyze")
@click.option("--truncate-lines", envvar="INPUT_TRUNCATE_LINES", type=int, default=DEFAULT_TRUNCATE_CONTENT_LINES)
@click.option("--truncate-characters", envvar="INPUT_TRUNCATE_CHARACTERS", type=int, default=DEFAULT_TRUNCATE_CONTENT_CHARACTERS)
@click.option("--prompt-only/--with-context", envvar="INPUT_PROMPT_ONLY", default=False, help="Send the instruction without repository context")
@click.option("--debug/--no-debug", envvar="INPUT_DEBUG", default=False, help="Log the session, ignore patterns and prompt")
def run_analysis(
    action_prompt: str,
    agent_id: str,
    agent_alias_id: str,
    memory_id: str,
    ignore_patterns: str,
    ignore_file: str,
    workspace: str,
    step_summary: str | None,
    max_files: int,
    truncate_lines: int,
    truncate_characters: int,
    prompt_only: bool,
    debug: bool,
):
    configure_logging(level="DEBUG" if debug else "INFO")

    logger.info("Starting GitHub Bedrock Analyzer")

    try:
        inputs: ActionInputs = ActionInputs.from_raw(
            action_prompt=action_prompt,
            agent_id=agent_id,
            agent_alias_id=agent_alias_id,
            memory_id=memory_id,
            ignore_patterns=ignore_patterns,
            debug=debug,
            prompt_only=prompt_only,
            max_files=max_files,
            truncate_lines=truncate_lines,
            truncate_characters=truncate_characters,
        )

        event: EventContext = get_event_context(require_repository=not inputs.prompt_only)

        ignore_file_text: str | None = None
        snapshot_source: SnapshotSource | None = None

        if not inputs.prompt_only:
            ignore_file_text = read_ignore_file(ignore_file=ignore_file, workspace=workspace)
            snapshot_source = SnapshotClient()

        runner = AnalysisRunner(snapshot_source=snapshot_source, agent_backend=BedrockAgentClient(), logger=logger)

        report: str = asyncio.run(runner.run(inputs=inputs, event=event, ignore_file_text=ignore_file_text))
    except EmptyContextError as e:
        workflow_commands.warning(str(e))
        return
    except AnalyzerError as e:
        workflow_commands.error(f"Error: {e}")
        raise click.exceptions.Exit(1) from e

    click.echo(report)
    workflow_commands.append_step_summary(summary=report, step_summary_file=step_summary)

    logger.info("Analysis completed successfully")


if __name__ == "__main__":
    run_analysis()
