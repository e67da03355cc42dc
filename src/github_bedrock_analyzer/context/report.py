from collections.abc import Sequence
from datetime import UTC, datetime

from github_bedrock_analyzer.clients.models.github import FileRecord
from github_bedrock_analyzer.models.session import iso_timestamp

RESPONSE_HEADER = "## Bedrock Agent Response"


def format_report(
    response: str,
    event_label: str,
    files_analyzed_count: int,
    diffs_analyzed_count: int,
    records: Sequence[FileRecord],
    generated_at: datetime | None = None,
) -> str:
    """Render the agent's response and the run metadata as a markdown report. The response is included verbatim."""

    if generated_at is None:
        generated_at = datetime.now(tz=UTC)

    file_summary: str = "\n".join(f"- **{record.path}**: {record.status}" for record in records)

    return (
        f"# Bedrock Agent Analysis: {event_label}\n"
        f"_Generated at {iso_timestamp(generated_at)}_\n"
        "\n"
        "## Summary\n"
        f"- Files analyzed: {files_analyzed_count}\n"
        f"- Diffs analyzed: {diffs_analyzed_count}\n"
        "\n"
        "## Files\n"
        f"{file_summary}\n"
        "\n"
        f"{response}"
    )


def format_response(response: str) -> str:
    """Render a bare agent response, used when no repository context was gathered."""

    return f"{RESPONSE_HEADER}\n\n{response}"
