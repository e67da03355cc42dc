"""Signal outcomes to the GitHub Actions runner through workflow commands."""

from pathlib import Path

import click


def escape_data(message: str) -> str:
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def error(message: str) -> None:
    click.echo(f"::error::{escape_data(message)}")


def warning(message: str) -> None:
    click.echo(f"::warning::{escape_data(message)}")


def append_step_summary(summary: str, step_summary_file: str | Path | None) -> None:
    if not step_summary_file:
        return

    with Path(step_summary_file).open("a", encoding="utf-8") as step_summary:
        _ = step_summary.write(summary + "\n")
