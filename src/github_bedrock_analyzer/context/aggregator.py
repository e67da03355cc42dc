import asyncio
import re
from collections.abc import Awaitable, Callable, Sequence
from logging import Logger
from typing import TYPE_CHECKING, Any, Self

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, ConfigDict, Field, RootModel

from github_bedrock_analyzer.clients.models.github import FileRecord, FileStatus
from github_bedrock_analyzer.errors import FetchError
from github_bedrock_analyzer.models.ignore import IgnoreRuleSet

if TYPE_CHECKING:
    from types import CoroutineType

DEFAULT_LIMIT_FILES = 100
DEFAULT_TRUNCATE_CONTENT_LINES = 500
DEFAULT_TRUNCATE_CONTENT_CHARACTERS = 20000

TRUNCATION_MARKER = "... [the remainder of this file has been truncated]"

BACKTICK_RUN = re.compile(r"`+")


def code_fence(content: str) -> str:
    """A backtick fence longer than any backtick run in the content."""

    longest_run: int = max((len(run) for run in BACKTICK_RUN.findall(content)), default=0)

    return "`" * max(3, longest_run + 1)


class FileLines(RootModel[dict[int, str]]):
    """A dictionary of line numbers and content pairs."""

    @classmethod
    def from_text(cls, text: str) -> Self:
        return cls(root={i + 1: line for i, line in enumerate(text.split("\n"))})

    def truncate(self, truncate_lines: int, truncate_characters: int) -> Self:
        """Keep at most `truncate_lines` lines and `truncate_characters` characters. The line crossing the character limit is cut."""

        remaining_characters: int = truncate_characters
        new_lines: dict[int, str] = {}

        for line_number, line in self.root.items():
            if line_number > truncate_lines or remaining_characters <= 0:
                break

            new_lines[line_number] = line[:remaining_characters]
            remaining_characters -= len(line)

        return self.model_copy(update={"root": new_lines})

    def to_text(self) -> str:
        return "\n".join(self.root.values())


class ContentBlock(BaseModel):
    """The rendered content of one file included in the prompt."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="The path of the file.")
    content: str = Field(description="The decoded, possibly truncated, text of the file.")
    truncated: bool = Field(default=False, description="Whether the content has been truncated.")

    @classmethod
    def from_text(cls, path: str, text: str, truncate_lines: int, truncate_characters: int) -> Self:
        file_lines: FileLines = FileLines.from_text(text=text)
        content: str = file_lines.truncate(truncate_lines=truncate_lines, truncate_characters=truncate_characters).to_text()

        # the kept text is always a prefix of the original
        return cls(path=path, content=content, truncated=len(content) < len(text))

    def render(self) -> str:
        content: str = f"{self.content}\n{TRUNCATION_MARKER}" if self.truncated else self.content
        fence: str = code_fence(content)

        return f"Content of {self.path}\n{fence}\n{content}\n{fence}\n"


class StatusEntry(BaseModel):
    """The rendered status line of one file."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="The path of the file.")
    status: FileStatus = Field(description="The status of the file.")

    @classmethod
    def from_file_record(cls, file_record: FileRecord) -> Self:
        return cls(path=file_record.path, status=file_record.status)

    def render(self) -> str:
        return f"File: {self.path} (Status: {self.status})\n"


class FileContext(BaseModel):
    """The outcome of processing one file: a status entry always, a content block only if the fetch succeeded."""

    content_block: ContentBlock | None = None
    status_entry: StatusEntry


class AggregatedContext(BaseModel):
    """The content blocks and status entries gathered for a snapshot, in snapshot order."""

    content_blocks: list[ContentBlock] = Field(default_factory=list, description="The content of the files that could be fetched.")
    status_entries: list[StatusEntry] = Field(default_factory=list, description="The status of every file that was not ignored.")
    records: list[FileRecord] = Field(default_factory=list, description="The files that were not ignored.")
    ignored_count: int = Field(default=0, description="The number of files excluded by the ignore rules.")

    @classmethod
    def from_file_contexts(cls, file_contexts: Sequence[FileContext], records: Sequence[FileRecord], ignored_count: int) -> Self:
        return cls(
            content_blocks=[file_context.content_block for file_context in file_contexts if file_context.content_block],
            status_entries=[file_context.status_entry for file_context in file_contexts],
            records=list(records),
            ignored_count=ignored_count,
        )

    @property
    def is_empty(self) -> bool:
        return not self.content_blocks and not self.status_entries


class ContextAggregator:
    """Fetches the content of every non-ignored file concurrently, tolerating per-file failures."""

    fetch: Callable[[str], Awaitable[bytes]]
    logger: Logger

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[bytes]],
        truncate_lines: int = DEFAULT_TRUNCATE_CONTENT_LINES,
        truncate_characters: int = DEFAULT_TRUNCATE_CONTENT_CHARACTERS,
        logger: Logger | None = None,
    ):
        self.fetch = fetch
        self.truncate_lines = truncate_lines
        self.truncate_characters = truncate_characters
        self.logger = logger or get_logger(name=__name__)

    async def _load_content(self, path: str) -> ContentBlock:
        try:
            raw_content: bytes = await self.fetch(path)
            text: str = raw_content.decode("utf-8")
        except Exception as e:
            raise FetchError(path=path, reason=str(e) or type(e).__name__) from e

        return ContentBlock.from_text(path=path, text=text, truncate_lines=self.truncate_lines, truncate_characters=self.truncate_characters)

    async def _aggregate_file(self, file_record: FileRecord) -> FileContext:
        status_entry: StatusEntry = StatusEntry.from_file_record(file_record=file_record)

        try:
            content_block: ContentBlock = await self._load_content(path=file_record.path)
        except FetchError as e:
            self.logger.warning(f"Skipping content of {file_record.path}: {e}")
            return FileContext(content_block=None, status_entry=status_entry)

        return FileContext(content_block=content_block, status_entry=status_entry)

    async def aggregate(self, files: Sequence[FileRecord], rules: IgnoreRuleSet, limit_files: int | None = None) -> AggregatedContext:
        """Gather content blocks and status entries for every file not matched by the ignore rules.

        Args:
            files: The files of the snapshot, in snapshot order.
            rules: The ignore rules to filter the files with.
            limit_files: The maximum number of surviving files to gather. Applied after filtering.
        """

        included: list[FileRecord] = [file_record for file_record in files if not rules.is_ignored(file_record.path)]

        ignored_count: int = len(files) - len(included)

        if limit_files is not None and len(included) > limit_files:
            self.logger.warning(f"Limiting the analysis from {len(included)} to {limit_files} files.")
            included = included[:limit_files]

        self.logger.info(f"Fetching {len(included)} files, {ignored_count} files ignored.")

        tasks: list[CoroutineType[Any, Any, FileContext]] = [self._aggregate_file(file_record=file_record) for file_record in included]

        # gather returns results in task order, so the output follows the snapshot order
        file_contexts: list[FileContext] = await asyncio.gather(*tasks)

        aggregated_context: AggregatedContext = AggregatedContext.from_file_contexts(
            file_contexts=file_contexts, records=included, ignored_count=ignored_count
        )

        self.logger.info(
            f"Fetched content for {len(aggregated_context.content_blocks)} of {len(aggregated_context.status_entries)} files."
        )

        return aggregated_context
