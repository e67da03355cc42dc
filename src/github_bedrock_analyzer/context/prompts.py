from collections.abc import Sequence
from typing import Self

from pydantic import BaseModel, Field

from github_bedrock_analyzer.context.aggregator import AggregatedContext, ContentBlock, StatusEntry

CONTENT_HEADER = "Content of Affected Files:\n"
CONTENT_FOOTER = "\nUse the files above to provide context on the changes made.\n"
CHANGES_HEADER = "Changes:\n"


def build_prompt(content_blocks: Sequence[ContentBlock], status_entries: Sequence[StatusEntry], instruction: str) -> str:
    """Render the prompt sent to the agent. The blocks and entries are rendered in the order given."""

    changes: str = CHANGES_HEADER + "".join(status_entry.render() for status_entry in status_entries) + "\n" + instruction

    if not content_blocks:
        return changes

    return CONTENT_HEADER + "".join(content_block.render() for content_block in content_blocks) + CONTENT_FOOTER + changes


class PromptContext(BaseModel):
    """Everything needed to render the prompt for one run."""

    content_blocks: list[ContentBlock] = Field(default_factory=list, description="The content of the affected files.")
    status_entries: list[StatusEntry] = Field(default_factory=list, description="The status of the affected files.")
    instruction: str = Field(description="The instruction for the agent.")

    @classmethod
    def from_aggregated_context(cls, aggregated_context: AggregatedContext, instruction: str) -> Self:
        return cls(
            content_blocks=aggregated_context.content_blocks,
            status_entries=aggregated_context.status_entries,
            instruction=instruction,
        )

    def render(self) -> str:
        return build_prompt(content_blocks=self.content_blocks, status_entries=self.status_entries, instruction=self.instruction)
