from collections.abc import Sequence
from fnmatch import fnmatchcase
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

GLOBSTAR = "**"


def parse_pattern_list(patterns: str | Sequence[str] | None) -> list[str]:
    """Split comma-delimited patterns, trimming whitespace and dropping empty entries."""

    if not patterns:
        return []

    if isinstance(patterns, str):
        patterns = [patterns]

    return [pattern.strip() for raw_patterns in patterns for pattern in raw_patterns.split(",") if pattern.strip()]


def parse_ignore_file(text: str | None) -> list[str]:
    """Parse an ignore file: one pattern per line, blank lines and `#` comments are skipped."""

    if not text:
        return []

    return [line.strip() for line in text.splitlines() if line.strip() and not line.strip().startswith("#")]


def _match_segments(pattern_segments: Sequence[str], path_segments: Sequence[str]) -> bool:
    if not pattern_segments:
        return not path_segments

    head, rest = pattern_segments[0], pattern_segments[1:]

    if head == GLOBSTAR:
        return any(_match_segments(rest, path_segments[skip:]) for skip in range(len(path_segments) + 1))

    if not path_segments:
        return False

    return fnmatchcase(path_segments[0], head) and _match_segments(rest, path_segments[1:])


def matches_pattern(pattern: str, path: str) -> bool:
    """Check a path against a single glob pattern.

    `*`, `?` and `[...]` never cross a `/` and a `**` segment spans any number of directories. Patterns
    without a slash match at any depth, a leading slash anchors the pattern to the repository root and a
    trailing slash restricts the pattern to directories. A pattern matching a directory matches
    everything below it.
    """

    anchored: bool = pattern.startswith("/")
    directory_only: bool = pattern.endswith("/")
    pattern = pattern.strip("/")

    if not pattern:
        return False

    pattern_segments: list[str] = pattern.split("/")

    if len(pattern_segments) == 1 and not anchored:
        pattern_segments = [GLOBSTAR, *pattern_segments]

    path_segments: list[str] = [segment for segment in path.split("/") if segment]

    # The path itself is a file, so directory-only patterns can only match its ancestors
    last_candidate: int = len(path_segments) - 1 if directory_only else len(path_segments)

    return any(_match_segments(pattern_segments, path_segments[:end]) for end in range(1, last_candidate + 1))


class IgnoreRuleSet(BaseModel):
    """The merged glob patterns used to exclude files from analysis."""

    model_config = ConfigDict(frozen=True)

    patterns: tuple[str, ...] = Field(default=(), description="The exclusion patterns. Any match excludes a file.")

    @classmethod
    def merge(cls, caller_patterns: str | Sequence[str] | None, ignore_file_text: str | None = None) -> Self:
        """Merge the caller's comma-delimited patterns with the patterns of an ignore file."""

        return cls(patterns=(*parse_pattern_list(caller_patterns), *parse_ignore_file(ignore_file_text)))

    def is_ignored(self, path: str) -> bool:
        return any(matches_pattern(pattern=pattern, path=path) for pattern in self.patterns)


def is_ignored(path: str, rules: IgnoreRuleSet) -> bool:
    return rules.is_ignored(path)
