from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

FileStatus = Literal["analyzed", "added", "removed", "modified", "renamed", "copied", "changed", "unchanged"]


class FileRecord(BaseModel):
    """A file known to exist in the repository snapshot."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="The path of the file, relative to the repository root.")
    status: FileStatus = Field(default="analyzed", description="The status of the file.")


class RepositorySnapshot(BaseModel):
    """The files of a repository at a specific ref."""

    ref: str = Field(description="The ref the files were enumerated at.")
    files: list[FileRecord] = Field(description="The files in the snapshot.")
    truncated: bool = Field(
        default=False,
        description="Whether GitHub truncated the tree. If true, the snapshot does not contain all files.",
    )
