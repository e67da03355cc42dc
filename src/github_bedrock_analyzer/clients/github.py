import base64
import os
from collections.abc import Awaitable, Callable, Sequence
from logging import Logger
from typing import TYPE_CHECKING, Any

from fastmcp.utilities.logging import get_logger
from githubkit import GitHub as GitHubKit
from githubkit.auth.token import TokenAuthStrategy
from githubkit.exception import GitHubException as GitHubKitGitHubException
from githubkit.exception import RequestFailed as GitHubKitRequestFailed
from githubkit.response import Response as GitHubKitResponse
from githubkit.retry import RetryChainDecision, RetryRateLimit, RetryServerError
from githubkit.versions.v2022_11_28.models import ContentFile as GitHubKitContentFile
from pydantic import BaseModel

from github_bedrock_analyzer.clients.errors.github import RequestError, ResourceNotFoundError, ResourceTypeMismatchError
from github_bedrock_analyzer.clients.models.github import FileRecord, RepositorySnapshot
from github_bedrock_analyzer.errors import ConfigurationError

if TYPE_CHECKING:
    from githubkit.versions.v2022_11_28.models import FullRepository as GitHubKitFullRepository
    from githubkit.versions.v2022_11_28.models import GitTree as GitHubKitGitTree

NOT_FOUND_ERROR = 404

GITHUBKIT_RESPONSE_TYPE = BaseModel | Sequence[BaseModel]

FileFetcher = Callable[[str], Awaitable[bytes]]


def get_github_token() -> str:
    for env_var in ("GITHUB_TOKEN", "GITHUB_PERSONAL_ACCESS_TOKEN"):
        if token := os.environ.get(env_var):
            return token

    msg = "GITHUB_TOKEN or GITHUB_PERSONAL_ACCESS_TOKEN must be set"
    raise ConfigurationError(message=msg, setting="GITHUB_TOKEN")


def get_githubkit_client() -> GitHubKit[Any]:
    # Server errors and rate limits are retried, up to 3 times each
    auto_retry = RetryChainDecision(RetryServerError(), RetryRateLimit(max_retry=3))

    return GitHubKit[TokenAuthStrategy](auth=TokenAuthStrategy(token=get_github_token()), auto_retry=auto_retry)


def snapshot_from_git_tree(git_tree: "GitHubKitGitTree", ref: str) -> RepositorySnapshot:
    """Build a snapshot from a recursive git tree. Only non-empty blobs are kept."""

    files: list[FileRecord] = [
        FileRecord(path=tree_item.path)
        for tree_item in git_tree.tree
        if tree_item.type == "blob" and tree_item.path and tree_item.size != 0
    ]

    return RepositorySnapshot(ref=ref, files=files, truncated=bool(git_tree.truncated))


class SnapshotClient:
    """Enumerates and fetches the files of a GitHub repository at a ref."""

    githubkit_client: GitHubKit[Any]
    logger: Logger

    log_requests: bool
    log_on_error: bool

    def __init__(
        self,
        githubkit_client: GitHubKit[Any] | None = None,
        logger: Logger | None = None,
        log_requests: bool = True,
        log_on_error: bool = True,
    ):
        self.githubkit_client = githubkit_client or get_githubkit_client()
        self.logger = logger or get_logger(name=__name__)
        self.log_requests = log_requests
        self.log_on_error = log_on_error

    def _get_loggers(self, log_on_error: bool | None = None) -> tuple[Callable[[str], Any], Callable[[str], Any]]:
        if log_on_error is None:
            log_on_error = self.log_on_error

        request_logger = self.logger.info if self.log_requests else self.logger.debug
        error_logger = self.logger.exception if log_on_error else self.logger.debug
        return request_logger, error_logger

    async def _perform_rest_request[T: GITHUBKIT_RESPONSE_TYPE](
        self,
        action: str,
        resource: str,
        log_on_error: bool | None = None,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> T:
        """Perform a request and return the parsed response.

        Args:
            action: The action being performed.
            resource: What the request is for, reported when it cannot be found.
            log_on_error: Whether to log failures with a traceback. Defaults to the client setting.

        Raises:
            ResourceNotFoundError: If the resource does not exist.
            RequestError: If the request fails.
        """

        request_logger, error_logger = self._get_loggers(log_on_error=log_on_error)

        request_logger(f"{action}: {resource}")

        try:
            response: GitHubKitResponse[T] = await method(**request_args)
        except GitHubKitRequestFailed as e:
            if e.response.status_code == NOT_FOUND_ERROR:
                raise ResourceNotFoundError(action=action, resource=resource) from e

            error_logger(f"{action} failed for {resource} with status {e.response.status_code}")
            raise RequestError(action=action, message=str(e)) from e
        except GitHubKitGitHubException as e:
            error_logger(f"{action} failed for {resource}: {e}")
            raise RequestError(action=action, message=str(e)) from e

        return response.parsed_data

    async def get_default_branch(self, owner: str, repo: str) -> str:
        full_repository: GitHubKitFullRepository = await self._perform_rest_request(
            action="Get repository",
            resource=f"{owner}/{repo}",
            method=self.githubkit_client.rest.repos.async_get,
            owner=owner,
            repo=repo,
        )

        return full_repository.default_branch

    async def get_repository_snapshot(self, owner: str, repo: str, ref: str | None = None) -> RepositorySnapshot:
        """Enumerate every file of a repository.

        Args:
            owner: The owner of the repository.
            repo: The name of the repository.
            ref: The ref of the branch, tag or commit to enumerate. If not provided, the default branch will be used.
        """

        if ref is None:
            ref = await self.get_default_branch(owner=owner, repo=repo)

        git_tree: GitHubKitGitTree = await self._perform_rest_request(
            action="Get repository tree",
            resource=f"{owner}/{repo}@{ref}",
            method=self.githubkit_client.rest.git.async_get_tree,
            owner=owner,
            repo=repo,
            tree_sha=ref,
            recursive="1",
        )

        if git_tree.truncated:
            self.logger.warning(f"The git tree for {owner}/{repo}@{ref} was truncated by GitHub, some files will not be analyzed.")

        return snapshot_from_git_tree(git_tree=git_tree, ref=ref)

    async def get_file_bytes(self, owner: str, repo: str, path: str, ref: str | None = None) -> bytes:
        """Get the raw content of a regular file in a repository.

        Failures are not logged here, a failed file is reported by whoever skips it.

        Raises:
            ResourceNotFoundError: If the file does not exist at the ref.
            ResourceTypeMismatchError: If the path refers to a directory, symlink or submodule.
            RequestError: If the request fails or the content is not base64 encoded.
        """

        file = await self._perform_rest_request(
            action="Get file",
            resource=path,
            log_on_error=False,
            method=self.githubkit_client.rest.repos.async_get_content,
            owner=owner,
            repo=repo,
            path=path,
            ref=ref,
        )

        if not isinstance(file, GitHubKitContentFile):
            raise ResourceTypeMismatchError(action="Get file", resource=path, expected_type=GitHubKitContentFile, actual_type=type(file))

        if file.encoding != "base64":
            raise RequestError(action="Get file", message=f"{path}: Unsupported content encoding {file.encoding}")

        return base64.b64decode(file.content)

    def file_fetcher(self, owner: str, repo: str, ref: str | None = None) -> FileFetcher:
        """Bind a repository and ref, returning a callable that fetches a file by path."""

        async def fetch(path: str) -> bytes:
            return await self.get_file_bytes(owner=owner, repo=repo, path=path, ref=ref)

        return fetch
