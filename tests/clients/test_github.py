import base64
import logging
from types import SimpleNamespace
from typing import Any

import pytest
from githubkit.exception import GitHubException as GitHubKitGitHubException
from githubkit.versions.v2022_11_28.models import ContentFile as GitHubKitContentFile

from github_bedrock_analyzer.clients.errors.github import RequestError, ResourceNotFoundError, ResourceTypeMismatchError
from github_bedrock_analyzer.clients.github import SnapshotClient, snapshot_from_git_tree
from github_bedrock_analyzer.clients.models.github import FileRecord, RepositorySnapshot
from github_bedrock_analyzer.errors import AnalyzerError, ConfigurationError


def tree_item(path: str, type: str, size: int | None = None) -> SimpleNamespace:  # noqa: A002
    return SimpleNamespace(path=path, type=type, size=size)


def content_file(path: str, content: bytes, encoding: str = "base64") -> GitHubKitContentFile:
    return GitHubKitContentFile.model_construct(
        type="file",
        encoding=encoding,
        size=len(content),
        name=path.split("/")[-1],
        path=path,
        content=base64.b64encode(content).decode() if encoding == "base64" else "",
        sha="0" * 40,
    )


GIT_TREE = SimpleNamespace(
    tree=[
        tree_item("README.md", "blob", 12),
        tree_item("src", "tree"),
        tree_item("src/main.py", "blob", 40),
        tree_item("src/empty.py", "blob", 0),
        tree_item("vendor/lib", "commit"),
        tree_item("docs/guide.md", "blob", 100),
    ],
    truncated=False,
)


class FakeGitHubKit:
    """Just enough of the githubkit REST surface for the snapshot client."""

    def __init__(self, contents: dict[str, Any], default_branch: str = "main", error: Exception | None = None):
        self.contents: dict[str, Any] = contents
        self.default_branch: str = default_branch
        self.error: Exception | None = error
        self.requests: list[tuple[str, dict[str, Any]]] = []

        self.rest = SimpleNamespace(
            repos=SimpleNamespace(async_get=self.async_get, async_get_content=self.async_get_content),
            git=SimpleNamespace(async_get_tree=self.async_get_tree),
        )

    def _respond(self, name: str, parsed_data: Any, **kwargs: Any) -> SimpleNamespace:
        self.requests.append((name, kwargs))

        if self.error:
            raise self.error

        return SimpleNamespace(parsed_data=parsed_data)

    async def async_get(self, **kwargs: Any) -> SimpleNamespace:
        repository = SimpleNamespace(
            name="octo-repo",
            full_name="octo-org/octo-repo",
            description=None,
            url="https://api.github.com/repos/octo-org/octo-repo",
            default_branch=self.default_branch,
            archived=False,
        )
        return self._respond("get", repository, **kwargs)

    async def async_get_tree(self, **kwargs: Any) -> SimpleNamespace:
        return self._respond("get_tree", GIT_TREE, **kwargs)

    async def async_get_content(self, **kwargs: Any) -> SimpleNamespace:
        return self._respond("get_content", self.contents[kwargs["path"]], **kwargs)


def test_snapshot_from_git_tree():
    snapshot = snapshot_from_git_tree(git_tree=GIT_TREE, ref="main")  # pyright: ignore[reportArgumentType]

    assert snapshot == RepositorySnapshot(
        ref="main",
        files=[FileRecord(path="README.md"), FileRecord(path="src/main.py"), FileRecord(path="docs/guide.md")],
    )


def test_missing_token(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GITHUB_PERSONAL_ACCESS_TOKEN", raising=False)

    with pytest.raises(ConfigurationError, match="GITHUB_TOKEN"):
        SnapshotClient()


class TestSnapshotClient:
    async def test_snapshot_resolves_default_branch(self):
        githubkit_client = FakeGitHubKit(contents={}, default_branch="trunk")
        snapshot_client = SnapshotClient(githubkit_client=githubkit_client)  # pyright: ignore[reportArgumentType]

        snapshot = await snapshot_client.get_repository_snapshot(owner="octo-org", repo="octo-repo")

        assert snapshot.ref == "trunk"
        assert [file.path for file in snapshot.files] == ["README.md", "src/main.py", "docs/guide.md"]
        assert not snapshot.truncated
        assert githubkit_client.requests[-1] == (
            "get_tree",
            {"owner": "octo-org", "repo": "octo-repo", "tree_sha": "trunk", "recursive": "1"},
        )

    async def test_snapshot_at_ref(self):
        githubkit_client = FakeGitHubKit(contents={})
        snapshot_client = SnapshotClient(githubkit_client=githubkit_client)  # pyright: ignore[reportArgumentType]

        snapshot = await snapshot_client.get_repository_snapshot(owner="octo-org", repo="octo-repo", ref="abc123")

        assert snapshot.ref == "abc123"
        assert [name for name, _ in githubkit_client.requests] == ["get_tree"]

    async def test_get_file_bytes(self):
        githubkit_client = FakeGitHubKit(contents={"README.md": content_file("README.md", b"# Hello\n")})
        snapshot_client = SnapshotClient(githubkit_client=githubkit_client)  # pyright: ignore[reportArgumentType]

        fetch = snapshot_client.file_fetcher(owner="octo-org", repo="octo-repo", ref="main")

        assert await fetch("README.md") == b"# Hello\n"
        assert githubkit_client.requests == [
            ("get_content", {"owner": "octo-org", "repo": "octo-repo", "path": "README.md", "ref": "main"}),
        ]

    async def test_get_directory(self):
        githubkit_client = FakeGitHubKit(contents={"src": []})
        snapshot_client = SnapshotClient(githubkit_client=githubkit_client)  # pyright: ignore[reportArgumentType]

        with pytest.raises(ResourceTypeMismatchError, match="src: Expected ContentFile, got list"):
            await snapshot_client.get_file_bytes(owner="octo-org", repo="octo-repo", path="src", ref="main")

    async def test_get_large_file(self):
        githubkit_client = FakeGitHubKit(contents={"big.bin": content_file("big.bin", b"", encoding="none")})
        snapshot_client = SnapshotClient(githubkit_client=githubkit_client)  # pyright: ignore[reportArgumentType]

        with pytest.raises(RequestError, match="Unsupported content encoding none"):
            await snapshot_client.get_file_bytes(owner="octo-org", repo="octo-repo", path="big.bin", ref="main")

    async def test_request_error(self):
        githubkit_client = FakeGitHubKit(contents={}, error=GitHubKitGitHubException("connection reset"))
        snapshot_client = SnapshotClient(githubkit_client=githubkit_client)  # pyright: ignore[reportArgumentType]

        with pytest.raises(RequestError, match="connection reset"):
            await snapshot_client.get_repository_snapshot(owner="octo-org", repo="octo-repo", ref="main")

    async def test_file_failures_are_not_logged_as_errors(self, caplog: pytest.LogCaptureFixture):
        logger = logging.getLogger("test-github")
        caplog.set_level(logging.DEBUG, logger="test-github")

        githubkit_client = FakeGitHubKit(contents={"a.txt": None}, error=GitHubKitGitHubException("connection reset"))
        snapshot_client = SnapshotClient(githubkit_client=githubkit_client, logger=logger)  # pyright: ignore[reportArgumentType]

        with pytest.raises(RequestError):
            await snapshot_client.get_file_bytes(owner="octo-org", repo="octo-repo", path="a.txt", ref="main")

        assert [record for record in caplog.records if record.levelno >= logging.ERROR] == []

    async def test_snapshot_failures_are_logged_as_errors(self, caplog: pytest.LogCaptureFixture):
        logger = logging.getLogger("test-github")
        caplog.set_level(logging.DEBUG, logger="test-github")

        githubkit_client = FakeGitHubKit(contents={}, error=GitHubKitGitHubException("connection reset"))
        snapshot_client = SnapshotClient(githubkit_client=githubkit_client, logger=logger)  # pyright: ignore[reportArgumentType]

        with pytest.raises(RequestError):
            await snapshot_client.get_repository_snapshot(owner="octo-org", repo="octo-repo", ref="main")

        assert "Get repository tree failed for octo-org/octo-repo@main" in caplog.text

    def test_client_errors_are_analyzer_errors(self):
        error = ResourceNotFoundError(action="Get file", resource="a.txt")

        assert isinstance(error, AnalyzerError)
        assert str(error) == "Get file failed. (message: The resource could not be found., resource: a.txt)"
