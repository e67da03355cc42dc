from github_bedrock_analyzer.errors import AnalyzerError, ExtraInfoType


class ClientError(AnalyzerError):
    """An error talking to the GitHub REST API."""


class RequestError(ClientError):
    """A GitHub request failed or returned something that cannot be used."""

    def __init__(self, action: str, message: str | None = None, extra_info: ExtraInfoType | None = None):
        super().__init__(message=f"{action} failed.", extra_info={"message": message, **(extra_info or {})})


class ResourceNotFoundError(RequestError):
    """The requested repository, tree or file does not exist."""

    def __init__(self, action: str, resource: str | None = None):
        super().__init__(action=action, message="The resource could not be found.", extra_info={"resource": resource})


class ResourceTypeMismatchError(RequestError):
    """The path exists but is not a regular file (a directory, symlink or submodule)."""

    def __init__(self, action: str, resource: str, expected_type: type, actual_type: type):
        super().__init__(action=action, message=f"{resource}: Expected {expected_type.__name__}, got {actual_type.__name__}")
