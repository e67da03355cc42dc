ExtraInfoType = dict[str, str | None]


class AnalyzerError(Exception):
    """An error from the GitHub Bedrock Analyzer."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class ConfigurationError(AnalyzerError):
    """A required input or piece of environment context is missing or invalid."""

    def __init__(self, message: str, setting: str | None = None):
        super().__init__(message=message, extra_info={"setting": setting})


class FetchError(AnalyzerError):
    """The content of a single file could not be fetched or decoded."""

    def __init__(self, path: str, reason: str | None = None):
        self.path: str = path
        super().__init__(message="Failed to fetch file content.", extra_info={"path": path, "reason": reason})


class EmptyContextError(AnalyzerError):
    """No files survived filtering, there is nothing to send to the agent."""

    def __init__(self, ignored_count: int = 0):
        super().__init__(message="No files or diffs to analyze.", extra_info={"ignored_files": str(ignored_count)})


class AgentInvocationError(AnalyzerError):
    """The Bedrock agent could not be invoked."""

    def __init__(self, agent_id: str, agent_alias_id: str, session_id: str, message: str | None = None):
        super().__init__(
            message="Failed to invoke the Bedrock agent.",
            extra_info={"agent_id": agent_id, "agent_alias_id": agent_alias_id, "session_id": session_id, "message": message},
        )
