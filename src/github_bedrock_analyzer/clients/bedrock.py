import asyncio
from logging import Logger
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError
from botocore.exceptions import ClientError as BotocoreClientError
from fastmcp.utilities.logging import get_logger

from github_bedrock_analyzer.errors import AgentInvocationError, ConfigurationError
from github_bedrock_analyzer.models.session import AgentSession


def get_bedrock_agent_runtime_client() -> Any:  # pyright: ignore[reportAny]
    try:
        return boto3.client("bedrock-agent-runtime")
    except BotoCoreError as e:
        raise ConfigurationError(message=f"Unable to create a Bedrock Agent Runtime client: {e}", setting="AWS_REGION") from e


def read_completion(completion: Any) -> str:  # pyright: ignore[reportAny]
    """Join the text chunks of an `invoke_agent` completion event stream."""

    chunks: list[str] = []

    for event in completion:  # pyright: ignore[reportAny]
        if chunk := event.get("chunk"):  # pyright: ignore[reportAny]
            chunks.append(chunk["bytes"].decode("utf-8"))  # pyright: ignore[reportAny]

    return "".join(chunks)


class BedrockAgentClient:
    """Exchanges prompts for responses with a Bedrock agent."""

    bedrock_client: Any
    logger: Logger

    def __init__(self, bedrock_client: Any = None, logger: Logger | None = None):  # pyright: ignore[reportAny]
        self.bedrock_client = bedrock_client or get_bedrock_agent_runtime_client()
        self.logger = logger or get_logger(name=__name__)

    def _invoke_agent(self, session: AgentSession, prompt: str) -> str:
        request: dict[str, str] = {
            "agentId": session.agent_id,
            "agentAliasId": session.agent_alias_id,
            "sessionId": session.session_id,
            "inputText": prompt,
        }

        if session.memory_id:
            request["memoryId"] = session.memory_id

        response = self.bedrock_client.invoke_agent(**request)  # pyright: ignore[reportAny]

        return read_completion(response["completion"])

    async def invoke_agent(self, session: AgentSession, prompt: str) -> str:
        """Send the prompt to the agent within the session and return the full response text.

        Raises:
            AgentInvocationError: If the request or the completion stream fails.
        """

        self.logger.info(f"Invoking Bedrock agent {session.agent_id} ({session.agent_alias_id}) in session {session.session_id}")

        try:
            response: str = await asyncio.to_thread(self._invoke_agent, session, prompt)
        except (BotoCoreError, BotocoreClientError) as e:
            self.logger.exception(f"Error invoking Bedrock agent {session.agent_id} in session {session.session_id}")
            raise AgentInvocationError(
                agent_id=session.agent_id, agent_alias_id=session.agent_alias_id, session_id=session.session_id, message=str(e)
            ) from e

        self.logger.info(f"Bedrock agent responded with {len(response)} characters")

        return response
