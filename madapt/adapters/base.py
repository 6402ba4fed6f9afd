"""
Abstract base class for model adapters.

An adapter runs one chat turn against a third-party endpoint described
by a ModelAdapterConfig: it builds the outbound request from the
configuration and the chat history, sends it with httpx, and returns
the answer (acomplete) or the canonical UI events (astream).

Adapters hold no state across calls: the same adapter may serve
concurrent turns. Adapters never retry a failed call.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from madapt.config.config import EngineSettings
from madapt.engine.message_format import transform_messages
from madapt.engine.response import ExtractedResponse
from madapt.engine.template import TemplateVariables, build_body
from madapt.engine.validation import ensure_valid_config
from madapt.schema.adapter_config import ModelAdapterConfig
from madapt.schema.events import CanonicalUIEvent
from madapt.schema.messages import MessageLike, to_simple_message

# Set up default logger
from madapt.utils.logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)

# methods that carry no request body
BODYLESS_METHODS = ('GET', 'HEAD')


class OutboundRequest(BaseModel):
    """The HTTP request of one chat turn."""

    method: str
    url: str
    headers: dict[str, str]
    body: Any = None

    model_config = ConfigDict(frozen=True)


def latest_user_content(messages: Sequence[MessageLike]) -> str:
    """The text of the last user message of the history."""
    for message in reversed(messages):
        simple = to_simple_message(message)
        if simple['role'] == 'user':
            return str(simple['content'])
    return ""


def build_request(
    config: ModelAdapterConfig,
    variables: TemplateVariables,
    *,
    logger: LoggerBase = logger,
) -> OutboundRequest:
    """
    Build the outbound request of a chat turn.

    Args:
        config: the adapter configuration
        variables: the template variables. If the configuration has
            a message format, the messages are reshaped with it before
            they are substituted in the body.
        logger: receives the diagnostics of the template builder

    Returns:
        the request. The body is None for GET and HEAD requests.
    """
    if config.message_format is not None:
        variables = variables.model_copy(
            update={
                'messages': transform_messages(
                    variables.messages,
                    config.message_format,
                    logger=logger,
                )
            }
        )

    headers = dict(config.headers)
    if not any(key.lower() == 'content-type' for key in headers):
        headers['Content-Type'] = "application/json"

    body = None
    if config.method not in BODYLESS_METHODS:
        body = build_body(config.body_config, variables, logger=logger)

    return OutboundRequest(
        method=config.method,
        url=config.endpoint,
        headers=headers,
        body=body,
    )


class BaseModelAdapter(ABC):
    """
    Abstract base class of the adapters.

    Args:
        config: the adapter configuration
        settings: the engine settings (read from madapt.toml and the
            environment if not given)
        client: an httpx client to send the requests with. If not
            given, a client is created for each call.
        logger: receives the diagnostics of the engine

    Raises:
        ConfigValidationError: if the configuration is invalid.
    """

    def __init__(
        self,
        config: ModelAdapterConfig,
        *,
        settings: EngineSettings | None = None,
        client: httpx.AsyncClient | None = None,
        logger: LoggerBase = logger,
    ):
        ensure_valid_config(config)
        self.config = config
        self.settings = settings or EngineSettings()
        self.client = client
        self.logger = logger

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
            return
        http = self.settings.http
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(http.timeout, connect=http.connect_timeout),
            follow_redirects=http.follow_redirects,
        ) as client:
            yield client

    def variables(
        self,
        messages: Sequence[MessageLike],
        *,
        conversation_id: str | None = None,
        user: str = "",
    ) -> TemplateVariables:
        """The template variables of a chat turn."""
        values: dict[str, Any] = {
            'messages': [
                message
                if self.config.message_format is not None
                else to_simple_message(message)
                for message in messages
            ],
            'content': latest_user_content(messages),
            'user': user,
        }
        if conversation_id:
            values['conversation_id'] = conversation_id
        return TemplateVariables.model_validate(values)

    def build_request(
        self,
        messages: Sequence[MessageLike],
        *,
        conversation_id: str | None = None,
        user: str = "",
    ) -> OutboundRequest:
        variables = self.variables(
            messages, conversation_id=conversation_id, user=user
        )
        return build_request(self.config, variables, logger=self.logger)

    @abstractmethod
    async def acomplete(
        self,
        messages: Sequence[MessageLike],
        *,
        conversation_id: str | None = None,
        user: str = "",
    ) -> ExtractedResponse:
        """
        Run a chat turn and return the whole answer.

        Args:
            messages: the conversation history
            conversation_id: identifier of the conversation
            user: identifier of the user

        Raises:
            UpstreamError: if the call fails.
        """
        pass

    @abstractmethod
    def astream(
        self,
        messages: Sequence[MessageLike],
        *,
        conversation_id: str | None = None,
        user: str = "",
        abort: asyncio.Event | None = None,
    ) -> AsyncIterator[CanonicalUIEvent]:
        """
        Run a chat turn and yield the canonical UI events of the
        answer. Setting abort stops the stream.
        """
        pass

    def complete(
        self,
        messages: Sequence[MessageLike],
        *,
        conversation_id: str | None = None,
        user: str = "",
    ) -> ExtractedResponse:
        """Synchronous version of acomplete."""
        return asyncio.run(
            self.acomplete(
                messages, conversation_id=conversation_id, user=user
            )
        )
