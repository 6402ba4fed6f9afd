"""
Adapter of endpoints answering with a Server-Sent-Events stream.
"""

import asyncio
from contextlib import aclosing
from collections.abc import AsyncIterator, Sequence

import httpx

from madapt.config.config import EngineSettings
from madapt.engine.errors import ConfigValidationError, UpstreamError
from madapt.engine.event_mapper import StreamEventMapper
from madapt.engine.response import ExtractedResponse, ExtractionSource
from madapt.schema.adapter_config import ModelAdapterConfig, SSEStreamConfig
from madapt.schema.events import CanonicalUIEvent, Error, TextDelta
from madapt.schema.messages import MessageLike

from .base import BaseModelAdapter

# Set up default logger
from madapt.utils.logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)


class StreamAdapter(BaseModelAdapter):
    """
    Opens a streaming request and maps the SSE frames of the response
    to canonical UI events, with the event mappings of stream_config.
    """

    def __init__(
        self,
        config: ModelAdapterConfig,
        *,
        settings: EngineSettings | None = None,
        client: httpx.AsyncClient | None = None,
        logger: LoggerBase = logger,
    ):
        super().__init__(
            config, settings=settings, client=client, logger=logger
        )
        if not isinstance(config.stream_config, SSEStreamConfig):
            raise ConfigValidationError(
                "Stream adapter requires a stream_config with event "
                "mappings"
            )
        self.mapper = StreamEventMapper(
            config.stream_config,
            logger=self.logger,
            max_buffer_chars=self.settings.stream.max_buffer_chars,
            finish_on_eof=self.settings.stream.finish_on_eof,
        )

    async def astream(
        self,
        messages: Sequence[MessageLike],
        *,
        conversation_id: str | None = None,
        user: str = "",
        abort: asyncio.Event | None = None,
    ) -> AsyncIterator[CanonicalUIEvent]:
        """
        Yield the canonical UI events of the answer.

        Raises:
            UpstreamError: if the endpoint cannot be reached or answers
                with an error status. Once the stream has started,
                failures end the stream with an Error event instead.
        """
        request = self.build_request(
            messages, conversation_id=conversation_id, user=user
        )
        started = False
        async with self._client() as client:
            try:
                async with client.stream(
                    request.method,
                    request.url,
                    headers=request.headers,
                    json=request.body,
                ) as response:
                    if not response.is_success:
                        await response.aread()
                        self.logger.error(
                            f"Stream request to {request.url} returned "
                            f"{response.status_code}"
                        )
                        raise UpstreamError(
                            response.status_code, response.text
                        )
                    started = True
                    async with aclosing(
                        self.mapper.amap(
                            response.aiter_bytes(), abort=abort
                        )
                    ) as events:
                        async for event in events:
                            yield event
            except httpx.RequestError as e:
                self.logger.error(
                    f"Stream from {request.url} failed: {e}"
                )
                if not started:
                    raise UpstreamError(None, str(e)) from e
                yield Error(error=f"Upstream stream interrupted: {e}")

    async def acomplete(
        self,
        messages: Sequence[MessageLike],
        *,
        conversation_id: str | None = None,
        user: str = "",
    ) -> ExtractedResponse:
        """
        The concatenated text deltas of the stream.

        Raises:
            UpstreamError: if the call fails, or the stream ends with
                an error.
        """
        parts: list[str] = []
        async for event in self.astream(
            messages, conversation_id=conversation_id, user=user
        ):
            match event:
                case TextDelta():
                    parts.append(event.delta)
                case Error():
                    raise UpstreamError(None, event.error)
                case _:
                    pass
        return ExtractedResponse(
            text="".join(parts), source=ExtractionSource.STREAM
        )
