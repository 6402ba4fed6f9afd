"""
Adapter of endpoints answering with a single JSON body.
"""

import asyncio
import uuid
from collections.abc import AsyncIterator, Sequence

import httpx

from madapt.engine.errors import UpstreamError
from madapt.engine.response import ExtractedResponse, extract_response
from madapt.schema.adapter_config import WebhookStreamConfig
from madapt.schema.events import CanonicalUIEvent, Finish, TextDelta
from madapt.schema.messages import MessageLike

from .base import BaseModelAdapter


class WebhookAdapter(BaseModelAdapter):
    """Sends the request and extracts the answer at response_path,
    falling back to the 'response' field or the whole body."""

    async def acomplete(
        self,
        messages: Sequence[MessageLike],
        *,
        conversation_id: str | None = None,
        user: str = "",
    ) -> ExtractedResponse:
        request = self.build_request(
            messages, conversation_id=conversation_id, user=user
        )
        async with self._client() as client:
            try:
                response = await client.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    json=request.body,
                )
            except httpx.RequestError as e:
                self.logger.error(
                    f"Request to {request.url} failed: {e}"
                )
                raise UpstreamError(None, str(e)) from e

        if not response.is_success:
            self.logger.error(
                f"Request to {request.url} returned "
                f"{response.status_code}"
            )
            raise UpstreamError(response.status_code, response.text)

        return extract_response(
            response.text, self.config.response_path, logger=self.logger
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
        The answer as text deltas, then the finish event.

        The answer is one delta, unless the stream_config of the
        model asks for simulated streaming: then each word is a delta
        (the separating space kept at the end of the word), and the
        deltas are spaced by simulate_delay milliseconds. Nothing more
        is emitted once abort is set.
        """
        answer = await self.acomplete(
            messages, conversation_id=conversation_id, user=user
        )
        if abort is not None and abort.is_set():
            return

        text_id = uuid.uuid4().hex
        simulate = self.config.stream_config
        if isinstance(simulate, WebhookStreamConfig) and (
            simulate.simulate_stream
        ):
            words = answer.text.split(' ') if answer.text else []
            for index, word in enumerate(words):
                if index > 0:
                    await asyncio.sleep(simulate.simulate_delay / 1000)
                    if abort is not None and abort.is_set():
                        return
                last = index == len(words) - 1
                delta = word if last else word + ' '
                if delta:
                    yield TextDelta(id=text_id, delta=delta)
        elif answer.text:
            yield TextDelta(id=text_id, delta=answer.text)
        yield Finish(finishReason="stop")
