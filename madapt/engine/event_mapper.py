"""
Stream event mapper.

Re-interprets the Server-Sent-Events stream of an arbitrary provider
as the canonical UI events of the chat front end, following the
event mappings of an SSEStreamConfig.

Each frame goes through these steps:

    1. a frame whose data equals the done signal ends the stream
       (state DONE) with a Finish event
    2. the event type of the frame is read at event_type_path in the
       JSON data, if configured, or from the 'event:' line, and
       defaults to 'message'
    3. an event type equal to the done signal also ends the stream
    4. a non-empty value at error_path, if configured, ends the stream
       (state ERROR) with an Error event
    5. the first mapping with the frame's event type and a true 'when'
       condition is selected; frames without a mapping are skipped as
       unmapped
    6. the fields of the canonical event are read at the paths of the
       mapping's field_mappings

A frame that cannot be parsed is dropped and reported, and the stream
continues. No frame is looked at after the stream ended.

Example:
    ```python
    config = SSEStreamConfig.model_validate({
        'event_mappings': [{
            'source_event_type': "message_delta",
            'target_ui_event': "text-delta",
            'field_mappings': {'delta': "delta.content"},
        }]
    })
    mapper = StreamEventMapper(config)
    async for event in mapper.amap(response.aiter_bytes()):
        ...
    ```

The mapper only holds the configuration and may be shared by
concurrent streams. The state of one stream lives in a MappingSession.
"""

import asyncio
import json
import re
import uuid
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from madapt.schema.adapter_config import (
    DEFAULT_EVENT_TYPE,
    EventMapping,
    SSEStreamConfig,
    TargetUIEvent,
)
from madapt.schema.events import (
    CanonicalUIEvent,
    Error,
    Finish,
    TextDelta,
    ToolInvocation,
    ToolResult,
)

from .errors import (
    ConfigValidationError,
    FrameParseError,
    PathSyntaxError,
)
from .paths import ABSENT, get_path, is_valid_path
from .sse import FrameBuffer, SSEFrame

# Set up default logger
from madapt.utils.logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)


REQUIRED_FIELDS: dict[TargetUIEvent, tuple[str, ...]] = {
    'text-delta': ('delta',),
    'tool-invocation': ('toolCallId', 'toolName', 'args'),
    'tool-result': ('toolCallId', 'result'),
    'finish': (),
    'error': ('error',),
}


# conditions --------------------------------------------------------

_CONDITION_RE = re.compile(
    r"""^\s*(?P<path>[^=!\s]+)\s*(?P<op>==|!=)\s*
        (?P<literal>'[^']*'|"[^"]*"|null|true|false|-?\d+(?:\.\d+)?)
        \s*$""",
    re.VERBOSE,
)


class Condition(BaseModel):
    """A parsed 'when' expression: path == literal, or path !=
    literal."""

    path: str
    operator: Literal['==', '!=']
    value: Any

    model_config = ConfigDict(frozen=True)

    def evaluate(self, data: Any) -> bool:
        actual = get_path(data, self.path)
        if actual is ABSENT:
            actual = None
        equal = _literal_equal(actual, self.value)
        return equal if self.operator == '==' else not equal


def _literal_equal(actual: Any, expected: Any) -> bool:
    # true is not 1, and "1" is not 1
    if isinstance(actual, bool) or isinstance(expected, bool):
        return actual is expected
    if isinstance(expected, int | float):
        return (
            isinstance(actual, int | float) and actual == expected
        )
    return actual == expected


def parse_condition(expression: str) -> Condition:
    """
    Parse a 'when' expression. The literal is a quoted string, null,
    true, false or a number.

    Raises:
        ConfigValidationError: if the expression is not of the form
            '<path> == <literal>' or '<path> != <literal>'.
    """
    match = _CONDITION_RE.match(expression)
    if match is None:
        raise ConfigValidationError(
            f"Invalid condition: '{expression}'. Expected "
            + "<path> == <literal> or <path> != <literal>"
        )
    path = match.group('path')
    if not is_valid_path(path):
        raise PathSyntaxError(f"Invalid path in condition: '{expression}'")
    literal = match.group('literal')
    if literal[0] in "'\"":
        value: Any = literal[1:-1]
    else:
        value = json.loads(literal)
    return Condition(path=path, operator=match.group('op'), value=value)


# validation --------------------------------------------------------


def event_mapping_issues(mapping: EventMapping) -> list[str]:
    """The problems that make an event mapping unusable."""
    label = f"{mapping.source_event_type or '?'} -> {mapping.target_ui_event}"
    issues: list[str] = []
    if not mapping.source_event_type.strip():
        issues.append(f"Event mapping {label}: empty source_event_type")
    for key in REQUIRED_FIELDS[mapping.target_ui_event]:
        if key not in mapping.field_mappings:
            issues.append(
                f"Event mapping {label}: missing required field "
                f"mapping '{key}'"
            )
    for key, path in mapping.field_mappings.items():
        if not is_valid_path(path):
            issues.append(
                f"Event mapping {label}: invalid path '{path}' for "
                f"field '{key}'"
            )
    if mapping.when is not None:
        try:
            parse_condition(mapping.when)
        except ConfigValidationError as e:
            issues.append(f"Event mapping {label}: {e}")
    return issues


def is_valid_event_mapping(mapping: EventMapping) -> bool:
    return not event_mapping_issues(mapping)


def stream_config_issues(config: SSEStreamConfig) -> list[str]:
    issues: list[str] = []
    if not config.done_signal:
        issues.append("Empty done_signal")
    for name in ('error_path', 'event_type_path'):
        path = getattr(config, name)
        if path is not None and not is_valid_path(path):
            issues.append(f"Invalid {name}: '{path}'")
    for mapping in config.event_mappings:
        issues.extend(event_mapping_issues(mapping))
    return issues


def is_valid_stream_config(config: SSEStreamConfig) -> bool:
    return not stream_config_issues(config)


# event assembly ----------------------------------------------------


def _has_required_fields(mapping: EventMapping) -> bool:
    return all(
        key in mapping.field_mappings
        for key in REQUIRED_FIELDS[mapping.target_ui_event]
    )


def _field(data: Any, mapping: EventMapping, key: str) -> Any:
    path = mapping.field_mappings.get(key)
    if path is None:
        return ABSENT
    return get_path(data, path)


def _parse_args(raw: Any) -> Any:
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw
    return {} if raw is ABSENT or raw is None else raw


def assemble_event(
    mapping: EventMapping, data: Any, text_id: str
) -> CanonicalUIEvent | None:
    """
    Build the canonical event of a matched mapping.

    Returns:
        the event, or None if the mapping lacks a required field or
        the values found in data cannot make up the event.
    """
    if not _has_required_fields(mapping):
        return None

    match mapping.target_ui_event:
        case 'text-delta':
            delta = _field(data, mapping, 'delta')
            if isinstance(delta, str) and delta:
                return TextDelta(id=text_id, delta=delta)
            return None
        case 'tool-invocation':
            call_id = _field(data, mapping, 'toolCallId')
            name = _field(data, mapping, 'toolName')
            if isinstance(call_id, str) and isinstance(name, str):
                return ToolInvocation(
                    toolCallId=call_id,
                    toolName=name,
                    args=_parse_args(_field(data, mapping, 'args')),
                )
            return None
        case 'tool-result':
            call_id = _field(data, mapping, 'toolCallId')
            result = _field(data, mapping, 'result')
            if isinstance(call_id, str):
                return ToolResult(
                    toolCallId=call_id,
                    result=None if result is ABSENT else result,
                )
            return None
        case 'finish':
            reason = _field(data, mapping, 'finishReason')
            return Finish(
                finishReason=str(reason) if reason else "stop"
            )
        case 'error':
            error = _field(data, mapping, 'error')
            if error:
                return Error(error=_error_text(error))
            return None


def _is_empty_delta(mapping: EventMapping, data: Any) -> bool:
    return mapping.target_ui_event == 'text-delta' and _field(
        data, mapping, 'delta'
    ) in (ABSENT, None, "")


def _error_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


# state machine -----------------------------------------------------


class StreamState(Enum):
    STREAMING = 'streaming'
    DONE = 'done'
    ERROR = 'error'


@dataclass
class SessionStats:
    """Counters of a mapping session, for diagnostics."""

    frames: int = 0
    emitted: int = 0
    unmapped: int = 0
    empty: int = 0
    dropped: int = 0


class MappingSession:
    """
    The state of one stream: the state machine, the frame buffer and
    the diagnostics counters. Created by StreamEventMapper.session().
    """

    def __init__(
        self,
        mapper: 'StreamEventMapper',
        text_id: str | None = None,
    ) -> None:
        self.mapper = mapper
        self.config = mapper.config
        self.logger = mapper.logger
        self.text_id = text_id or uuid.uuid4().hex
        self.state = StreamState.STREAMING
        self.stats = SessionStats()
        self.buffer = FrameBuffer(mapper.max_buffer_chars)
        self._finished = False

    @property
    def active(self) -> bool:
        return self.state == StreamState.STREAMING

    def _drop(self, frame: SSEFrame, reason: str) -> list[CanonicalUIEvent]:
        self.stats.dropped += 1
        self.logger.warning(
            f"Dropped frame (event: {frame.event or '-'}): {reason}"
        )
        return []

    def _finish(self, reason: str | None = "stop") -> list[CanonicalUIEvent]:
        self.state = StreamState.DONE
        self.buffer.clear()
        if self._finished:
            return []
        self._finished = True
        self.stats.emitted += 1
        return [Finish(finishReason=reason)]

    def _emit(self, event: CanonicalUIEvent) -> list[CanonicalUIEvent]:
        # a mapped finish or error event ends the stream as well
        match event:
            case Finish():
                return self._finish(event.finishReason)
            case Error():
                self.state = StreamState.ERROR
                self.buffer.clear()
        self.stats.emitted += 1
        return [event]

    def process_frame(self, frame: SSEFrame) -> list[CanonicalUIEvent]:
        """Run one frame through the state machine and return the
        events it produces (at most one)."""
        if not self.active:
            return []
        self.stats.frames += 1
        config = self.config

        if frame.data.strip() == config.done_signal:
            return self._finish()

        data: Any = ABSENT

        def parsed() -> Any:
            nonlocal data
            if data is ABSENT:
                try:
                    data = json.loads(frame.data)
                except json.JSONDecodeError as e:
                    raise FrameParseError(
                        f"data is not JSON ({e.msg}): {frame.data[:200]!r}"
                    ) from e
            return data

        try:
            event_type = frame.event or DEFAULT_EVENT_TYPE
            if config.event_type_path:
                extracted = get_path(parsed(), config.event_type_path)
                if isinstance(extracted, str):
                    event_type = extracted

            if event_type == config.done_signal:
                return self._finish()

            if config.error_path:
                error = get_path(parsed(), config.error_path)
                if error is not ABSENT and error not in (None, "", {}, []):
                    self.state = StreamState.ERROR
                    self.buffer.clear()
                    self.stats.emitted += 1
                    return [Error(error=_error_text(error))]

            for mapping, condition in self.mapper.rules:
                if mapping.source_event_type != event_type:
                    continue
                if condition is not None and not condition.evaluate(parsed()):
                    continue
                if not _has_required_fields(mapping):
                    continue
                if mapping.field_mappings:
                    parsed()
                event = assemble_event(mapping, data, self.text_id)
                if event is None and _is_empty_delta(mapping, data):
                    # role-only and keepalive chunks of chat APIs
                    self.stats.empty += 1
                    self.logger.info(
                        f"Empty text delta in frame of '{event_type}'"
                    )
                    return []
                if event is None:
                    return self._drop(
                        frame,
                        f"no {mapping.target_ui_event} value in data "
                        f"for mapping of '{event_type}'",
                    )
                return self._emit(event)
        except FrameParseError as e:
            return self._drop(frame, str(e))

        self.stats.unmapped += 1
        self.logger.info(f"Unmapped frame with event type '{event_type}'")
        return []

    def feed(self, chunk: bytes | str) -> Iterator[CanonicalUIEvent]:
        """Parse a chunk of the stream and yield the events of the
        frames it completes."""
        if not self.active:
            return
        try:
            for frame in self.buffer.feed(chunk):
                yield from self.process_frame(frame)
                if not self.active:
                    return
        except FrameParseError as e:
            self.stats.dropped += 1
            self.logger.warning(str(e))

    def end(self) -> list[CanonicalUIEvent]:
        """End of the byte stream: process the trailing frame, and
        finish the stream if it is still open."""
        if not self.active:
            return []
        events: list[CanonicalUIEvent] = []
        frame = self.buffer.flush()
        if frame is not None:
            events.extend(self.process_frame(frame))
        if self.active:
            if self.mapper.finish_on_eof:
                events.extend(self._finish())
            else:
                self.state = StreamState.DONE
                self.buffer.clear()
        return events

    def abort(self) -> None:
        """Cancellation: behave as if the done signal was received,
        without emitting events."""
        if self.active:
            self.logger.info("Stream aborted")
            self.state = StreamState.DONE
        self.buffer.clear()


# results of _next_chunk other than a chunk
_END = object()
_ABORTED = object()


async def _read(iterator: AsyncIterator[bytes | str]) -> Any:
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return _END


async def _next_chunk(
    iterator: AsyncIterator[bytes | str], abort: asyncio.Event | None
) -> Any:
    """Read the next chunk, or give up the pending read as soon as the
    abort event is set."""
    if abort is None:
        return await _read(iterator)
    if abort.is_set():
        return _ABORTED

    read = asyncio.ensure_future(_read(iterator))
    stop = asyncio.ensure_future(abort.wait())
    try:
        await asyncio.wait(
            {read, stop}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        stop.cancel()
        if not read.done():
            read.cancel()
            await asyncio.wait({read})
    if read.cancelled():
        return _ABORTED
    return read.result()


class StreamEventMapper:
    """
    Maps SSE byte streams to canonical UI events.

    Args:
        config: the stream configuration. It is validated here, and
            an invalid configuration is refused.
        logger: receives the diagnostics of unmapped and dropped frames
        max_buffer_chars: limit of a pending partial frame (0: none)
        finish_on_eof: emit a Finish event when the byte stream ends
            without a done signal

    Raises:
        ConfigValidationError: if the configuration is invalid.
    """

    def __init__(
        self,
        config: SSEStreamConfig,
        *,
        logger: LoggerBase = logger,
        max_buffer_chars: int = 1_000_000,
        finish_on_eof: bool = True,
    ) -> None:
        issues = stream_config_issues(config)
        if issues:
            raise ConfigValidationError(
                "Invalid stream configuration", issues
            )
        self.config = config
        self.logger = logger
        self.max_buffer_chars = max_buffer_chars
        self.finish_on_eof = finish_on_eof
        self.rules: list[tuple[EventMapping, Condition | None]] = [
            (
                mapping,
                parse_condition(mapping.when)
                if mapping.when is not None
                else None,
            )
            for mapping in config.event_mappings
        ]

    def session(self, text_id: str | None = None) -> MappingSession:
        return MappingSession(self, text_id)

    def map(
        self, chunks: Iterable[bytes | str], *, text_id: str | None = None
    ) -> Iterator[CanonicalUIEvent]:
        """Map a synchronous stream of chunks."""
        session = self.session(text_id)
        try:
            for chunk in chunks:
                yield from session.feed(chunk)
                if not session.active:
                    return
            yield from session.end()
        finally:
            session.abort()

    async def amap(
        self,
        chunks: AsyncIterable[bytes | str],
        *,
        text_id: str | None = None,
        abort: asyncio.Event | None = None,
    ) -> AsyncIterator[CanonicalUIEvent]:
        """
        Map an asynchronous stream of chunks.

        The next chunk is only read when the consumer asks for the
        next event, and reading stops at the end of the stream, at
        the done signal, at an error, when the abort event is set, or
        when the consumer closes the generator. A read still waiting
        for the upstream is cancelled when the abort event is set.
        """
        session = self.session(text_id)
        iterator = aiter(chunks)
        try:
            while True:
                chunk = await _next_chunk(iterator, abort)
                if chunk is _ABORTED or (
                    abort is not None and abort.is_set()
                ):
                    return
                if chunk is _END:
                    break
                for event in session.feed(chunk):
                    yield event
                    if abort is not None and abort.is_set():
                        return
                if not session.active:
                    return
            for event in session.end():
                yield event
        finally:
            session.abort()
