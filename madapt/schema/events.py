"""
Canonical UI events.

Whatever the format of the upstream provider, the chat front end
receives a sequence of these five event shapes. The events are
pydantic models discriminated on the `type` field, so that a list of
plain dictionaries received from the wire can be validated back into
events with `UIEventAdapter.validate_python`.

Field names follow the wire format of the chat front end (camelCase).
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

UIEventType = Literal[
    'text-delta', 'tool-invocation', 'tool-result', 'finish', 'error'
]

FinishReason = Literal[
    'stop', 'length', 'content-filter', 'tool-calls', 'error', 'other'
]


class TextDelta(BaseModel):
    type: Literal['text-delta'] = 'text-delta'
    id: str
    delta: str

    model_config = ConfigDict(frozen=True)


class ToolInvocation(BaseModel):
    type: Literal['tool-invocation'] = 'tool-invocation'
    toolCallId: str
    toolName: str
    args: Any = None
    state: Literal['call', 'partial-call', 'result'] = 'call'

    model_config = ConfigDict(frozen=True)


class ToolResult(BaseModel):
    type: Literal['tool-result'] = 'tool-result'
    toolCallId: str
    result: Any = None

    model_config = ConfigDict(frozen=True)


class Finish(BaseModel):
    type: Literal['finish'] = 'finish'
    # providers use their own vocabulary here, so this is not
    # restricted to FinishReason
    finishReason: str | None = None

    model_config = ConfigDict(frozen=True)


class Error(BaseModel):
    type: Literal['error'] = 'error'
    error: str

    model_config = ConfigDict(frozen=True)


CanonicalUIEvent = Annotated[
    TextDelta | ToolInvocation | ToolResult | Finish | Error,
    Field(discriminator='type'),
]

UIEventAdapter: TypeAdapter[CanonicalUIEvent] = TypeAdapter(
    CanonicalUIEvent
)


def encode_ui_event(event: CanonicalUIEvent) -> str:
    """Render a canonical event as one SSE frame for the chat front
    end."""
    return f"data: {event.model_dump_json(exclude_none=True)}\n\n"
