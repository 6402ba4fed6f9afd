"""
Configuration of a model adapter.

A ModelAdapterConfig is the declarative description, authored by an
operator, of how to talk to one third-party endpoint: where to send
the request, how to build its body, how to reshape the chat messages,
and how to interpret the response (a single JSON body for 'webhook'
endpoints, a Server-Sent-Events stream for 'stream' endpoints).

The models check types and the closed sets of admissible values
(field sources, transforms, UI events, methods, endpoint types). The
semantic rules that an operator may get wrong while editing (empty
target paths, literal mappings without value, event mappings missing
required fields) are not enforced at construction: they are checked
by the validators in madapt.engine.validation, so that a draft
configuration can be loaded, reported on, and fixed. The engine
refuses to run a configuration that fails these checks.

Field names follow the exchanged document. Where the document uses
camelCase (literalValue, roleMapping, customFields) or a reserved
word (from), the attribute is snake_case and the document name is the
alias. Use `to_document()` to obtain the document form.

Example of a stream configuration as YAML:

    ```yaml
    name: Claude
    endpoint: https://api.anthropic.com/v1/messages
    method: POST
    headers:
      x-api-key: ...
    endpoint_type: stream
    body_config:
      model: claude-sonnet-4
      stream: true
      messages: '{{messages}}'
    stream_config:
      event_type_path: type
      event_mappings:
      - source_event_type: content_block_delta
        target_ui_event: text-delta
        field_mappings:
          delta: delta.text
      - source_event_type: message_stop
        target_ui_event: finish
        field_mappings: {}
    ```
"""

from typing import Any, Literal, Self
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

# Closed sets of admissible values. These are matched exhaustively
# in the engine.
FieldSource = Literal['role', 'content', 'created_at', 'id', 'literal']
TransformKind = Literal['timestamp', 'none']
CustomFieldType = Literal['string', 'object', 'array']
TargetUIEvent = Literal[
    'text-delta', 'tool-invocation', 'tool-result', 'finish', 'error'
]
HttpMethod = Literal['GET', 'POST', 'PUT', 'DELETE']
EndpointType = Literal['webhook', 'stream']

DEFAULT_DONE_SIGNAL = "[DONE]"
DEFAULT_EVENT_TYPE = "message"
DEFAULT_SIMULATE_DELAY = 20  # milliseconds

_frozen = ConfigDict(
    frozen=True, extra='forbid', populate_by_name=True
)


class RoleMapping(BaseModel):
    """Rewrite of one internal role into the provider vocabulary."""

    from_: str = Field(alias='from')
    to: str

    model_config = _frozen


class FieldMapping(BaseModel):
    """Where a field of the transformed message comes from, and
    where it goes."""

    source: FieldSource
    target: str
    literal_value: str | None = Field(
        default=None, alias='literalValue'
    )
    transform: TransformKind | None = None
    role_mapping: list[RoleMapping] | None = Field(
        default=None, alias='roleMapping'
    )

    model_config = _frozen


class CustomField(BaseModel):
    """A constant field added to every transformed message."""

    name: str
    value: Any
    type: CustomFieldType = 'string'

    model_config = _frozen


class MessageFormatConfig(BaseModel):
    mapping: dict[str, FieldMapping] = Field(default_factory=dict)
    custom_fields: list[CustomField] | None = Field(
        default=None, alias='customFields'
    )

    model_config = _frozen


class EventMapping(BaseModel):
    """Rule turning one kind of upstream SSE frame into a canonical
    UI event."""

    source_event_type: str
    target_ui_event: TargetUIEvent
    when: str | None = None
    field_mappings: dict[str, str] = Field(default_factory=dict)

    model_config = _frozen


class SSEStreamConfig(BaseModel):
    event_mappings: list[EventMapping] = Field(default_factory=list)
    done_signal: str = DEFAULT_DONE_SIGNAL
    error_path: str | None = None
    event_type_path: str | None = None

    model_config = _frozen

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_format(cls, data: Any) -> Any:
        """Documents of the form {contentPath, doneSignal, errorPath}
        describe a stream of untyped data frames carrying the text
        delta at contentPath."""
        if not isinstance(data, dict):
            return data
        legacy_keys = {'contentPath', 'doneSignal', 'errorPath'}
        if not legacy_keys & set(data.keys()):
            return data
        if 'event_mappings' in data:
            raise ValueError(
                "Stream configuration mixes event_mappings with the "
                + "legacy contentPath/doneSignal/errorPath keys"
            )
        converted: dict[str, Any] = {
            key: value
            for key, value in data.items()
            if key not in legacy_keys
        }
        converted['event_mappings'] = [
            {
                'source_event_type': DEFAULT_EVENT_TYPE,
                'target_ui_event': 'text-delta',
                'field_mappings': {
                    'delta': data.get(
                        'contentPath', 'choices[0].delta.content'
                    )
                },
            }
        ]
        if data.get('doneSignal'):
            converted['done_signal'] = data['doneSignal']
        if data.get('errorPath'):
            converted['error_path'] = data['errorPath']
        return converted


class WebhookStreamConfig(BaseModel):
    """Delivery of a webhook answer to the chat front end: at once,
    or word by word with simulate_delay milliseconds between words."""

    simulate_stream: bool = Field(default=False, alias='simulateStream')
    simulate_delay: int = Field(
        default=DEFAULT_SIMULATE_DELAY, ge=0, alias='simulateDelay'
    )

    model_config = _frozen


class ModelAdapterConfig(BaseModel):
    """
    The full per-model configuration.

    Attributes:
        name: display name of the model
        model_id: identifier of the model in the platform
        description: free text
        endpoint: absolute http(s) URL of the upstream endpoint
        method: HTTP method of the outbound call
        headers: HTTP headers of the outbound call
        endpoint_type: 'webhook' (single JSON response) or 'stream'
            (Server-Sent-Events response)
        body_config: template of the request body
        response_path: path of the answer in a webhook response
        message_format: reshaping of the chat messages
        stream_config: interpretation of the SSE stream (required
            for stream endpoints), or the word-by-word delivery of
            a webhook answer
        suggestion_prompts: prompts offered by the chat front end
        api_key: optional key kept with the exported document
    """

    name: str | None = None
    model_id: str | None = None
    description: str | None = None
    endpoint: str
    method: HttpMethod = 'POST'
    headers: dict[str, str] = Field(default_factory=dict)
    endpoint_type: EndpointType = 'webhook'
    body_config: dict[str, Any] = Field(default_factory=dict)
    response_path: str | None = None
    message_format: MessageFormatConfig | None = None
    stream_config: SSEStreamConfig | WebhookStreamConfig | None = None
    suggestion_prompts: list[str] | None = None
    api_key: str | None = None

    model_config = _frozen

    @model_validator(mode='before')
    @classmethod
    def normalize_legacy_fields(cls, data: Any) -> Any:
        """Older documents name the body template 'request_schema'
        and the stream type 'sse'."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        request_schema = data.pop('request_schema', None)
        if request_schema is not None and not data.get('body_config'):
            data['body_config'] = request_schema
        if data.get('endpoint_type') == 'sse':
            data['endpoint_type'] = 'stream'
        return data

    @field_validator('endpoint', mode='after')
    @classmethod
    def validate_endpoint(cls, endpoint: str) -> str:
        cleaned = endpoint.strip()
        parsed = urlparse(cleaned)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError(
                f"Endpoint must be an absolute http(s) URL: '{endpoint}'"
            )
        return cleaned

    @field_validator('method', mode='before')
    @classmethod
    def upper_method(cls, method: Any) -> Any:
        return method.upper() if isinstance(method, str) else method

    @model_validator(mode='after')
    def validate_endpoint_type(self) -> Self:
        if self.endpoint_type == 'stream' and not isinstance(
            self.stream_config, SSEStreamConfig
        ):
            raise ValueError(
                "A stream endpoint requires a stream_config with "
                "event mappings"
            )
        return self

    def to_document(self) -> dict[str, Any]:
        """The configuration as an exchangeable document: document
        field names, and only the fields that were given when the
        configuration was created."""
        return self.model_dump(
            mode='json', by_alias=True, exclude_unset=True
        )
