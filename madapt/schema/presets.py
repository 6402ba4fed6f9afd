"""
Library of stream and message format presets for common providers.

Presets are built the first time they are requested, and the same
(frozen) object is returned afterwards.

Example:
    ```python
    from madapt.schema.presets import stream_presets

    config = ModelAdapterConfig(
        endpoint="https://api.openai.com/v1/chat/completions",
        endpoint_type='stream',
        body_config={'model': "gpt-4o", 'stream': True,
                     'messages': "{{messages}}"},
        stream_config=stream_presets['openai'],
    )
    ```
"""

from typing import Literal

from madapt.utils.lazy_dict import LazyLoadingDict

from .adapter_config import MessageFormatConfig, SSEStreamConfig

StreamPresetName = Literal[
    'openai', 'openai-assistants', 'anthropic', 'generic'
]
MessageFormatPresetName = Literal['openai', 'anthropic']


def _create_stream_preset(name: StreamPresetName) -> SSEStreamConfig:
    match name:
        case 'openai' | 'generic':
            # untyped data frames, terminated by data: [DONE]
            return SSEStreamConfig.model_validate(
                {
                    'event_mappings': [
                        {
                            'source_event_type': "message",
                            'target_ui_event': "finish",
                            'when': "choices[0].finish_reason != null",
                            'field_mappings': {
                                'finishReason': "choices[0].finish_reason"
                            },
                        },
                        {
                            'source_event_type': "message",
                            'target_ui_event': "text-delta",
                            'field_mappings': {
                                'delta': "choices[0].delta.content"
                            },
                        },
                    ],
                    'done_signal': "[DONE]",
                }
            )
        case 'openai-assistants':
            return SSEStreamConfig.model_validate(
                {
                    'event_mappings': [
                        {
                            'source_event_type': "thread.message.delta",
                            'target_ui_event': "text-delta",
                            'field_mappings': {
                                'delta': "delta.content[0].text.value"
                            },
                        },
                        {
                            'source_event_type': "thread.run.step.delta",
                            'target_ui_event': "tool-invocation",
                            'when': "delta.step_details.type == 'tool_calls'",
                            'field_mappings': {
                                'toolCallId': "delta.step_details."
                                + "tool_calls[0].id",
                                'toolName': "delta.step_details."
                                + "tool_calls[0].function.name",
                                'args': "delta.step_details."
                                + "tool_calls[0].function.arguments",
                            },
                        },
                        {
                            'source_event_type': "thread.run.completed",
                            'target_ui_event': "finish",
                        },
                    ],
                    'done_signal': "[DONE]",
                }
            )
        case 'anthropic':
            # the frame type is in the payload; message_stop ends it
            return SSEStreamConfig.model_validate(
                {
                    'event_mappings': [
                        {
                            'source_event_type': "content_block_delta",
                            'target_ui_event': "text-delta",
                            'field_mappings': {'delta': "delta.text"},
                        },
                    ],
                    'done_signal': "message_stop",
                    'error_path': "error.message",
                    'event_type_path': "type",
                }
            )
        case _:
            raise ValueError(f"Invalid stream preset: {name}")


def _create_message_format_preset(
    name: MessageFormatPresetName,
) -> MessageFormatConfig:
    match name:
        case 'openai':
            return MessageFormatConfig.model_validate(
                {
                    'mapping': {
                        'role': {'source': "role", 'target': "role"},
                        'content': {
                            'source': "content",
                            'target': "content",
                        },
                    }
                }
            )
        case 'anthropic':
            # the system prompt is not a message in the Messages API
            return MessageFormatConfig.model_validate(
                {
                    'mapping': {
                        'role': {
                            'source': "role",
                            'target': "role",
                            'roleMapping': [
                                {'from': "system", 'to': "user"}
                            ],
                        },
                        'content': {
                            'source': "content",
                            'target': "content",
                        },
                    }
                }
            )
        case _:
            raise ValueError(f"Invalid message format preset: {name}")


stream_presets: LazyLoadingDict[StreamPresetName, SSEStreamConfig] = (
    LazyLoadingDict(_create_stream_preset)
)
message_format_presets: LazyLoadingDict[
    MessageFormatPresetName, MessageFormatConfig
] = LazyLoadingDict(_create_message_format_preset)
