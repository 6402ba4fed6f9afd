# pyright: reportUnusedImport=false
# flake8: noqa

from .adapter_config import (
    ModelAdapterConfig,
    MessageFormatConfig,
    FieldMapping,
    RoleMapping,
    CustomField,
    SSEStreamConfig,
    WebhookStreamConfig,
    EventMapping,
)
from .events import (
    CanonicalUIEvent,
    TextDelta,
    ToolInvocation,
    ToolResult,
    Finish,
    Error,
    encode_ui_event,
)
from .messages import ChatMessage, MessageLike
