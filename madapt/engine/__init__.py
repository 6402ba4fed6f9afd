# pyright: reportUnusedImport=false
# flake8: noqa

from .errors import (
    AdapterError,
    ConfigValidationError,
    PathSyntaxError,
    PathWriteError,
    UpstreamError,
    FrameParseError,
)
from .paths import ABSENT, get_path, set_path, parse_path, is_valid_path
from .template import TemplateVariables, build_body, find_placeholders
from .message_format import (
    transform_messages,
    validate_message_format,
    sample_transformed_message,
)
from .response import ExtractedResponse, ExtractionSource, extract_response
from .sse import SSEFrame, FrameBuffer
from .event_mapper import (
    StreamEventMapper,
    MappingSession,
    StreamState,
    is_valid_event_mapping,
)
from .validation import validate_adapter_config, ensure_valid_config
