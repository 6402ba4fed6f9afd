"""
Extraction of the answer from a non-streaming (webhook) response.

Third-party endpoints are not under the control of the platform, so
extraction favours always returning something displayable over strict
conformance to the configuration:

    1. the value at response_path, if configured and found
    2. the 'response' field of a JSON object body
    3. the whole JSON body, serialized
    4. the raw body text, if it is not JSON at all

(The 'stream' source marks answers collected from a stream.)

Whether the configured path was found is reported separately, so that
a path that is missing can be told apart from one holding an empty
string.
"""

import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from .paths import ABSENT, get_path

# Set up default logger
from madapt.utils.logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)


class ExtractionSource(StrEnum):
    PATH = 'path'
    RESPONSE_FIELD = 'response_field'
    BODY = 'body'
    RAW = 'raw'
    STREAM = 'stream'


class ExtractedResponse(BaseModel):
    """
    The answer extracted from a response.

    Attributes:
        text: the user-visible answer
        source: which rule produced the text
        found: whether the configured response_path was found. None
            if no path is configured or the body is not JSON.
    """

    text: str
    source: ExtractionSource
    found: bool | None = None

    model_config = ConfigDict(frozen=True)


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def parse_response_body(body_text: str) -> Any:
    """Parse a response body as JSON, or return ABSENT."""
    try:
        return json.loads(body_text)
    except (json.JSONDecodeError, TypeError):
        return ABSENT


def extract_from_body(
    body: Any,
    response_path: str | None = None,
    *,
    logger: LoggerBase = logger,
) -> ExtractedResponse:
    """Extract the answer from an already parsed JSON body."""
    found: bool | None = None
    path = (response_path or "").strip()
    if path.startswith('.'):
        path = path[1:]

    if path and isinstance(body, dict | list):
        value = get_path(body, path)
        # a null at the path is no answer either
        found = value is not ABSENT and value is not None
        if found:
            return ExtractedResponse(
                text=_to_text(value),
                source=ExtractionSource.PATH,
                found=True,
            )
        logger.warning(
            f"Response path '{path}' not found; using fallback"
        )

    if isinstance(body, dict) and body.get('response') is not None:
        return ExtractedResponse(
            text=_to_text(body['response']),
            source=ExtractionSource.RESPONSE_FIELD,
            found=found,
        )

    return ExtractedResponse(
        text=_to_text(body), source=ExtractionSource.BODY, found=found
    )


def extract_response(
    body_text: str,
    response_path: str | None = None,
    *,
    logger: LoggerBase = logger,
) -> ExtractedResponse:
    """
    Extract the answer from the text of a response.

    Args:
        body_text: the raw response body
        response_path: path of the answer in the JSON body
        logger: receives a warning when the path is not found

    Returns:
        the extracted answer.

    Raises:
        PathSyntaxError: if response_path is malformed
    """
    body = parse_response_body(body_text)
    if body is ABSENT:
        return ExtractedResponse(
            text=body_text, source=ExtractionSource.RAW
        )
    return extract_from_body(body, response_path, logger=logger)
