"""
Request template builder.

The body of the outbound request is described by a template tree
(the 'body_config' of the adapter configuration): nested dicts, lists
and scalars, in which strings may contain placeholders referring to
the template variables:

    {{content}}               latest user text
    {{messages}}              the chat history (list of messages)
    {{messages[0].content}}   any path into the variables
    ${content}                legacy syntax, same meaning

A string consisting of exactly one placeholder is replaced by the
value it refers to, keeping its type (a list stays a list, a number a
number). A placeholder inside a longer string is replaced by its text
form: strings verbatim, null or missing values as the empty string,
anything else as compact JSON.

Placeholders referring to unknown variables resolve to None rather
than failing the build, so that a misconfigured optional field
degrades gracefully. Configurations can be checked ahead of time with
find_placeholders().

Example:
    ```python
    template = {
        'model': "gpt-4o",
        'messages': "{{messages}}",
        'metadata': {'sent': "at {{time}}"},
    }
    variables = TemplateVariables(content="hi")
    body = build_body(template, variables)
    # {'model': "gpt-4o",
    #  'messages': [{'role': "user", 'content': "hi"}],
    #  'metadata': {'sent': "at 2024-...Z"}}
    ```
"""

import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import PathSyntaxError
from .paths import ABSENT, get_path

# Set up default logger
from madapt.utils.logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)

# {{ path }} or ${ path }
_PLACEHOLDER_RE = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}|\$\{\s*([^{}]+?)\s*\}")


def _utc_now() -> str:
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec='milliseconds')
        .replace('+00:00', 'Z')
    )


class TemplateVariables(BaseModel):
    """
    The values available to placeholders.

    Attributes:
        messages: the chat history as a list of messages (already
            reshaped by the message format, if one is configured)
        content: the latest user text
        conversation_id: the conversation identifier
        time: ISO-8601 instant of the request
        user: opaque identifier of the user
    """

    messages: list[Any] = Field(default_factory=list)
    content: str = ""
    conversation_id: str = Field(
        default_factory=lambda: str(uuid.uuid4())
    )
    time: str = Field(default_factory=_utc_now)
    user: str = ""

    model_config = ConfigDict(frozen=True, extra='forbid')

    @model_validator(mode='before')
    @classmethod
    def default_messages(cls, data: Any) -> Any:
        # without history, the request carries the latest user turn
        if isinstance(data, dict) and not data.get('messages'):
            data = dict(data)
            data['messages'] = [
                {'role': "user", 'content': data.get('content', "")}
            ]
        return data


def _placeholder_path(match: re.Match[str]) -> str:
    return match.group(1) or match.group(2)


def _lookup(
    variables: dict[str, Any], path: str, logger: LoggerBase
) -> Any:
    try:
        value = get_path(variables, path)
    except PathSyntaxError:
        logger.info(f"Invalid placeholder '{path}' resolved to null")
        return None
    if value is ABSENT:
        logger.info(f"Unknown placeholder '{path}' resolved to null")
        return None
    return value


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(',', ':'))


def _resolve_string(
    text: str, variables: dict[str, Any], logger: LoggerBase
) -> Any:
    exact = _PLACEHOLDER_RE.fullmatch(text)
    if exact is not None:
        return _lookup(variables, _placeholder_path(exact), logger)

    return _PLACEHOLDER_RE.sub(
        lambda m: _to_text(
            _lookup(variables, _placeholder_path(m), logger)
        ),
        text,
    )


def build_body(
    template: Any,
    variables: TemplateVariables | dict[str, Any],
    *,
    logger: LoggerBase = logger,
) -> Any:
    """
    Build a concrete request body from a template tree.

    Args:
        template: the template tree. It is not modified.
        variables: the template variables
        logger: receives a message for every unresolved placeholder

    Returns:
        a new tree of the same shape, with placeholders substituted.
    """
    values: dict[str, Any] = (
        variables.model_dump()
        if isinstance(variables, TemplateVariables)
        else dict(variables)
    )

    def walk(node: Any) -> Any:
        match node:
            case dict():
                return {key: walk(value) for key, value in node.items()}
            case list() | tuple():
                return [walk(value) for value in node]
            case str():
                return _resolve_string(node, values, logger)
            case _:
                return node

    return walk(template)


def find_placeholders(template: Any) -> list[str]:
    """List the placeholder paths used in a template, in order of
    appearance and without repetitions."""
    found: list[str] = []

    def walk(node: Any) -> None:
        match node:
            case dict():
                for value in node.values():
                    walk(value)
            case list() | tuple():
                for value in node:
                    walk(value)
            case str():
                for match in _PLACEHOLDER_RE.finditer(node):
                    path = _placeholder_path(match)
                    if path not in found:
                        found.append(path)
            case _:
                pass

    walk(template)
    return found
