"""
Message format transformer.

Reshapes the internal chat messages into the message schema of the
external provider, following a MessageFormatConfig. Each entry of the
mapping reads one field of the internal message (or a literal), may
transform it, and writes it at a path of the output message. Custom
fields are then added verbatim to every message.

Example:
    ```python
    config = MessageFormatConfig.model_validate({
        'mapping': {
            'role': {
                'source': "role",
                'target': "author.role",
                'roleMapping': [{'from': "assistant", 'to': "agent"}],
            },
            'content': {'source': "content", 'target': "text"},
        },
        'customFields': [
            {'name': "channel", 'value': "web", 'type': "string"}
        ],
    })
    transform_messages(
        [{'id': "1", 'role': "assistant", 'content': "hi"}], config
    )
    # [{'author': {'role': "agent"}, 'text': "hi", 'channel': "web"}]
    ```

The output depends only on the messages and the configuration.
"""

import copy
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from madapt.schema.adapter_config import (
    CustomField,
    FieldMapping,
    MessageFormatConfig,
    RoleMapping,
)
from madapt.schema.messages import ChatMessage, MessageLike

from .errors import PathSyntaxError, PathWriteError
from .paths import PathStep, is_valid_path, parse_path, set_path

# Set up default logger
from madapt.utils.logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)

# the mappings the provider needs in practice
RECOMMENDED_MAPPINGS = ('role', 'content')

# marks a message field that is not carried by the message
_MISSING = object()


def apply_role_mapping(
    role: str, role_mapping: list[RoleMapping] | None
) -> str:
    """Rewrite role with the first matching rule; unmatched roles
    pass through."""
    for rule in role_mapping or []:
        if rule.from_ == role:
            return rule.to
    return role


def normalize_timestamp(value: str) -> str:
    """Re-emit an ISO-8601 instant in canonical UTC form with
    millisecond precision. Naive instants are read as UTC.

    Raises:
        ValueError: if value is not an ISO-8601 instant.
    """
    instant = datetime.fromisoformat(value.strip())
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return (
        instant.astimezone(timezone.utc)
        .isoformat(timespec='milliseconds')
        .replace('+00:00', 'Z')
    )


def _message_field(message: MessageLike, name: str) -> Any:
    if isinstance(message, ChatMessage):
        value = getattr(message, name)
        return _MISSING if value is None else value
    if isinstance(message, Mapping):
        return message.get(name, _MISSING)
    return _MISSING


def _source_value(
    message: MessageLike,
    mapping: FieldMapping,
    logger: LoggerBase,
) -> Any:
    match mapping.source:
        case 'literal':
            return mapping.literal_value
        case 'role' | 'content' | 'created_at' | 'id':
            value = _message_field(message, mapping.source)

    if value is _MISSING:
        return value

    if mapping.transform == 'timestamp' and isinstance(value, str):
        try:
            value = normalize_timestamp(value)
        except ValueError:
            logger.warning(
                f"Cannot read '{value}' as a timestamp; kept unchanged"
            )

    if mapping.source == 'role' and isinstance(value, str):
        value = apply_role_mapping(value, mapping.role_mapping)

    return value


def transform_message(
    message: MessageLike,
    config: MessageFormatConfig,
    *,
    logger: LoggerBase = logger,
) -> dict[str, Any]:
    """Transform one message. See transform_messages."""
    transformed: dict[str, Any] = {}

    for name, mapping in config.mapping.items():
        if not is_valid_path(mapping.target):
            logger.warning(
                f"Mapping '{name}' skipped: invalid target "
                f"'{mapping.target}'"
            )
            continue
        value = _source_value(message, mapping, logger)
        if value is _MISSING:
            continue
        _write(transformed, mapping.target, value, f"Mapping '{name}'", logger)

    for field in config.custom_fields or []:
        if not is_valid_path(field.name):
            logger.warning(
                f"Custom field skipped: invalid name '{field.name}'"
            )
            continue
        # copy, so that outputs never share the configuration values
        _write(
            transformed,
            field.name,
            copy.deepcopy(field.value),
            f"Custom field '{field.name}'",
            logger,
        )

    return transformed


def _write(
    transformed: dict[str, Any],
    path: str,
    value: Any,
    label: str,
    logger: LoggerBase,
) -> None:
    try:
        set_path(transformed, path, value)
    except PathWriteError as e:
        logger.warning(f"{label} skipped: {e}")


def transform_messages(
    messages: Iterable[MessageLike],
    config: MessageFormatConfig,
    *,
    logger: LoggerBase = logger,
) -> list[dict[str, Any]]:
    """
    Reshape a list of internal messages.

    Args:
        messages: ChatMessage objects or mappings with the keys
            id, role, content, created_at
        config: the message format
        logger: receives the messages of skipped fields

    Returns:
        a list of new dictionaries, one per message.

    Fields that a message does not carry are not written to the
    output. Invalid targets are skipped here; validate_message_format
    reports them.
    """
    return [
        transform_message(message, config, logger=logger)
        for message in messages
    ]


def _custom_field_matches_type(field: CustomField) -> bool:
    match field.type:
        case 'string':
            return isinstance(field.value, str)
        case 'object':
            return isinstance(field.value, dict)
        case 'array':
            return isinstance(field.value, list)


def message_format_issues(
    config: MessageFormatConfig,
) -> tuple[list[str], list[str]]:
    """Return the errors and the warnings of a message format."""
    errors: list[str] = []
    warnings: list[str] = []

    for field in RECOMMENDED_MAPPINGS:
        if field not in config.mapping:
            warnings.append(f"Missing required mapping for field: {field}")

    for field, mapping in config.mapping.items():
        if not mapping.target.strip():
            errors.append(f"Empty target path for field: {field}")
        elif not is_valid_path(mapping.target):
            errors.append(
                f"Invalid target path '{mapping.target}' for field: "
                f"{field}"
            )
        if mapping.source == 'literal' and not mapping.literal_value:
            errors.append(
                f"Literal mapping for field '{field}' requires a "
                "literalValue"
            )

    for index, custom in enumerate(config.custom_fields or []):
        if not custom.name.strip():
            errors.append(f"Empty name for custom field #{index + 1}")
        elif not is_valid_path(custom.name):
            errors.append(f"Invalid custom field name: '{custom.name}'")
        if not _custom_field_matches_type(custom):
            warnings.append(
                f"Custom field '{custom.name}' value is not of type "
                f"{custom.type}"
            )

    errors.extend(_target_conflicts(config))
    return errors, warnings


def _target_conflicts(config: MessageFormatConfig) -> list[str]:
    """Targets that can never be written into a fresh output message:
    targets with an index step, and targets nested inside the value
    written by another target."""
    targets: list[tuple[str, list[PathStep]]] = []
    for path in [m.target for m in config.mapping.values()] + [
        c.name for c in config.custom_fields or []
    ]:
        try:
            targets.append((path, parse_path(path)))
        except PathSyntaxError:
            continue  # reported as invalid path

    conflicts: list[str] = []
    for path, steps in targets:
        if any(isinstance(step, int) for step in steps):
            conflicts.append(
                f"Target '{path}' indexes into a list, which the output "
                "message never contains"
            )
    for path, steps in targets:
        for other, other_steps in targets:
            if len(steps) < len(other_steps) and (
                other_steps[: len(steps)] == steps
            ):
                conflicts.append(
                    f"Target '{other}' is nested inside target '{path}'"
                )
    return conflicts


def validate_message_format(
    config: MessageFormatConfig,
) -> tuple[bool, list[str]]:
    """
    Check a message format without modifying it.

    Returns:
        a tuple. The first member is False if the format has errors
        (empty or invalid target, literal mapping without value,
        invalid custom field name, target nested in another target
        or indexing a list). The second is the list of all
        messages, warnings included (missing role/content mappings,
        custom field value not matching its type). Warnings do not
        make the format invalid.
    """
    errors, warnings = message_format_issues(config)
    return not errors, errors + [f"Warning: {w}" for w in warnings]


def sample_transformed_message(
    config: MessageFormatConfig,
    sample: MessageLike | None = None,
) -> dict[str, Any]:
    """Preview of the transformation of one message. Missing fields
    of the sample are filled in with placeholder values."""
    defaults: dict[str, Any] = {
        'id': "sample-id",
        'role': "user",
        'content': "Hello, this is a sample message",
        'created_at': "2024-01-01T00:00:00.000Z",
    }
    if isinstance(sample, ChatMessage):
        given = sample.model_dump(exclude_none=True)
    else:
        given = dict(sample or {})
    message = {
        key: given.get(key) or value for key, value in defaults.items()
    }
    return transform_message(message, config)
