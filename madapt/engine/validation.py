"""
Semantic validation of adapter configurations.

The configuration models accept drafts in which an operator may have
left empty paths, literal mappings without value, or event mappings
that cannot produce an event. The functions here report these
problems; the adapters and the stream event mapper call
ensure_valid_config and refuse to run an invalid configuration.
"""

from madapt.schema.adapter_config import (
    ModelAdapterConfig,
    SSEStreamConfig,
    WebhookStreamConfig,
)

from .errors import ConfigValidationError
from .event_mapper import stream_config_issues
from .message_format import message_format_issues
from .paths import is_valid_path


def adapter_config_issues(
    config: ModelAdapterConfig,
) -> tuple[list[str], list[str]]:
    """Return the errors and the warnings of a configuration."""
    errors: list[str] = []
    warnings: list[str] = []

    if config.response_path:
        path = config.response_path.strip()
        if path.startswith('.'):
            path = path[1:]
        if not is_valid_path(path):
            errors.append(
                f"Invalid response_path: '{config.response_path}'"
            )

    if config.message_format is not None:
        format_errors, format_warnings = message_format_issues(
            config.message_format
        )
        errors.extend(format_errors)
        warnings.extend(format_warnings)

    match config.stream_config:
        case SSEStreamConfig():
            errors.extend(stream_config_issues(config.stream_config))
            if config.endpoint_type == 'webhook':
                warnings.append("stream_config ignored by webhook endpoint")
        case WebhookStreamConfig():
            if config.endpoint_type == 'stream':
                errors.append(
                    "A stream endpoint requires a stream_config with "
                    "event mappings"
                )
        case None:
            if config.endpoint_type == 'stream':
                errors.append("A stream endpoint requires a stream_config")

    if config.endpoint_type == 'stream' and config.response_path:
        warnings.append("response_path ignored by stream endpoint")

    if config.method == 'GET' and config.body_config:
        warnings.append("body_config ignored by GET requests")

    return errors, warnings


def validate_adapter_config(
    config: ModelAdapterConfig,
) -> tuple[bool, list[str]]:
    """
    Check a configuration without modifying it.

    Returns:
        a tuple. The first member is False if the configuration has
        errors; the second lists errors and warnings (the latter
        prefixed by 'Warning: ').
    """
    errors, warnings = adapter_config_issues(config)
    return not errors, errors + [f"Warning: {w}" for w in warnings]


def ensure_valid_config(config: ModelAdapterConfig) -> None:
    """
    Raises:
        ConfigValidationError: carrying the errors of the
            configuration, if any.
    """
    errors, _ = adapter_config_issues(config)
    if errors:
        label = config.name or config.endpoint
        raise ConfigValidationError(
            f"Invalid configuration for '{label}'", errors
        )
