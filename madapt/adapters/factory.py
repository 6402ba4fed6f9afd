"""
Selection of the adapter of a configuration.

Example:
    ```python
    config = load_config("claude-config-2024-05-01.yaml")
    adapter = create_adapter(config)
    async for event in adapter.astream(messages):
        await send(encode_ui_event(event))
    ```
"""

import httpx

from madapt.config.config import EngineSettings
from madapt.engine.validation import ensure_valid_config
from madapt.schema.adapter_config import ModelAdapterConfig

from .base import BaseModelAdapter
from .stream import StreamAdapter
from .webhook import WebhookAdapter

# Set up default logger
from madapt.utils.logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)


def create_adapter(
    config: ModelAdapterConfig,
    *,
    settings: EngineSettings | None = None,
    client: httpx.AsyncClient | None = None,
    logger: LoggerBase = logger,
) -> BaseModelAdapter:
    """
    Create the adapter for the endpoint type of a configuration.

    Raises:
        ConfigValidationError: if the configuration is invalid.
    """
    ensure_valid_config(config)
    match config.endpoint_type:
        case 'webhook':
            return WebhookAdapter(
                config, settings=settings, client=client, logger=logger
            )
        case 'stream':
            return StreamAdapter(
                config, settings=settings, client=client, logger=logger
            )
