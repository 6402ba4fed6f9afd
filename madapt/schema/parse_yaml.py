"""
Export and import of adapter configurations as YAML documents.

The exported document is meant to be read and edited by an operator
and imported again: field names follow the document names of
ModelAdapterConfig (including literalValue, roleMapping, customFields
and from), keys keep their declaration order, and only the fields that
were set in the configuration are written. Serialization is stable:
importing an exported document and exporting it again yields the same
text.

Example:
    ```python
    text = serialize_config(config, mask_secrets=True)
    export_config(config, "configs/" + export_filename(config))
    same = load_config("configs/claude-config-2024-05-01.yaml")
    ```

Documents in the older format (request_schema in place of body_config,
endpoint_type 'sse', stream_config with contentPath/doneSignal/
errorPath) are converted on import.
"""

# note: unknown types introduced from pyyaml
# pyright: reportUnknownVariableType=false
# pyright: reportUnknownArgumentType=false

import re
from datetime import date
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from madapt.config.config import format_pydantic_error_message
from madapt.engine.errors import ConfigValidationError

from .adapter_config import ModelAdapterConfig

MASK_SUFFIX = "***"
MASK_VISIBLE_CHARS = 8


def mask_api_key(api_key: str) -> str:
    """Keep the first characters of a key, enough to recognize it."""
    return api_key[:MASK_VISIBLE_CHARS] + MASK_SUFFIX


def dump_yaml(x: Any) -> str:
    if x is None:
        return ""

    y: str = yaml.safe_dump(
        x,
        default_flow_style=False,
        width=float("Inf"),
        allow_unicode=True,
        sort_keys=False,
    )
    return re.sub(r"\n\.\.\.\n$", "\n", y)


def serialize_config(
    config: ModelAdapterConfig, mask_secrets: bool = False
) -> str:
    """
    Serialize a configuration as a YAML document.

    Args:
        config: the configuration
        mask_secrets: blank the values of the headers and mask the
            api key, for documents that are to be shared

    Returns:
        the YAML text.
    """
    document = config.to_document()
    if mask_secrets:
        if 'headers' in document:
            document['headers'] = {
                key: "" for key in document['headers']
            }
        if document.get('api_key'):
            document['api_key'] = mask_api_key(document['api_key'])
    return dump_yaml(document)


def parse_config(text: str) -> ModelAdapterConfig:
    """
    Load a configuration from a YAML document.

    Raises:
        ConfigValidationError: if the text is not YAML, is not a
            mapping, or does not describe a valid configuration.
    """
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML: {e}") from e

    if not isinstance(document, dict):
        raise ConfigValidationError(
            "The configuration document must be a mapping"
        )

    try:
        return ModelAdapterConfig.model_validate(document)
    except ValidationError as e:
        issues = [
            f"{'.'.join(str(loc) for loc in err['loc']) or '<root>'}: "
            + err['msg']
            for err in e.errors()
        ]
        raise ConfigValidationError(
            format_pydantic_error_message(str(e)), issues
        ) from e


def export_config(
    config: ModelAdapterConfig,
    file_path: str | Path,
    mask_secrets: bool = False,
) -> None:
    """Write a configuration to a YAML file.

    Raises:
        OSError: If file cannot be written
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with file_path.open("w", encoding="utf-8") as f:
        f.write(serialize_config(config, mask_secrets))


def load_config(file_path: str | Path) -> ModelAdapterConfig:
    """Read a configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigValidationError: If the document is invalid
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {file_path}"
        )
    return parse_config(file_path.read_text(encoding="utf-8"))


def export_filename(
    config: ModelAdapterConfig, day: date | None = None
) -> str:
    """The name of the export file of a configuration, of the form
    <name>-config-<YYYY-MM-DD>.yaml."""
    label = config.name or config.model_id or "model"
    slug = re.sub(r"[^a-z0-9]+", "-", label.lower()).strip('-')
    day = day or date.today()
    return f"{slug or 'model'}-config-{day.isoformat()}.yaml"
