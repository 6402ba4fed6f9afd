"""
Read and write the engine settings.

The settings are process-wide parameters of the engine that are not
part of any adapter configuration: timeouts of the outbound calls and
limits of the stream parser. They are read, in order of precedence,
from the arguments given at construction, the file madapt.toml in the
working directory, and environment variables:

    MADAPT_HTTP__TIMEOUT=30
    MADAPT_STREAM__MAX_BUFFER_CHARS=200000

Example of madapt.toml:

    ```toml
    [http]
    timeout = 60.0
    connect_timeout = 10.0
    follow_redirects = true

    [stream]
    max_buffer_chars = 1000000
    finish_on_eof = true
    ```
"""

from pathlib import Path
from typing import Any

import tomlkit
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

DEFAULT_CONFIG_FILE = "madapt.toml"
ENV_PREFIX = "MADAPT_"


class HttpSettings(BaseModel):
    """
    Settings of the outbound HTTP calls.

    Attributes:
        timeout: seconds to wait for the response (for streams, for
            each chunk)
        connect_timeout: seconds to wait for the connection
        follow_redirects: follow HTTP redirects
    """

    timeout: float = Field(
        default=60.0, gt=0, description="Request timeout in seconds"
    )
    connect_timeout: float = Field(
        default=10.0, gt=0, description="Connection timeout in seconds"
    )
    follow_redirects: bool = Field(
        default=True, description="Follow HTTP redirects"
    )

    model_config = SettingsConfigDict(frozen=True, extra='forbid')


class StreamSettings(BaseModel):
    """
    Settings of the stream event mapper.

    Attributes:
        max_buffer_chars: size of a pending partial SSE frame above
            which the frame is discarded (0 disables the limit)
        finish_on_eof: emit a finish event when the upstream stream
            ends without a done signal
    """

    max_buffer_chars: int = Field(
        default=1_000_000,
        ge=0,
        description="Limit of a partial SSE frame (0: no limit)",
    )
    finish_on_eof: bool = Field(
        default=True,
        description="Finish the stream when the connection closes",
    )

    model_config = SettingsConfigDict(frozen=True, extra='forbid')


class EngineSettings(BaseSettings):
    """
    A pydantic settings object containing the engine settings.

    Attributes:
        http: settings of the outbound calls
        stream: settings of the stream parser
    """

    http: HttpSettings = Field(
        default_factory=HttpSettings,
        description="Outbound HTTP call settings",
    )
    stream: StreamSettings = Field(
        default_factory=StreamSettings,
        description="SSE stream parser settings",
    )

    model_config = SettingsConfigDict(
        toml_file=DEFAULT_CONFIG_FILE,
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        frozen=True,
        extra='forbid',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the order of settings sources."""
        return (
            init_settings,
            TomlConfigSettingsSource(settings_cls),
            env_settings,
        )

    def __str__(self) -> str:
        return serialize_settings(self)


def serialize_settings(sets: BaseSettings) -> str:
    """Transform the settings into a string in TOML format.

    Args:
        sets: The settings object to serialize

    Returns:
        TOML formatted string representation of settings
    """
    doc = tomlkit.document()
    doc.add(tomlkit.comment("Model adapter engine settings"))
    doc.add(tomlkit.nl())

    data: dict[str, Any] = sets.model_dump()
    for key, value in data.items():
        if isinstance(value, dict):
            tbl = tomlkit.table()
            for kkey, vvalue in value.items():  # type: ignore
                # None cannot be represented in TOML
                if vvalue is not None:
                    tbl[kkey] = vvalue
            doc[key] = tbl
        elif value is not None:
            doc[key] = value

    return tomlkit.dumps(doc)


def export_settings(
    settings: BaseSettings, file_path: str | Path | None = None
) -> None:
    """Save settings to file in TOML format.

    Args:
        settings: A settings object to save
        file_path: The settings file path (defaults to madapt.toml)

    Raises:
        OSError: If file cannot be written
    """
    if file_path is None:
        file_path = DEFAULT_CONFIG_FILE

    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with file_path.open("w", encoding="utf-8") as f:
        f.write(serialize_settings(settings))


def load_settings(file_path: str | Path | None = None) -> EngineSettings:
    """Load settings from TOML file.

    Args:
        file_path: Path to settings file (defaults to madapt.toml)

    Returns:
        Loaded settings object

    Raises:
        FileNotFoundError: If settings file doesn't exist
        ValueError: If settings file is invalid
    """
    if file_path is None:
        file_path = DEFAULT_CONFIG_FILE

    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(
            f"Settings file not found: {file_path}"
        )

    try:
        # A settings class reading from the specified file
        class FileSettings(EngineSettings):
            model_config = SettingsConfigDict(
                toml_file=str(file_path),
                env_prefix=ENV_PREFIX,
                env_nested_delimiter="__",
                frozen=True,
                extra='forbid',
            )

        return FileSettings()
    except Exception as e:
        raise ValueError(
            f"Failed to load settings from {file_path}: "
            + format_pydantic_error_message(str(e))
        ) from e


def format_pydantic_error_message(error_message: str) -> str:
    """Filter out verbose lines from pydantic error messages.

    Args:
        error_message: Raw pydantic error message

    Returns:
        Cleaned error message without verbose help text
    """
    lines = error_message.split('\n')
    filtered_lines = [
        line
        for line in lines
        if "For further information visit" not in line
    ]
    return '\n'.join(filtered_lines)
