# pyright: reportUnusedImport=false
# flake8: noqa

from .config import (
    EngineSettings,
    HttpSettings,
    StreamSettings,
    serialize_settings,
    export_settings,
    load_settings,
    format_pydantic_error_message,
)
