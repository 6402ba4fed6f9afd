# pyright: reportUnusedImport=false
# flake8: noqa

from .base import (
    BaseModelAdapter,
    OutboundRequest,
    build_request,
)
from .webhook import WebhookAdapter
from .stream import StreamAdapter
from .factory import create_adapter
