"""
Exceptions raised by the adapter engine.

    AdapterError
     ├── ConfigValidationError (also a ValueError)
     │    └── PathSyntaxError
     ├── PathWriteError (also a LookupError)
     ├── UpstreamError
     └── FrameParseError

FrameParseError is raised inside the stream event mapper and always
recovered there (the frame is dropped). Explicit error payloads in a
stream are not raised: they end the stream with an Error event.
"""


class AdapterError(Exception):
    """Base class of all engine errors."""


class ConfigValidationError(AdapterError, ValueError):
    """Structurally invalid configuration.

    Attributes:
        issues: the list of problems found in the configuration.
    """

    def __init__(self, message: str, issues: list[str] | None = None):
        self.issues: list[str] = list(issues) if issues else [message]
        super().__init__(message)

    def __str__(self) -> str:
        msg = super().__str__()
        if len(self.issues) > 1 or (
            self.issues and self.issues[0] != msg
        ):
            return msg + "\n" + "\n".join(
                f"  - {issue}" for issue in self.issues
            )
        return msg


class PathSyntaxError(ConfigValidationError):
    """Empty or malformed path expression."""


class PathWriteError(AdapterError, LookupError):
    """A value cannot be written at the given path (missing array
    index, or a scalar in the way)."""


class UpstreamError(AdapterError):
    """Non-success status or transport failure of the outbound call.

    Attributes:
        status_code: the HTTP status, or None for transport failures
        body: the raw response body (or the transport error text)
    """

    def __init__(self, status_code: int | None, body: str = ""):
        self.status_code = status_code
        self.body = body
        if status_code is None:
            super().__init__(f"Upstream transport failure: {body}")
        else:
            super().__init__(
                f"Upstream error ({status_code}): {body[:500]}"
            )


class FrameParseError(AdapterError):
    """Malformed SSE frame payload."""
