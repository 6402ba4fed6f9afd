"""
Incremental Server-Sent-Events frame parser.

Bytes arrive from the network in arbitrary chunks. FrameBuffer decodes
them (keeping incomplete UTF-8 sequences for the next chunk), splits
the text into frames at blank lines, and keeps the trailing partial
frame until the next chunk completes it.

A frame is a block of lines:

    event: message_delta
    id: 42
    data: {"delta":
    data:  {"content": "He"}}

'data' lines are joined with newlines, lines starting with ':' are
comments, and one space after the colon is removed from the value.
"""

import codecs
import re
from collections.abc import Iterator

from pydantic import BaseModel, ConfigDict

from .errors import FrameParseError

# a blank line, whatever the line endings
_FRAME_SEPARATOR_RE = re.compile(r"\r\n\r\n|\n\n|\r\r|\r\n\n|\n\r\n")
_LINE_RE = re.compile(r"\r\n|\r|\n")


class SSEFrame(BaseModel):
    """One dispatched SSE frame."""

    event: str | None = None
    data: str = ""
    id: str | None = None

    model_config = ConfigDict(frozen=True)


def parse_frame(block: str) -> SSEFrame | None:
    """Parse the lines of one frame. Returns None for blocks with
    neither event nor data (comments only, retry only)."""
    event: str | None = None
    event_id: str | None = None
    data_lines: list[str] = []

    for line in _LINE_RE.split(block):
        if not line or line.startswith(':'):
            continue
        name, sep, value = line.partition(':')
        if sep and value.startswith(' '):
            value = value[1:]
        match name:
            case 'event':
                event = value.strip()
            case 'data':
                data_lines.append(value)
            case 'id':
                event_id = value
            case _:
                # 'retry' and unknown fields are ignored
                pass

    if event is None and not data_lines:
        return None
    return SSEFrame(event=event, data="\n".join(data_lines), id=event_id)


class FrameBuffer:
    """
    Accumulates chunks and yields the complete frames.

    Args:
        max_buffer_chars: size above which a pending partial frame is
            considered malformed and discarded. Zero or less disables
            the limit.
    """

    def __init__(self, max_buffer_chars: int = 0) -> None:
        self.max_buffer_chars = max_buffer_chars
        self._decoder = codecs.getincrementaldecoder('utf-8')(
            errors='replace'
        )
        self._pending: str = ""

    @property
    def pending(self) -> str:
        """The text of the incomplete trailing frame."""
        return self._pending

    def feed(self, chunk: bytes | str) -> Iterator[SSEFrame]:
        """Add a chunk and yield the frames it completes.

        Raises:
            FrameParseError: if the pending partial frame exceeds
                max_buffer_chars. The buffer is emptied first, so that
                parsing can resume with the next chunk.
        """
        if isinstance(chunk, bytes):
            text = self._decoder.decode(chunk)
        else:
            text = chunk
        self._pending += text

        blocks = _FRAME_SEPARATOR_RE.split(self._pending)
        self._pending = blocks.pop()
        for block in blocks:
            frame = parse_frame(block)
            if frame is not None:
                yield frame

        if 0 < self.max_buffer_chars < len(self._pending):
            size = len(self._pending)
            self._pending = ""
            raise FrameParseError(
                f"Partial frame of {size} characters exceeds the "
                f"limit of {self.max_buffer_chars}; discarded"
            )

    def flush(self) -> SSEFrame | None:
        """End of stream: return the trailing frame, if any, even
        without the terminating blank line."""
        self._pending += self._decoder.decode(b"", final=True)
        block, self._pending = self._pending, ""
        if not block.strip():
            return None
        return parse_frame(block)

    def clear(self) -> None:
        """Release the buffered text."""
        self._pending = ""
        self._decoder.reset()
