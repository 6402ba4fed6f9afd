"""
Internal chat data handed to the engine by the chat layer.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """A message of the internal chat history."""

    id: str = ""
    role: str
    content: str = ""
    created_at: str | None = Field(
        default=None, description="ISO-8601 creation instant"
    )

    model_config = ConfigDict(frozen=True, extra='ignore')


# Messages may be given as ChatMessage objects or as plain mappings
# with the same keys.
MessageLike = ChatMessage | Mapping[str, Any]


def to_simple_message(message: MessageLike) -> dict[str, Any]:
    """Reduce a message to the role/content pair used in template
    variables."""
    if isinstance(message, ChatMessage):
        return {'role': message.role, 'content': message.content}
    return {
        'role': message.get('role', 'user'),
        'content': message.get('content', ""),
    }
