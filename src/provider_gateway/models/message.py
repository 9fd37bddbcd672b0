"""
Chat message value object.
"""

from typing import Any, Dict, Literal

from .base import ValueObject
from ..core.errors import InvalidArgumentError

Role = Literal["system", "user", "assistant", "tool"]


class ChatMessage(ValueObject):
    """A single conversation message."""
    role: Role
    content: str

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(role="assistant", content=content)

    @classmethod
    def tool(cls, content: str) -> "ChatMessage":
        return cls(role="tool", content=content)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        """
        Build a message from a role/content mapping.

        Raises:
            InvalidArgumentError: If role or content is missing or invalid
        """
        if "role" not in data or "content" not in data:
            raise InvalidArgumentError("Message requires 'role' and 'content'")
        return cls(role=data["role"], content=data["content"])

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    def is_system(self) -> bool:
        return self.role == "system"

    def is_user(self) -> bool:
        return self.role == "user"

    def is_assistant(self) -> bool:
        return self.role == "assistant"

    def is_tool(self) -> bool:
        return self.role == "tool"
