"""Chat message schema used by LLM collaborators and memory buffers."""

from pydantic import BaseModel, Field

from ..enumeration import Role


class Message(BaseModel):
    """A chat message `(role, content, optional name)`."""

    role: Role = Field(default=Role.USER)
    content: str = Field(default="")
    name: str | None = Field(default=None)
    metadata: dict = Field(default_factory=dict)

    def simple_dump(self) -> dict:
        """Chat completion shape: `{"role", "content"}` plus `name` when set."""
        payload: dict = {"role": self.role.value, "content": self.content}
        if self.name:
            payload["name"] = self.name
        return payload

    def as_transcript_line(self) -> str:
        speaker = f"{self.role.value}({self.name})" if self.name else self.role.value
        return f"{speaker}: {self.content}"
