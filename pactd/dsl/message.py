from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Message(BaseModel):
    """A message pact interaction: something the provider publishes asynchronously."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    description: str = ""
    provider_state: str | None = Field(default=None, alias="providerState")
    metadata: dict[str, Any] = Field(default_factory=dict)
    content: Any = None

    def given(self, state: str) -> Message:
        self.provider_state = state
        return self

    def expects_to_receive(self, description: str) -> Message:
        self.description = description
        return self

    def with_metadata(self, metadata: dict[str, Any]) -> Message:
        self.metadata = metadata
        return self

    def with_content(self, content: Any) -> Message:
        self.content = content
        return self

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
