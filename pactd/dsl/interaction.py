from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Any field below may hold a literal or a matcher document; both are plain
# JSON to this package.


class Request(BaseModel):
    method: str = "GET"
    path: Any = "/"
    query: Any = None
    headers: Any = None
    body: Any = None


class Response(BaseModel):
    status: int = 200
    headers: Any = None
    body: Any = None


class Interaction(BaseModel):
    """One expected request/response exchange, built up fluently.

    ```python
    pact.add_interaction() \
        .given("User billy exists") \
        .upon_receiving("A request to login with user 'billy'") \
        .with_request(Request(method="POST", path="/users/login/1")) \
        .will_respond_with(Response(status=200))
    ```
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    provider_state: str | None = Field(default=None, alias="providerState")
    description: str = ""
    request: Request = Field(default_factory=Request)
    response: Response = Field(default_factory=Response)

    def given(self, state: str) -> Interaction:
        self.provider_state = state
        return self

    def upon_receiving(self, description: str) -> Interaction:
        self.description = description
        return self

    def with_request(self, request: Request | None = None, **fields: Any) -> Interaction:
        self.request = request if request is not None else Request(**fields)
        return self

    def will_respond_with(self, response: Response | None = None, **fields: Any) -> Interaction:
        self.response = response if response is not None else Response(**fields)
        return self

    def to_json(self) -> dict[str, Any]:
        """Payload in the shape the mock service's admin API expects."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
