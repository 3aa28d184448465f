"""Wire types shared by the daemon, its client and the test session."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pactd.errors import ValidationError

# Status a freshly started mock server carries until something observes it.
STATUS_UNKNOWN = -1
STATUS_OK = 0
STATUS_FAILED = 1

# "overwrite" replaces the pact file, "update" and "merge" add to it
PACT_WRITE_MODES = ("overwrite", "update", "merge")


class MockServer(BaseModel):
    pid: int = 0
    port: int = 0
    status: int = STATUS_UNKNOWN
    args: list[str] = Field(default_factory=list)


class PactListResponse(BaseModel):
    servers: list[MockServer] = Field(default_factory=list)


class StartServerRequest(BaseModel):
    args: list[str] = Field(default_factory=list)
    port: int = 0


class VerifyRequest(BaseModel):
    provider_base_url: str = ""
    pact_urls: list[str] = Field(default_factory=list)
    broker_url: str = ""
    tags: list[str] = Field(default_factory=list)
    provider: str = ""
    provider_states_setup_url: str = ""
    broker_username: str = ""
    broker_password: str = ""
    publish_verification_results: bool = False
    provider_version: str = ""
    custom_provider_headers: list[str] = Field(default_factory=list)

    def validate_args(self) -> list[str]:
        """Check the request and build the verifier's argument list from it."""
        args: list[str] = []

        if self.pact_urls:
            args.extend(self.pact_urls)
        elif self.broker_url:
            if not self.provider:
                raise ValidationError("Provider name is mandatory when verifying against a broker")
            args.extend(["--pact-broker-base-url", self.broker_url, "--provider", self.provider])
            for tag in self.tags:
                args.extend(["--consumer-version-tag", tag])
        else:
            raise ValidationError("Pact URLs or a broker URL is mandatory")

        if not self.provider_base_url:
            raise ValidationError("Provider base URL is mandatory")

        args.extend(["--format", "json", "--provider-base-url", self.provider_base_url])

        if self.provider_states_setup_url:
            args.extend(["--provider-states-setup-url", self.provider_states_setup_url])
        if self.broker_username:
            args.extend(["--broker-username", self.broker_username])
        if self.broker_password:
            args.extend(["--broker-password", self.broker_password])

        if self.publish_verification_results:
            if not self.provider_version:
                raise ValidationError("Provider version is mandatory when publishing verification results")
            args.extend(["--publish-verification-results", "--provider-app-version", self.provider_version])

        for header in self.custom_provider_headers:
            args.extend(["--custom-provider-header", header])

        return args


class _VerifierModel(BaseModel):
    """Verifier output: unknown keys are ignored and nulls fall back to defaults."""

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ExampleException(_VerifierModel):
    class_name: str = Field(default="", alias="class")
    message: str = ""
    backtrace: list[str] = Field(default_factory=list)


class Example(_VerifierModel):
    id: str = ""
    description: str = ""
    full_description: str = ""
    status: str = ""
    file_path: str = ""
    line_number: int = 0
    run_time: float = 0.0
    pending_message: str = ""
    exception: ExampleException = Field(default_factory=ExampleException)

    @property
    def passed(self) -> bool:
        return self.status == "passed"


class Summary(_VerifierModel):
    duration: float = 0.0
    example_count: int = 0
    failure_count: int = 0
    pending_count: int = 0


class ProviderVerifierResponse(_VerifierModel):
    examples: list[Example] = Field(default_factory=list)
    summary: Summary = Field(default_factory=Summary)
    summary_line: str = ""


class PactMessageRequest(BaseModel):
    message: dict[str, Any] = Field(default_factory=dict)
    consumer: str = ""
    provider: str = ""
    pact_dir: str = ""
    pact_write_mode: str = "overwrite"
    specification_version: int = 3

    def validate_args(self) -> list[str]:
        if not self.consumer:
            raise ValidationError("Consumer name is mandatory")
        if not self.provider:
            raise ValidationError("Provider name is mandatory")
        if not self.pact_dir:
            raise ValidationError("Pact directory is mandatory")
        if self.pact_write_mode not in PACT_WRITE_MODES:
            raise ValidationError(
                f"Unknown pact write mode {self.pact_write_mode!r}, expected one of {list(PACT_WRITE_MODES)}",
            )

        return [
            json.dumps(self.message),
            "--consumer",
            self.consumer,
            "--provider",
            self.provider,
            "--pact-dir",
            self.pact_dir,
            "--pact-specification-version",
            str(self.specification_version),
            "--pact-file-write-mode",
            self.pact_write_mode,
        ]


class CommandResponse(BaseModel):
    message: str = ""
    error: str = ""
