"""HTTP-facing contracts: the request view and the 430 response body."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

CONSENT_REQUIRED_STATUS = 430
CONSENT_REQUIRED_ERROR = "AI usage boundaries declared in AIBDP manifest not satisfied"
DEFAULT_RATIONALE = "No additional information provided"
RETRY_AFTER_SECONDS = 86400

# Recognised request headers (lower-case)
HEADER_USER_AGENT = "user-agent"
HEADER_PURPOSE = "ai-purpose"
HEADER_CONSENT_REVIEWED = "ai-consent-reviewed"
HEADER_CONSENT_CONDITIONS = "ai-consent-conditions"


def get_header(headers: Any, name: str) -> str | None:
    """Case-insensitive header lookup that never raises.

    Returns None when the header is absent or its value is not a string.
    """
    if not isinstance(headers, Mapping):
        return None
    name = name.lower()
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if isinstance(key, str) and key.lower() == name:
                value = candidate
                break
    return value if isinstance(value, str) else None


class RequestContext(BaseModel):
    """Read-only view of an inbound request: its path and headers."""

    model_config = ConfigDict(frozen=True)

    path: str = ""
    headers: dict[str, str] = {}

    @field_validator("headers", mode="before")
    @classmethod
    def _lowercase_keys(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return {}
        return {
            k.lower(): v
            for k, v in value.items()
            if isinstance(k, str) and isinstance(v, str)
        }

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())


class ConsentRequiredBody(BaseModel):
    """JSON body of an HTTP 430 Consent Required response."""

    error: str = CONSENT_REQUIRED_ERROR
    manifest: str
    violated_policy: str
    policy_status: str | None = None
    required_conditions: list[Any] = []
    rationale: str = DEFAULT_RATIONALE
    contact: Any = None
    missing_conditions: list[str] | None = None
