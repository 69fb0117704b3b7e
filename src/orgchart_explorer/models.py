"""Data models and error types for the org chart explorer."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr, field_validator

TEMP_ID_PREFIX = "tmp-"
ROOT_KEY_PREFIX = "root:"

EMPTY_NODE_LABEL = "empty_node_label"
EMPTY_DESCRIPTION = "empty_description"
INVALID_EMPLOYEE_COUNT = "invalid_employee_count"


def new_temp_id() -> str:
    """Return a session-unique identifier for a not-yet-confirmed node."""
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"


# ==================== ERRORS ====================


class OrgChartError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(OrgChartError):
    """Invalid startup configuration (e.g. no root endpoints)."""


class APIError(OrgChartError):
    """Base class for transport / backend failures."""


class AuthenticationError(APIError):
    """Invalid API key or unauthorized access."""


class NodeNotFoundError(APIError):
    """A node id is unknown to the backend or to the repository."""

    def __init__(self, node_id: str | None, message: str = "Node not found") -> None:
        super().__init__(f"{message}: {node_id}", {"node_id": node_id})
        self.node_id = node_id


class RateLimitError(APIError):
    """Backend answered 429."""

    def __init__(self, retry_after: float | None = None) -> None:
        super().__init__("Rate limit exceeded", {"retry_after": retry_after})
        self.retry_after = retry_after


class NetworkError(APIError):
    """Server error, unreadable payload or retries exhausted."""


class TimeoutError(APIError):  # noqa: A001
    """Request timed out on every attempt."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"Operation timed out: {operation}", {"operation": operation})
        self.operation = operation


class RequestRejectedError(APIError):
    """Backend refused the request (validation or conflict, 4xx)."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message, {"status_code": status_code})
        self.status_code = status_code


class FetchError(OrgChartError):
    """A root page or children fetch failed; the request may be retried."""

    def __init__(self, key: str, cause: BaseException) -> None:
        super().__init__(f"Fetch failed for {key}: {cause}", {"key": key})
        self.key = key
        self.cause = cause


class CreateRejected(OrgChartError):
    """Node creation failed and the optimistic insert was rolled back."""

    def __init__(self, temp_id: str, reason: str) -> None:
        super().__init__(f"Node creation rejected: {reason}", {"temp_id": temp_id})
        self.temp_id = temp_id
        self.reason = reason


@dataclass(frozen=True)
class FieldError:
    field: str
    code: str
    message: str


class NodeValidationError(OrgChartError):
    """One or more form fields are invalid. Carries every violation."""

    def __init__(self, errors: list[FieldError]) -> None:
        super().__init__(
            "Invalid node form: " + ", ".join(e.code for e in errors),
            {"errors": [e.code for e in errors]},
        )
        self.errors = list(errors)

    @property
    def codes(self) -> list[str]:
        return [e.code for e in self.errors]


# ==================== NODES ====================


class OrgNode(BaseModel):
    """A department in the hierarchy.

    ``children_loaded`` and ``expanded`` are client-side flags; the backend
    never sends them and they are excluded from request payloads.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    parent_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("parentId", "parent_id"),
        serialization_alias="parentId",
    )
    label: str = Field(
        validation_alias=AliasChoices("label", "name"),
    )
    description: str = ""
    number_of_employees: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("numberOfEmployees", "number_of_employees"),
        serialization_alias="numberOfEmployees",
    )
    children_loaded: bool = Field(default=False, serialization_alias="childrenLoaded")
    expanded: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("parent_id", mode="before")
    @classmethod
    def _coerce_parent_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        if value == "":
            return None
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def is_temporary(self) -> bool:
        return self.id.startswith(TEMP_ID_PREFIX)


class NodeCreateRequest(BaseModel):
    """Payload sent to the create capability."""

    model_config = ConfigDict(populate_by_name=True)

    label: str
    description: str
    number_of_employees: int = Field(ge=0, serialization_alias="numberOfEmployees")
    parent_id: str | None = Field(default=None, serialization_alias="parentId")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class NodeForm(BaseModel):
    """User input for a new node, as typed (unvalidated)."""

    label: str | None = None
    description: str | None = None
    number_of_employees: Any = None
    parent_id: str | None = None

    def reset(self) -> None:
        """Clear input fields; the selected parent stays."""
        self.label = None
        self.description = None
        self.number_of_employees = None


# ==================== CONFIGURATION ====================


class APIConfiguration(BaseModel):
    """Resolved settings for the HTTP client and root source selection."""

    base_url: str = "http://localhost:3000/api"
    api_key: SecretStr | None = None
    root_endpoints: list[str] = Field(default_factory=lambda: ["/departments2", "/departments3"])
    children_path: str = "/departments"
    create_path: str = "/departments"
    timeout: float = 30.0
    max_retries: int = Field(default=3, ge=1)
    retry_base_delay: float = 1.0
    rate_limit_delay: float = 0.25
