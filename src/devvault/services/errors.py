"""Error taxonomy shared by the item repository adapters and editors.

Every error carries a machine-readable ``error_code`` plus a human-readable
message so the view layer can surface it inline (validation) or as a
non-blocking notice (repository failures).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "ErrorCode",
    "VaultError",
    "ValidationError",
    "RepositoryError",
    "NotFoundError",
]


class ErrorCode:
    """Constants for error codes carried by :class:`VaultError`."""

    VALIDATION_FAILED = "validation_failed"
    REPOSITORY_FAILED = "repository_failed"
    NOT_FOUND = "not_found"


@dataclass
class VaultError(Exception):
    """Base exception class for workspace and repository errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class ValidationError(VaultError):
    """A required field is missing or malformed; no repository call was made."""

    error_code: str = field(default=ErrorCode.VALIDATION_FAILED)
    message: str = field(default="Invalid value")
    details: dict[str, Any] = field(default_factory=dict)

    field_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field_name:
            result["field"] = self.field_name
        return result


@dataclass
class RepositoryError(VaultError):
    """A create/update/delete/read call against the repository failed."""

    error_code: str = field(default=ErrorCode.REPOSITORY_FAILED)
    message: str = field(default="Repository request failed")
    details: dict[str, Any] = field(default_factory=dict)

    operation: str = ""

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.operation:
            result["operation"] = self.operation
        return result


@dataclass
class NotFoundError(VaultError):
    """The entity backing a tab no longer exists (e.g. deleted elsewhere)."""

    error_code: str = field(default=ErrorCode.NOT_FOUND)
    message: str = field(default="Item not found")
    details: dict[str, Any] = field(default_factory=dict)

    item_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.item_id is not None:
            result["item_id"] = self.item_id
        return result
