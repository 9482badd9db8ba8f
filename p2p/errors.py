"""
Error taxonomy for the workflow core.

Domain errors carry enough context (entity, attempted action, current state)
for a caller to render an actionable message. They are never retried by the
engine. ``StorageError`` is deliberately outside the domain hierarchy: it
signals a collaborator failure and is the only error the engine retries.
"""

from typing import Any, Optional


class DomainError(Exception):
    code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        current_state: Optional[str] = None,
        attempted: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.attempted = attempted
        self.details = details

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        for key in ("entity_type", "entity_id", "current_state", "attempted", "details"):
            value = getattr(self, key)
            if value is not None:
                body[key] = value
        return body


class ValidationError(DomainError):
    code = "VALIDATION_ERROR"
    status_code = 422


class NotFoundError(DomainError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidStateError(DomainError):
    code = "INVALID_STATE"
    status_code = 409


class ApproverNotFoundError(DomainError):
    code = "APPROVER_NOT_FOUND"
    status_code = 404


class ConflictError(DomainError):
    code = "VERSION_CONFLICT"
    status_code = 409


class PermissionDeniedError(DomainError):
    code = "INSUFFICIENT_PERMISSIONS"
    status_code = 403


class ApprovalLimitExceededError(DomainError):
    code = "APPROVAL_LIMIT_EXCEEDED"
    status_code = 403


class StorageError(Exception):
    """The entity store is unavailable or failed mid-operation."""

    code = "STORAGE_UNAVAILABLE"
    status_code = 503
