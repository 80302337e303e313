"""
Domain error hierarchy.

Services raise these instead of HTTPException so they stay usable outside a
request. main.py maps every DomainError to a JSON response using the
status_code and error_code carried by the class.
"""


class DomainError(Exception):
    """Base class for all errors raised by the service layer."""

    status_code = 400
    error_code = "domain_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """An input value is outside its allowed set or range."""

    status_code = 400
    error_code = "validation_error"


class ProjectMembershipError(ValidationError):
    """A user is attached to a project they do not belong to."""

    error_code = "project_membership_required"


class PermissionDeniedError(DomainError):
    status_code = 403
    error_code = "permission_denied"


class NotFoundError(DomainError):
    status_code = 404
    error_code = "not_found"


class TaskNotFoundOrForbiddenError(NotFoundError):
    """The task is missing or belongs to someone else; callers can't tell which."""

    error_code = "task_not_found_or_forbidden"


class DuplicateError(DomainError):
    status_code = 409
    error_code = "duplicate"


class DuplicateUsernameError(DuplicateError):
    error_code = "duplicate_username"


class DuplicateParticipantError(DuplicateError):
    error_code = "duplicate_participant"


class DuplicateMembershipError(DuplicateError):
    error_code = "duplicate_membership"


class InvariantViolationError(DomainError):
    """The operation would remove a task lead or a project creator."""

    status_code = 409
    error_code = "invariant_violation"


class StorageError(DomainError):
    """The database rejected a write; the transaction was rolled back."""

    status_code = 500
    error_code = "storage_error"
