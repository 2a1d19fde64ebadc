"""Custom exception classes for the RBAC service."""

from typing import List, Optional


class RBACError(Exception):
    """Base exception for the RBAC service."""

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(RBACError):
    """Raised when authentication fails."""
    pass


class AuthorizationError(RBACError):
    """Raised when user lacks permission."""
    pass


class ResourceNotFoundError(RBACError):
    """Raised when a requested resource is not found."""
    pass


class ResourceConflictError(RBACError):
    """Raised when a resource already exists or is still referenced."""
    pass


class ValidationError(RBACError):
    """Raised when input validation fails."""
    pass


class CycleDetectedError(ValidationError):
    """Raised when a parent assignment would make a role its own ancestor."""

    def __init__(self, role_id: int, parent_id: int):
        self.role_id = role_id
        self.parent_id = parent_id
        super().__init__(
            f"Circular dependency detected in role hierarchy: "
            f"role {parent_id} cannot become the parent of role {role_id}"
        )


class DataIntegrityError(RBACError):
    """Raised when stored hierarchy data violates its invariants.

    Never recovered from locally: it means the write-time cycle guard was
    bypassed or the store is corrupted.
    """
    pass


class PropagationError(DataIntegrityError):
    """Raised when level propagation fails partway through the descendants."""

    def __init__(
        self,
        message: str,
        failed_role_id: int,
        updated_role_ids: Optional[List[int]] = None,
    ):
        self.failed_role_id = failed_role_id
        self.updated_role_ids = list(updated_role_ids or [])
        super().__init__(message)
