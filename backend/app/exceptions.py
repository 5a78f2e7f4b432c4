"""
GarmentFlow - Custom Exception Hierarchy

Provides structured, typed exceptions with error codes for consistent
error handling across the work order engine and its API.

Usage:
    from app.exceptions import NotFoundError, ValidationError

    # In a service
    raise NotFoundError("WorkOrder", work_order_id)

    # With custom message
    raise ValidationError("Quantity must be at least 1", field="quantity")
"""
from typing import Any, Dict, List, Optional


class GarmentFlowException(Exception):
    """
    Base exception for all GarmentFlow errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "NOT_FOUND", "VALIDATION_ERROR")
        status_code: HTTP status code to return
        details: Additional context for the caller
    """

    error_code: str = "GARMENTFLOW_ERROR"
    status_code: int = 500
    retryable: bool = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Error envelope body (without timestamp) for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# ===================
# 400 Bad Request Errors
# ===================


class ValidationError(GarmentFlowException):
    """Raised when input validation fails."""

    error_code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details=details)


class InvalidStateError(GarmentFlowException):
    """Raised when an operation is invalid for the current state."""

    error_code = "INVALID_STATE"
    status_code = 400

    def __init__(
        self,
        message: str = "Operation not allowed in current state",
        *,
        current_state: Optional[str] = None,
        allowed_states: Optional[list] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if current_state:
            details["current_state"] = current_state
        if allowed_states:
            details["allowed_states"] = allowed_states
        super().__init__(message, details=details)


# ===================
# 404 Not Found Errors
# ===================


class NotFoundError(GarmentFlowException):
    """Raised when a resource is not found."""

    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Any = None,
        *,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        if message is None:
            message = f"{resource} not found"
            if resource_id is not None:
                message = f"{resource} with ID {resource_id} not found"
        super().__init__(message, details=details)


# ===================
# 409 Conflict Errors
# ===================


class DuplicateError(GarmentFlowException):
    """Raised when attempting to create a duplicate resource."""

    error_code = "DUPLICATE_ERROR"
    status_code = 409

    def __init__(
        self,
        resource: str = "Resource",
        *,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        message = f"{resource} already exists"
        if field and value:
            message = f"{resource} with {field}='{value}' already exists"
        super().__init__(message, details=details)


class ConcurrencyError(GarmentFlowException):
    """
    Raised when a stock write lost the race against another request.

    Capacity numbers computed earlier are stale; the caller should re-fetch the
    work order and raw items and retry the whole allocation.
    """

    error_code = "CONCURRENCY_ERROR"
    status_code = 409
    retryable = True

    def __init__(
        self,
        message: str = "Stock was modified by another request. Re-fetch current state and retry.",
        *,
        raw_item_id: Optional[int] = None,
        issued_lines: Optional[List[Dict[str, Any]]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["retryable"] = True
        if raw_item_id is not None:
            details["raw_item_id"] = raw_item_id
        if issued_lines is not None:
            details["issued_lines"] = issued_lines
        super().__init__(message, details=details)


# ===================
# 422 Unprocessable Entity Errors
# ===================


class CapacityError(GarmentFlowException):
    """Raised when the requested quantity exceeds what current stock can produce."""

    error_code = "CAPACITY_ERROR"
    status_code = 422

    def __init__(
        self,
        *,
        requested: int,
        max_producible: int,
        blocking_materials: Optional[List[Dict[str, Any]]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["requested"] = requested
        details["max_producible"] = max_producible
        details["shortfall"] = requested - max_producible
        details["blocking_materials"] = blocking_materials or []
        message = (
            f"Cannot produce {requested} units. Maximum producible is "
            f"{max_producible} units with current stock."
        )
        if blocking_materials:
            names = ", ".join(m.get("name") or str(m.get("raw_item_id")) for m in blocking_materials)
            message += f" Limited by: {names}."
        super().__init__(message, details=details)


class IncompletePlanningError(GarmentFlowException):
    """Raised when planning cannot be completed (unallocated materials or unassigned operations)."""

    error_code = "INCOMPLETE_PLANNING"
    status_code = 422

    def __init__(
        self,
        message: str = "Planning is incomplete",
        *,
        unallocated_materials: Optional[List[Dict[str, Any]]] = None,
        unassigned_operations: Optional[List[Dict[str, Any]]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["unallocated_materials"] = unallocated_materials or []
        details["unassigned_operations"] = unassigned_operations or []
        super().__init__(message, details=details)


# ===================
# 503 Service Unavailable Errors
# ===================


class PersistenceError(GarmentFlowException):
    """Raised when the data store is unreachable or a write failed."""

    error_code = "PERSISTENCE_ERROR"
    status_code = 503
    retryable = True

    def __init__(
        self,
        message: str = "The data store rejected the write. Re-fetch current state and retry.",
        *,
        issued_lines: Optional[List[Dict[str, Any]]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["retryable"] = True
        if issued_lines is not None:
            details["issued_lines"] = issued_lines
        super().__init__(message, details=details)
