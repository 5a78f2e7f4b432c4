"""Status Configuration and Transition Rules

This module defines valid status values and allowed transitions for
Work Orders, their operations and raw-material lines. Work order
transitions are validated to prevent skipping a lifecycle state.
"""
from enum import Enum
from typing import Dict, List, Set

from app.exceptions import InvalidStateError


# =============================================================================
# Work Order Status
# =============================================================================

class WorkOrderStatus(str, Enum):
    """Valid status values for Work Orders"""
    PENDING = "pending"
    PARTIAL_ALLOCATION = "partial_allocation"
    PLANNED = "planned"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Allowed transitions: current_status -> set of allowed next statuses
WORK_ORDER_TRANSITIONS: Dict[str, Set[str]] = {
    WorkOrderStatus.PENDING: {
        WorkOrderStatus.PARTIAL_ALLOCATION,
        WorkOrderStatus.PLANNED,
        WorkOrderStatus.CANCELLED,
    },
    # Re-allocation may move between the two allocated states
    WorkOrderStatus.PARTIAL_ALLOCATION: {
        WorkOrderStatus.PLANNED,
        WorkOrderStatus.SCHEDULED,
        WorkOrderStatus.CANCELLED,
    },
    WorkOrderStatus.PLANNED: {
        WorkOrderStatus.PARTIAL_ALLOCATION,
        WorkOrderStatus.SCHEDULED,
        WorkOrderStatus.CANCELLED,
    },
    WorkOrderStatus.SCHEDULED: {
        WorkOrderStatus.IN_PROGRESS,
        WorkOrderStatus.CANCELLED,
    },
    # Production has started: no cancellation, only completion
    WorkOrderStatus.IN_PROGRESS: {
        WorkOrderStatus.COMPLETED,
    },
    WorkOrderStatus.COMPLETED: set(),  # Terminal
    WorkOrderStatus.CANCELLED: set(),  # Terminal
}

TERMINAL_WORK_ORDER_STATUSES: Set[str] = {
    WorkOrderStatus.COMPLETED,
    WorkOrderStatus.CANCELLED,
}

# States in which materials may be (re)allocated and operations (re)planned
PLANNING_STATUSES: Set[str] = {
    WorkOrderStatus.PENDING,
    WorkOrderStatus.PARTIAL_ALLOCATION,
    WorkOrderStatus.PLANNED,
}


def get_allowed_work_order_transitions(current_status: str) -> List[str]:
    """Get list of allowed next statuses for a work order"""
    return sorted(s.value for s in WORK_ORDER_TRANSITIONS.get(current_status, set()))


def is_valid_work_order_transition(current_status: str, new_status: str) -> bool:
    """Check if a work order status transition is valid"""
    if current_status == new_status:
        return current_status in PLANNING_STATUSES - {WorkOrderStatus.PENDING}
    allowed = WORK_ORDER_TRANSITIONS.get(current_status, set())
    return new_status in allowed


def validate_work_order_transition(current: str, new: str) -> None:
    """Validate and raise InvalidStateError if transition is invalid"""
    if not is_valid_work_order_transition(current, new):
        allowed = get_allowed_work_order_transitions(current)
        raise InvalidStateError(
            f"Invalid work order status transition: '{current}' -> '{new}'. "
            f"Allowed: {allowed if allowed else 'none (terminal state)'}",
            current_state=current,
            allowed_states=allowed,
            details={"requested_state": new},
        )


# =============================================================================
# Work Order Operation Status
# =============================================================================

class OperationStatus(str, Enum):
    """Valid status values for Work Order Operations"""
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# =============================================================================
# Raw Material Allocation Status
# =============================================================================

class AllocationStatus(str, Enum):
    """Allocation state of one raw-material line on a work order"""
    NOT_ALLOCATED = "not_allocated"
    PARTIALLY_ALLOCATED = "partially_allocated"
    FULLY_ALLOCATED = "fully_allocated"
    ISSUED = "issued"


class MaterialCapacityStatus(str, Enum):
    """Per-material verdict of the capacity calculation"""
    SUFFICIENT = "sufficient"
    PARTIAL = "partial"
    INSUFFICIENT = "insufficient"


# =============================================================================
# Raw Item Stock
# =============================================================================

class RawItemStockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class StockTransactionType(str, Enum):
    """Ledger entry types. VARIANT_* entries also moved a variant's quantity."""
    ADD = "ADD"
    VARIANT_ADD = "VARIANT_ADD"
    CONSUME = "CONSUME"
    VARIANT_REDUCE = "VARIANT_REDUCE"
    RETURN = "RETURN"
    VARIANT_RETURN = "VARIANT_RETURN"


# =============================================================================
# Machines
# =============================================================================

class MachineStatus(str, Enum):
    OPERATIONAL = "operational"
    MAINTENANCE = "maintenance"
    OFFLINE = "offline"
