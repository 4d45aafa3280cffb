"""
Enum definitions for the procurement workflow.
"""

from enum import Enum


class RequirementStatus(str, Enum):
    """Lifecycle states of a requirement."""
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RequirementPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"
    PURCHASE_ORDER = "purchase_order"
    CASH = "cash"


class ApprovalStatus(str, Enum):
    """Decision recorded by a single approver."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class UserRole(str, Enum):
    BUYER = "buyer"
    SUPPLIER = "supplier"
    ADMINISTRATOR = "administrator"
