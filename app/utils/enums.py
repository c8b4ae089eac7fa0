from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    REFUSED = "refused"


# Orders in these states no longer count toward phone velocity
CLOSED_ORDER_STATUSES = (OrderStatus.CANCELLED, OrderStatus.DELIVERED)


class RiskDecision(str, Enum):
    APPROVE = "approve"
    FLAG = "flag"
    BLOCK = "block"


class BlocklistKind(str, Enum):
    PHONE = "phone"
    USER_ID = "user_id"
    ADDRESS_KEYWORD = "address_keyword"
    IP = "ip"


class BlocklistSeverity(str, Enum):
    HARD_BLOCK = "hard_block"
    FLAG_ONLY = "flag_only"
