import enum


class ProjectStatus(str, enum.Enum):
    ESTIMATING = "estimating"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class WorkOrderStatus(str, enum.Enum):
    NEW = "new"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ChangeOrderEntityType(str, enum.Enum):
    PROJECT = "PROJECT"
    WORK_ORDER = "WORK_ORDER"


class ChangeOrderStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    IMPLEMENTED = "IMPLEMENTED"
    CANCELLED = "CANCELLED"


class ChangeOrderReason(str, enum.Enum):
    SCOPE_CHANGE = "scope_change"
    CLIENT_REQUEST = "client_request"
    UNFORESEEN = "unforeseen"
    ERROR = "error"


class NotificationSeverity(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class NotificationCategory(str, enum.Enum):
    CHANGE_ORDER = "change_order"
    BUDGET = "budget"
    SCHEDULE = "schedule"
    SYSTEM = "system"
