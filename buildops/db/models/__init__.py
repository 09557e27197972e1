from buildops.db.models.budget_item import ProjectBudgetItem
from buildops.db.models.change_order import ChangeOrder, ChangeOrderItem
from buildops.db.models.notification import Notification
from buildops.db.models.project import Project
from buildops.db.models.work_order import WorkOrder

__all__ = [
    "ChangeOrder",
    "ChangeOrderItem",
    "Notification",
    "Project",
    "ProjectBudgetItem",
    "WorkOrder",
]
