from fastapi import APIRouter

from buildops.api.v1.change_orders import router as change_orders_router
from buildops.api.v1.notifications import router as notifications_router
from buildops.api.v1.projects import router as projects_router
from buildops.api.v1.work_orders import router as work_orders_router

v1_router = APIRouter()

v1_router.include_router(projects_router)
v1_router.include_router(work_orders_router)
v1_router.include_router(change_orders_router)
v1_router.include_router(notifications_router)
