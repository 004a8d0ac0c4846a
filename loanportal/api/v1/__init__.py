from fastapi import APIRouter

from loanportal.api.v1.routers import (
    admin,
    applications,
    auth,
    chat,
    documents,
    files,
    health,
    notifications,
    statistics,
    support,
    users,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(admin.router)
api_router.include_router(applications.router)
api_router.include_router(documents.router)
api_router.include_router(files.router)
api_router.include_router(notifications.router)
api_router.include_router(statistics.router)
api_router.include_router(support.router)
api_router.include_router(chat.router)

__all__ = ["api_router"]
