from fastapi import APIRouter

from expenseflow.api import (
    admin_categories,
    admin_projects,
    admin_users,
    admin_workflow,
    auth,
    expenses,
    finance,
    settings,
    staff,
    uploads,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(staff.router, prefix="/staff", tags=["staff"])
api_router.include_router(finance.router, prefix="/finance", tags=["finance"])
api_router.include_router(admin_workflow.router, prefix="/admin", tags=["admin"])
api_router.include_router(admin_projects.router, prefix="/admin", tags=["admin"])
api_router.include_router(admin_categories.router, prefix="/admin", tags=["admin"])
api_router.include_router(admin_users.router, prefix="/admin", tags=["admin"])
api_router.include_router(expenses.router, prefix="/expenses", tags=["expenses"])
api_router.include_router(settings.router, prefix="/settings", tags=["settings"])
api_router.include_router(uploads.router, prefix="/upload", tags=["upload"])
