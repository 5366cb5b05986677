from fastapi import APIRouter

from app.modules.admissions.admin_router import router as admissions_admin_router
from app.modules.admissions.router import router as admissions_router

api_router = APIRouter()

api_router.include_router(
    admissions_router,
    prefix="/admissions/applications",
    tags=["Admissions"],
)

api_router.include_router(
    admissions_admin_router,
    prefix="/admin/admissions/applications",
    tags=["Admin - Admissions"],
)
