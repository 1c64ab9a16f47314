from fastapi import APIRouter

from asset_register_app.web.routers.bulk import router as bulk_router
from asset_register_app.web.routers.health import router as health_router


router = APIRouter()
router.include_router(health_router)
router.include_router(bulk_router)
