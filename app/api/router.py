from fastapi import APIRouter

from app.api.sitemap.routes import public_router
from app.api.sitemap.routes import router as sitemap_router

router = APIRouter()
router.include_router(public_router)
router.include_router(sitemap_router)
