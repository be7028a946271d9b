"""
API router aggregating all route modules.
"""

from fastapi import APIRouter

from mediavault.api.routes import health, auth, folders, shares, media, medical, admin

router = APIRouter()

# Include all route modules
router.include_router(health.router, prefix="/health", tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(folders.router, prefix="/folders", tags=["Folders"])
router.include_router(shares.router, prefix="/folder-shares", tags=["Folder Sharing"])
router.include_router(media.router, prefix="/media", tags=["Media"])
router.include_router(medical.router, prefix="/medical", tags=["Medical Records"])
router.include_router(admin.router, prefix="/admin", tags=["Administration"])
