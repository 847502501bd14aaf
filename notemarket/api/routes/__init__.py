"""
API Routes
"""
from fastapi import APIRouter

from notemarket.api.routes.admin import router as admin_router
from notemarket.api.routes.notes import router as notes_router
from notemarket.api.routes.purchases import router as purchases_router
from notemarket.api.routes.tutoring import router as tutoring_router
from notemarket.api.routes.wallet import router as wallet_router

router = APIRouter()

router.include_router(wallet_router, prefix="/wallet", tags=["wallet"])
router.include_router(purchases_router, prefix="/purchases", tags=["purchases"])
router.include_router(notes_router, prefix="/notes", tags=["notes"])
router.include_router(tutoring_router, prefix="/tutoring", tags=["tutoring"])
router.include_router(admin_router, prefix="/admin", tags=["admin"])
