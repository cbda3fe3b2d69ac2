from fastapi import APIRouter

from grid_listing.api.listings import router as listings_router

router = APIRouter()
router.include_router(listings_router, prefix="/listings", tags=["listings"])
