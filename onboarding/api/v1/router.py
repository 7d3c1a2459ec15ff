from fastapi import APIRouter

from onboarding.api.v1.endpoints.health import router as health_router
from onboarding.api.v1.endpoints.confirmation import router as confirmation_router
from onboarding.api.v1.endpoints.gigs import router as gigs_router
from onboarding.api.v1.endpoints.vendors import router as vendors_router
from onboarding.api.v1.endpoints.admin_leads import router as admin_leads_router
from onboarding.api.v1.endpoints.internal import router as internal_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(confirmation_router, tags=["confirmation"])
router.include_router(gigs_router, tags=["gigs"])
router.include_router(vendors_router, tags=["vendors"])
router.include_router(admin_leads_router, tags=["admin"])
router.include_router(internal_router, tags=["internal"])
