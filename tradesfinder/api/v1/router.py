from fastapi import APIRouter

from tradesfinder.api.v1.admin import router as admin_router
from tradesfinder.api.v1.auth import router as auth_router
from tradesfinder.api.v1.bad_payers import router as bad_payers_router
from tradesfinder.api.v1.billing import router as billing_router
from tradesfinder.api.v1.conversations import router as conversations_router
from tradesfinder.api.v1.jobs import router as jobs_router
from tradesfinder.api.v1.profiles import router as profiles_router
from tradesfinder.api.v1.quotes import router as quotes_router
from tradesfinder.api.v1.reports import router as reports_router
from tradesfinder.api.v1.reviews import router as reviews_router
from tradesfinder.api.v1.verifications import router as verifications_router

v1_router = APIRouter()

v1_router.include_router(auth_router)
v1_router.include_router(profiles_router)
v1_router.include_router(jobs_router)
v1_router.include_router(quotes_router)
v1_router.include_router(reviews_router)
v1_router.include_router(verifications_router)
v1_router.include_router(reports_router)
v1_router.include_router(conversations_router)
v1_router.include_router(bad_payers_router)
v1_router.include_router(billing_router)
v1_router.include_router(admin_router)
