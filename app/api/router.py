"""
TPCS-DIFA — Main API Router

Aggregates all sub-routers under a single prefix so that ``app.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import scoring, webhooks

router = APIRouter()

router.include_router(scoring.router, prefix="/scoring", tags=["Scoring"])
router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
