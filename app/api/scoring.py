"""
TPCS-DIFA — Scoring API

Direct access to the scorer for callers that already hold a normalized
``{item: value}`` answer map, plus a listing of the registered scoring
variants.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from app.exceptions import AnswerValidationError, UnknownVariantError
from app.schemas.scoring import ClassificationResult, PolesSummary, ScoreRequest, VariantSummary
from app.services.scoring_service import DIMENSION_KEYS, Scorer, build_scorer
from app.services.scoring_variants import VARIANTS

logger = structlog.get_logger("tpcs.api.scoring")

router = APIRouter()

# ── Service singleton (lazy, constructed on first use) ────────────────────────

_scorer: Scorer | None = None


def get_scorer() -> Scorer:
    global _scorer
    if _scorer is None:
        _scorer = build_scorer()
    return _scorer


# ──────────────────────────────────────────────────────────────────────────────
# GET /variants — Registered vocabularies
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/variants",
    response_model=list[VariantSummary],
    summary="List scoring variants",
)
async def list_variants() -> list[VariantSummary]:
    return [
        VariantSummary(
            name=variant.name,
            description=variant.description,
            poles=[
                PolesSummary(
                    dimension=i + 1,
                    key=DIMENSION_KEYS[i],
                    positive=pair.positive,
                    negative=pair.negative,
                )
                for i, pair in enumerate(variant.poles)
            ],
            families=dict(variant.families),
            fallback_family=variant.fallback_family,
            tie_break_order=list(variant.tie_break_order),
            unresolved_marker=variant.unresolved_marker,
        )
        for variant in VARIANTS.values()
    ]


# ──────────────────────────────────────────────────────────────────────────────
# POST /score — Score a normalized answer map
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/score",
    response_model=ClassificationResult,
    summary="Score 24 normalized answers",
)
async def score_answers(
    payload: ScoreRequest,
    scorer: Scorer = Depends(get_scorer),
) -> ClassificationResult:
    """Score an ``{"1": int, ..., "24": int}`` map.

    The configured variant is used unless the request names another one.
    Validation failures answer 422 with the offending item and raw value.
    """
    if payload.variant:
        try:
            scorer = build_scorer(variant_name=payload.variant)
        except UnknownVariantError as exc:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=str(exc),
            ) from exc

    try:
        result = scorer.score(payload.answers)
    except AnswerValidationError as exc:
        logger.info("score_validation_failed", item=exc.item, reason=exc.reason)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "item": exc.item,
                "raw_value": exc.raw_value,
                "message": str(exc),
            },
        ) from exc

    logger.info("score_complete", variant=result.variant, code=result.code)
    return result
