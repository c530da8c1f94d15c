"""
TPCS-DIFA — Questionnaire Webhooks

``POST /tally`` receives a questionnaire submission, normalizes whichever
body dialect arrived, scores the 24 answers and emails the result to the
respondent.  Only POST is routed; other methods get 405 from the router.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from app.api.scoring import get_scorer
from app.exceptions import AnswerValidationError, SubmissionError
from app.schemas.scoring import WebhookResponse
from app.services.email_service import EmailService
from app.services.scoring_service import Scorer
from app.services.submission_service import normalize_submission

logger = structlog.get_logger("tpcs.api.webhooks")

router = APIRouter()

_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


async def _read_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@router.post(
    "/tally",
    response_model=WebhookResponse,
    summary="Score a questionnaire submission and email the result",
)
async def tally_webhook(
    request: Request,
    scorer: Scorer = Depends(get_scorer),
    email_service: EmailService = Depends(get_email_service),
):
    body = await _read_body(request)
    logger.debug("tally_raw_body", body=body)
    log = logger

    try:
        try:
            submission = normalize_submission(body)
        except SubmissionError as exc:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"ok": False, "error": exc.message, **exc.detail},
            )

        log = logger.bind(respondent_id=submission.respondent_id)

        try:
            result = scorer.score(submission.answers)
        except AnswerValidationError as exc:
            log.warning("tally_invalid_answer", item=exc.item, raw=exc.raw_value, reason=exc.reason)
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"ok": False, "error": f"Invalid answer #{exc.item}", "raw": exc.raw_value},
            )

        log.info("tally_scored", code=result.code, family=result.family, flags=list(result.quality.flags))

        sent = await email_service.send_result(submission.email, result)
        if not sent:
            log.error("tally_email_send_failed", email=submission.email)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"ok": False, "error": "Email send failed"},
            )

        return WebhookResponse(
            email=submission.email,
            respondent_id=submission.respondent_id,
            family=result.family,
            code=result.code,
            quality=result.quality,
        )
    except Exception as exc:
        log.exception("tally_webhook_failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"ok": False, "error": "Server error", "detail": str(exc)},
        )
