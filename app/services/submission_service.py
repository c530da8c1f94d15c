"""
TPCS-DIFA — Webhook Submission Normalizer

Questionnaire platforms (Tally forms in particular) export submissions in
several body shapes.  This module extracts the respondent's email, the
respondent id and the 24 answers from whichever shape arrives, and maps
Likert labels onto the [-3, +3] scale.

The normalizer never rejects an answer it cannot interpret: unmapped values
are passed through unchanged so the ``Scorer`` reports them together with
their item index.
"""

from __future__ import annotations

import unicodedata
from typing import Any, Mapping

import structlog
from pydantic import BaseModel

from app.exceptions import SubmissionError
from app.services.scoring_service import ITEM_COUNT, MAX_ANSWER, MIN_ANSWER

logger = structlog.get_logger("tpcs.submission_service")

# Keys under ``data`` that may hold the respondent's email, in lookup order.
_EMAIL_DATA_KEYS: tuple[str, ...] = (
    "email",
    "Email",
    "E-mail",
    "Adresse email",
    "Adresse e-mail",
)

# Labels are stored normalised (lower case, accents stripped).
LIKERT_LABELS: dict[str, int] = {
    "-3": -3, "-2": -2, "-1": -1, "0": 0, "1": 1, "2": 2, "3": 3,
    "pas du tout d'accord": -3,
    "plutot pas d'accord": -1,
    "neutre": 0,
    "plutot d'accord": 1,
    "tout a fait d'accord": 3,
}


class NormalizedSubmission(BaseModel):
    email: str
    respondent_id: str
    answers: dict[str, Any]


def normalize_text(value: Any) -> str:
    """Lower-case, trim and strip diacritics (``"Plutôt"`` -> ``"plutot"``)."""
    decomposed = unicodedata.normalize("NFD", str(value or ""))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower().strip()


def to_score(value: Any) -> float | int | None:
    """Map a raw answer onto the Likert scale, or ``None`` if it cannot be.

    Numbers inside [-3, 3] pass through as-is; strings are matched against
    ``LIKERT_LABELS`` and then parsed as numbers.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if MIN_ANSWER <= value <= MAX_ANSWER else None

    label = normalize_text(value)
    if label in LIKERT_LABELS:
        return LIKERT_LABELS[label]
    try:
        number = float(label)
    except ValueError:
        return None
    if MIN_ANSWER <= number <= MAX_ANSWER:
        return int(number) if number.is_integer() else number
    return None


def extract_email(body: Mapping[str, Any]) -> str | None:
    data = _as_mapping(body.get("data"))
    for key in _EMAIL_DATA_KEYS:
        if data.get(key):
            return str(data[key])
    user = _as_mapping(body.get("user"))
    email = user.get("email") or body.get("email")
    return str(email) if email else None


def extract_raw_answers(body: Mapping[str, Any]) -> dict[str, Any]:
    """Collect raw answers keyed ``"1".."24"``; the first non-empty dialect wins.

    Dialects
    --------
    a. ``body.answers`` as a list of ``{"key": ..., "value": ...}`` items
    b. ``data["1"]..data["24"]`` or ``data["Q1"]..data["Q24"]``
    c. ``data.answers`` as an object keyed ``"1".."24"``
    """
    data = _as_mapping(body.get("data"))
    answers: dict[str, Any] = {}

    items = body.get("answers")
    if isinstance(items, list):
        for entry in items:
            if not isinstance(entry, Mapping):
                continue
            answers[str(entry.get("key"))] = entry.get("value")
        if answers:
            return answers

    for i in range(1, ITEM_COUNT + 1):
        if str(i) in data:
            answers[str(i)] = data[str(i)]
        elif f"Q{i}" in data:
            answers[str(i)] = data[f"Q{i}"]
    if answers:
        return answers

    nested = data.get("answers")
    if isinstance(nested, Mapping):
        for i in range(1, ITEM_COUNT + 1):
            if str(i) in nested:
                answers[str(i)] = nested[str(i)]
    return answers


def extract_respondent_id(body: Mapping[str, Any]) -> str:
    data = _as_mapping(body.get("data"))
    respondent_id = (
        data.get("respondent_id")
        or body.get("submissionId")
        or body.get("submission_id")
        or "unknown"
    )
    return str(respondent_id)


def normalize_submission(body: Mapping[str, Any]) -> NormalizedSubmission:
    """Extract email, respondent id and Likert-mapped answers from a webhook body.

    Raises
    ------
    SubmissionError
        If no email address can be found.
    """
    body = _as_mapping(body)
    data = _as_mapping(body.get("data"))

    email = extract_email(body)
    if not email:
        detail = {"topKeys": list(body.keys()), "dataKeys": list(data.keys())}
        logger.warning("submission_missing_email", **detail)
        raise SubmissionError("Missing email", detail)

    answers: dict[str, Any] = {}
    raw_answers = extract_raw_answers(body)
    for i in range(1, ITEM_COUNT + 1):
        key = str(i)
        if key not in raw_answers:
            continue
        raw = raw_answers[key]
        mapped = to_score(raw)
        if mapped is None:
            logger.debug("submission_unmapped_answer", item=i, raw=raw)
            answers[key] = raw
        else:
            answers[key] = mapped

    respondent_id = extract_respondent_id(body)
    logger.info(
        "submission_normalized",
        respondent_id=respondent_id,
        n_answers=len(answers),
    )
    return NormalizedSubmission(email=email, respondent_id=respondent_id, answers=answers)


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}
