"""
TPCS-DIFA — Scorer

Deterministic scoring of a 24-item Likert questionnaire (answers in [-3, +3]):

  1. Validate the answer map into an immutable ``AnswerSet``
  2. Aggregate six dimensions D1..D6 (four items each, even items inverted)
  3. Resolve a polarity letter for D1..D4 by sign
  4. Break zero-sum ties with the variant's tie-break dimensions (default D6)
  5. Assemble the 4-letter code and look up the family from (L3, L4)
  6. Assess response quality (mirror consistency, variability, flags)

The scorer is a pure computation: no I/O, no shared mutable state, safe to
call concurrently.  Vocabulary, family labels and tie-break order come from
the ``ScoringVariant`` bound at construction.
"""

from __future__ import annotations

import decimal
import math
import numbers
import statistics
from typing import Any, Mapping

import structlog
from pydantic import BaseModel, ConfigDict, Field, StrictInt

from app.config import Settings, get_settings
from app.exceptions import AnswerValidationError
from app.schemas.scoring import ClassificationResult, DimensionScore, QualityAssessment
from app.services.scoring_variants import DEFAULT_VARIANT_NAME, ScoringVariant, get_variant

logger = structlog.get_logger("tpcs.scoring_service")

# ──────────────────────────────────────────────────────────────────────────────
# Questionnaire layout
# ──────────────────────────────────────────────────────────────────────────────

ITEM_COUNT: int = 24
MIN_ANSWER: int = -3
MAX_ANSWER: int = 3

INVERTED_ITEMS: frozenset[int] = frozenset(range(2, ITEM_COUNT + 1, 2))

# Six non-overlapping groups of four consecutive items: D1 = 1-4, ..., D6 = 21-24.
DIMENSION_ITEMS: tuple[tuple[int, ...], ...] = tuple(
    tuple(range(start, start + 4)) for start in range(1, ITEM_COUNT + 1, 4)
)

# Direct / reverse-worded item pairs checked for mirror consistency.
MIRROR_PAIRS: tuple[tuple[int, int], ...] = tuple(
    (i, i + 1) for i in range(1, ITEM_COUNT + 1, 2)
)

DIMENSION_KEYS: tuple[str, ...] = (
    "attention", "reward", "emotion", "decision", "context", "introspection",
)


class AnswerSet(BaseModel):
    """24 validated integer answers; ``values[0]`` is item 1."""

    model_config = ConfigDict(frozen=True)

    values: tuple[StrictInt, ...] = Field(min_length=ITEM_COUNT, max_length=ITEM_COUNT)

    @classmethod
    def from_mapping(cls, answers: Mapping[Any, Any]) -> "AnswerSet":
        """Validate an ``{item: value}`` map keyed by int or decimal string.

        Items are checked in ascending order and the first offending one
        raises; no value is ever defaulted.

        Raises
        ------
        AnswerValidationError
            If an item is missing, non-numeric, non-integral or out of range.
        """
        values = []
        for item in range(1, ITEM_COUNT + 1):
            if item in answers:
                raw = answers[item]
            else:
                raw = answers.get(str(item))
            values.append(_coerce_answer(item, raw))
        return cls(values=tuple(values))

    def check_range(self) -> "AnswerSet":
        """Re-check every value against [-3, 3].

        ``from_mapping`` already does this; a directly constructed set only
        gets the length and strict-int checks from pydantic.
        """
        for item, value in enumerate(self.values, start=1):
            _coerce_answer(item, value)
        return self

    def raw(self, item: int) -> int:
        return self.values[item - 1]

    def effective(self, item: int) -> int:
        """Answer with its sign flipped for inverted items."""
        value = self.values[item - 1]
        return -value if item in INVERTED_ITEMS else value


def _coerce_answer(item: int, raw: Any) -> int:
    if raw is None:
        raise AnswerValidationError(item, raw, "missing")

    if isinstance(raw, bool):
        raise AnswerValidationError(item, raw, "not a number")
    if isinstance(raw, numbers.Integral):
        value = int(raw)
    else:
        if isinstance(raw, (numbers.Real, decimal.Decimal)):
            candidate = raw
        elif isinstance(raw, str):
            candidate = raw.strip()
        else:
            raise AnswerValidationError(item, raw, "not a number")
        try:
            # float(Decimal("sNaN")) raises too
            number = float(candidate)
        except ValueError:
            raise AnswerValidationError(item, raw, "not a number") from None
        if not math.isfinite(number):
            raise AnswerValidationError(item, raw, "not a number")
        if not number.is_integer():
            raise AnswerValidationError(item, raw, "not an integer")
        value = int(number)

    if not MIN_ANSWER <= value <= MAX_ANSWER:
        raise AnswerValidationError(
            item, raw, f"outside [{MIN_ANSWER}, {MAX_ANSWER}]"
        )
    return value


class Scorer:
    """Turns an answer map into a ``ClassificationResult``.

    Thresholds are class-level attributes so they can be introspected or
    overridden in tests.
    """

    CONSISTENCY_THRESHOLD: float = 0.70
    VARIABILITY_THRESHOLD: float = 0.70
    ATYPICAL_THRESHOLD: int = 10
    MAX_PAIR_DIFFERENCE: float = 6.0

    def __init__(
        self,
        variant: ScoringVariant | None = None,
        clamp_consistency: bool = False,
    ) -> None:
        self.variant = variant or get_variant(DEFAULT_VARIANT_NAME)
        self.clamp_consistency = clamp_consistency

    def score(self, answers: AnswerSet | Mapping[Any, Any]) -> ClassificationResult:
        if isinstance(answers, AnswerSet):
            answers.check_range()
        else:
            answers = AnswerSet.from_mapping(answers)

        sums = tuple(
            sum(answers.effective(i) for i in items) for items in DIMENSION_ITEMS
        )

        letters: list[str] = []
        tie_breakers: list[int | None] = []
        for index in range(4):
            letter, broken_by = self._resolve_letter(index, sums)
            letters.append(letter)
            tie_breakers.append(broken_by)

        marker = self.variant.unresolved_marker
        unresolved = tuple(i + 1 for i, letter in enumerate(letters) if letter == marker)
        code = "".join(letters)
        family = self.variant.family_for(letters[2], letters[3])
        level = introspection_level(sums[5])

        dimensions = []
        for index, raw in enumerate(sums):
            dimensions.append(
                DimensionScore(
                    dimension=index + 1,
                    key=DIMENSION_KEYS[index],
                    raw=raw,
                    intensity=intensity(raw),
                    polarity=letters[index] if index < 4 else None,
                    tie_broken_by=tie_breakers[index] if index < 4 else None,
                    level=level if index == 5 else None,
                )
            )

        quality = self._assess_quality(answers, sums)

        logger.debug(
            "scoring_complete",
            variant=self.variant.name,
            dimensions=list(sums),
            code=code,
            family=family,
            unresolved=list(unresolved),
            flags=list(quality.flags),
        )

        return ClassificationResult(
            variant=self.variant.name,
            dimensions=tuple(dimensions),
            letters=tuple(letters),
            code=code,
            family=family,
            unresolved_dimensions=unresolved,
            introspection_level=level,
            quality=quality,
        )

    # ── Polarity + tie-break ──────────────────────────────────────────────

    def _resolve_letter(self, index: int, sums: tuple[int, ...]) -> tuple[str, int | None]:
        """Return ``(letter, tie-break dimension or None)`` for D1..D4."""
        poles = self.variant.poles[index]
        letter = poles.letter_for(sums[index])
        if letter is not None:
            return letter, None
        for dimension in self.variant.tie_break_order:
            letter = poles.letter_for(sums[dimension - 1])
            if letter is not None:
                return letter, dimension
        return self.variant.unresolved_marker, None

    # ── Quality ───────────────────────────────────────────────────────────

    def _assess_quality(self, answers: AnswerSet, sums: tuple[int, ...]) -> QualityAssessment:
        differences = [
            abs(answers.raw(direct) - (-answers.raw(reverse)))
            for direct, reverse in MIRROR_PAIRS
        ]
        mean_difference = sum(differences) / len(differences)
        consistency = 1 - (mean_difference / self.MAX_PAIR_DIFFERENCE)
        if self.clamp_consistency:
            consistency = max(0.0, min(1.0, consistency))

        variability = statistics.pstdev(answers.values)

        flags: list[str] = []
        if consistency < self.CONSISTENCY_THRESHOLD:
            flags.append("low_consistency")
        if variability < self.VARIABILITY_THRESHOLD:
            flags.append("low_variability")
        if max(abs(s) for s in sums) > self.ATYPICAL_THRESHOLD:
            flags.append("atypical_profile")
        if not flags:
            flags.append("ok")

        return QualityAssessment(
            mirror_consistency=float(consistency),
            response_variability=float(variability),
            flags=tuple(flags),
        )


# ──────────────────────────────────────────────────────────────────────────────
# Module-level helpers
# ──────────────────────────────────────────────────────────────────────────────

def intensity(raw: int) -> str:
    """Map a dimension sum to its intensity band."""
    magnitude = abs(raw)
    if magnitude == 0:
        return "none"
    if magnitude <= 2:
        return "light"
    if magnitude <= 5:
        return "moderate"
    if magnitude <= 8:
        return "marked"
    return "very_marked"


def introspection_level(d6: int) -> str:
    if d6 >= 8:
        return "hyper-introspective"
    if d6 >= 4:
        return "introspective"
    if d6 >= 1:
        return "slightly-introspective"
    if d6 >= -3:
        return "balanced"
    if d6 >= -7:
        return "mechanical"
    return "hyper-mechanical"


def build_scorer(settings: Settings | None = None, variant_name: str | None = None) -> Scorer:
    """Construct a ``Scorer`` from application settings.

    ``variant_name`` overrides ``SCORING_VARIANT``; a configured
    ``TIE_BREAK_ORDER`` replaces the variant's own order.
    """
    settings = settings or get_settings()
    variant = get_variant(variant_name or settings.SCORING_VARIANT)
    if settings.TIE_BREAK_ORDER is not None:
        variant = variant.with_tie_break_order(settings.TIE_BREAK_ORDER)
    return Scorer(variant, clamp_consistency=settings.CLAMP_MIRROR_CONSISTENCY)


def score(
    answers: AnswerSet | Mapping[Any, Any],
    variant: ScoringVariant | None = None,
) -> ClassificationResult:
    """Score ``answers`` with ``variant`` (default ``tpcs_difa``)."""
    return Scorer(variant).score(answers)
