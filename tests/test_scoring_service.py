"""Unit tests for the Scorer — dimensions, polarity, tie-break, quality."""
import statistics
from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.exceptions import AnswerValidationError
from app.services.scoring_service import (
    AnswerSet,
    Scorer,
    build_scorer,
    intensity,
    introspection_level,
    score,
)
from app.config import Settings
from app.services.scoring_variants import TPCS_DIFA_FR, TPCS_DIFA_L


@pytest.fixture
def scorer():
    return Scorer()


class TestAnswerValidation:
    """Answer validation fails fast with the offending item."""

    def test_missing_item(self, answers_with):
        """A missing item is reported with its index."""
        answers = answers_with({})
        del answers["7"]
        with pytest.raises(AnswerValidationError) as exc_info:
            AnswerSet.from_mapping(answers)
        assert exc_info.value.item == 7
        assert exc_info.value.raw_value is None

    def test_none_value_is_missing(self, answers_with):
        """An explicit null counts as missing."""
        with pytest.raises(AnswerValidationError) as exc_info:
            AnswerSet.from_mapping(answers_with({12: None}))
        assert exc_info.value.item == 12
        assert exc_info.value.reason == "missing"

    def test_fractional_value_rejected(self, answers_with):
        """Non-integral numbers are rejected with the raw value."""
        with pytest.raises(AnswerValidationError) as exc_info:
            AnswerSet.from_mapping(answers_with({5: 3.5}))
        assert exc_info.value.item == 5
        assert exc_info.value.raw_value == 3.5

    def test_out_of_range_string_rejected(self, answers_with):
        """Numeric strings are range-checked like numbers."""
        with pytest.raises(AnswerValidationError) as exc_info:
            AnswerSet.from_mapping(answers_with({9: "4"}))
        assert exc_info.value.item == 9
        assert exc_info.value.raw_value == "4"

    @pytest.mark.parametrize("raw", ["abc", True, [1], float("nan"), 4, -4])
    def test_invalid_values(self, answers_with, raw):
        """Non-numeric, boolean, NaN and out-of-range values all fail."""
        with pytest.raises(AnswerValidationError) as exc_info:
            AnswerSet.from_mapping(answers_with({2: raw}))
        assert exc_info.value.item == 2

    def test_first_offending_item_reported(self, answers_with):
        """Items are checked in ascending order."""
        with pytest.raises(AnswerValidationError) as exc_info:
            AnswerSet.from_mapping(answers_with({10: 9, 3: "x"}))
        assert exc_info.value.item == 3

    def test_integral_numbers_and_strings_accepted(self, answers_with):
        """Integral floats and padded numeric strings coerce to int."""
        answer_set = AnswerSet.from_mapping(answers_with({1: 3.0, 2: "-2", 3: " 1 "}))
        assert answer_set.values[:3] == (3, -2, 1)

    def test_integer_keys_accepted(self):
        """Int keys work as well as string keys."""
        answer_set = AnswerSet.from_mapping({i: 1 for i in range(1, 25)})
        assert answer_set.values == (1,) * 24

    @pytest.mark.parametrize("value", [3, -3])
    def test_inclusive_bounds(self, scorer, answers_from, value):
        """Both ends of [-3, 3] are valid."""
        result = scorer.score(answers_from([value] * 24))
        assert len(result.code) == 4

    def test_effective_value_inverts_even_items(self, answers_with):
        """Even items are sign-flipped, odd items are not."""
        answer_set = AnswerSet.from_mapping(answers_with({1: 2, 2: 2}))
        assert answer_set.effective(1) == 2
        assert answer_set.effective(2) == -2

    def test_decimal_values(self, answers_with):
        """Integral Decimals are accepted; fractional ones are not."""
        answer_set = AnswerSet.from_mapping(answers_with({1: Decimal("2"), 2: Decimal("-3.0")}))
        assert answer_set.values[:2] == (2, -3)
        with pytest.raises(AnswerValidationError) as exc_info:
            AnswerSet.from_mapping(answers_with({4: Decimal("2.5")}))
        assert exc_info.value.item == 4
        assert exc_info.value.reason == "not an integer"

    def test_direct_answer_set_range_checked_on_score(self, scorer):
        """A directly built AnswerSet cannot smuggle out-of-range values."""
        with pytest.raises(AnswerValidationError) as exc_info:
            scorer.score(AnswerSet(values=(4,) + (0,) * 23))
        assert exc_info.value.item == 1
        assert exc_info.value.raw_value == 4

    def test_direct_answer_set_reports_first_bad_item(self, scorer):
        """Range re-check walks items in ascending order."""
        values = [0] * 24
        values[9] = -5
        values[17] = 7
        with pytest.raises(AnswerValidationError) as exc_info:
            scorer.score(AnswerSet(values=tuple(values)))
        assert exc_info.value.item == 10

    def test_direct_answer_set_rejects_bools(self):
        """Booleans are not coerced to 0/1 on direct construction."""
        with pytest.raises(ValidationError):
            AnswerSet(values=(True,) * 24)

    def test_valid_direct_answer_set_scores(self, scorer, sample_answers):
        """A valid directly built set scores like its mapping."""
        values = tuple(sample_answers[str(i)] for i in range(1, 25))
        assert scorer.score(AnswerSet(values=values)) == scorer.score(sample_answers)


class TestDimensions:
    """Dimension sums and their bands."""

    def test_sample_dimensions(self, scorer, sample_answers):
        """Reference answers produce the known D1..D6 sums."""
        result = scorer.score(sample_answers)
        assert [d.raw for d in result.dimensions] == [6, -6, 6, -4, 0, 5]
        assert [d.key for d in result.dimensions] == [
            "attention", "reward", "emotion", "decision", "context", "introspection",
        ]

    def test_inverted_items_align_direct_and_reverse(self, scorer, answers_with):
        """Agreeing with a direct item and disagreeing with its reverse adds up."""
        result = scorer.score(answers_with({1: 3, 2: -3, 3: 3, 4: -3}))
        d1 = result.dimension(1)
        assert d1.raw == 12
        assert d1.polarity == "E"
        assert d1.intensity == "very_marked"
        assert "atypical_profile" in result.quality.flags

    @pytest.mark.parametrize(
        "raw,expected",
        [(0, "none"), (2, "light"), (-3, "moderate"), (5, "moderate"),
         (6, "marked"), (-8, "marked"), (9, "very_marked"), (-12, "very_marked")],
    )
    def test_intensity_bands(self, raw, expected):
        """Band edges for the dimension intensity."""
        assert intensity(raw) == expected

    @pytest.mark.parametrize(
        "d6,expected",
        [(12, "hyper-introspective"), (4, "introspective"), (1, "slightly-introspective"),
         (0, "balanced"), (-3, "balanced"), (-4, "mechanical"), (-8, "hyper-mechanical")],
    )
    def test_introspection_levels(self, d6, expected):
        """Band edges for the D6 introspection level."""
        assert introspection_level(d6) == expected

    def test_d6_carries_level_d5_carries_no_letter(self, scorer, sample_answers):
        """Only D6 carries a level and D5 never gets a letter."""
        result = scorer.score(sample_answers)
        assert result.dimension(6).level == "introspective"
        assert result.introspection_level == "introspective"
        assert result.dimension(5).polarity is None


class TestClassification:
    """Code and family assembly."""

    def test_sample_code_and_family(self, scorer, sample_answers):
        """Reference answers classify as EIRD / Beta."""
        result = scorer.score(sample_answers)
        assert result.letters == ("E", "I", "R", "D")
        assert result.code == "EIRD"
        assert result.family == "Beta"
        assert result.unresolved_dimensions == ()

    def test_alternate_vocabulary(self, sample_answers):
        """The L vocabulary swaps the D1 positive letter."""
        result = Scorer(TPCS_DIFA_L).score(sample_answers)
        assert result.code == "LIRD"
        assert result.variant == "tpcs_difa_l"

    def test_french_families(self, sample_answers):
        """French family labels sit in the same positions."""
        result = Scorer(TPCS_DIFA_FR).score(sample_answers)
        assert result.family == "Inspiré"

    def test_module_level_score(self, sample_answers):
        """The module-level helper uses the default variant."""
        assert score(sample_answers).code == "EIRD"


class TestTieBreak:
    """Zero-sum dimensions resolved through D6 (or D5 then D6)."""

    def test_d6_positive_resolves_positive_pole(self, scorer, answers_with):
        """A positive D6 picks the positive pole for a zero sum."""
        # D1 = 1 - 1 = 0, D6 = 2 + 2 = 4
        result = scorer.score(answers_with({1: 1, 2: 1, 21: 2, 22: -2}))
        assert result.dimension(1).raw == 0
        assert result.letters[0] == "E"
        assert result.dimension(1).tie_broken_by == 6
        assert result.code == "EARC"
        assert result.family == "Alpha"

    def test_d6_negative_resolves_negative_pole(self, scorer, answers_with):
        """A negative D6 picks the negative pole for a zero sum."""
        result = scorer.score(answers_with({1: 1, 2: 1, 21: -2, 22: 2}))
        assert result.letters[0] == "F"
        assert result.code == "FIED"
        assert result.family == "Delta"

    def test_d6_zero_leaves_unresolved(self, scorer, answers_with):
        """With D6 at zero the letter stays unresolved."""
        result = scorer.score(answers_with({1: 1, 2: 1, 5: 3}))
        assert result.letters[0] == "X"
        assert result.dimension(1).tie_broken_by is None
        assert result.letters[1] == "A"
        assert result.unresolved_dimensions == (1, 3, 4)

    def test_unresolved_family_falls_back(self, scorer, zero_answers):
        """Unresolved L3/L4 fall back to the variant family."""
        result = scorer.score(zero_answers)
        assert result.code == "XXXX"
        assert result.family == "Delta"
        assert result.unresolved_dimensions == (1, 2, 3, 4)

    def test_d5_consulted_before_d6(self, answers_with):
        """The FR variant tries D5 first."""
        # D5 = 2 (positive), D6 = -4 (negative)
        answers = answers_with({17: 1, 18: -1, 21: -2, 22: 2})
        default = Scorer().score(answers)
        chained = Scorer(TPCS_DIFA_FR).score(answers)
        assert default.code == "FIED"
        assert chained.code == "LARC"
        assert chained.family == "Dynamique"
        assert chained.dimension(1).tie_broken_by == 5

    def test_d5_zero_falls_through_to_d6(self, answers_with):
        """A zero D5 hands over to D6."""
        result = Scorer(TPCS_DIFA_FR).score(answers_with({21: 2, 22: -2}))
        assert result.code == "LARC"
        assert result.dimension(2).tie_broken_by == 6


class TestQuality:
    """Mirror consistency, variability and flags."""

    def test_all_zero_answers(self, scorer, zero_answers):
        """All-neutral answers are consistent but flat."""
        quality = scorer.score(zero_answers).quality
        assert quality.response_variability == 0.0
        assert quality.mirror_consistency == 1.0
        assert quality.flags == ("low_variability",)

    def test_symmetric_answers_fully_consistent(self, scorer, symmetric_answers):
        """Perfect mirror answers score 1.0 consistency."""
        quality = scorer.score(symmetric_answers).quality
        assert quality.mirror_consistency == 1.0
        assert quality.flags == ("ok",)

    def test_sample_quality(self, scorer, sample_answers):
        """Reference answers give the expected quality metrics."""
        quality = scorer.score(sample_answers).quality
        # Pair differences |a + b| sum to 7 over 12 pairs.
        assert quality.mirror_consistency == pytest.approx(1 - (7 / 12) / 6)
        values = [sample_answers[str(i)] for i in range(1, 25)]
        assert quality.response_variability == pytest.approx(statistics.pstdev(values))
        assert quality.flags == ("ok",)

    def test_contradictory_answers(self, scorer, answers_from):
        """Agreeing with every item is fully inconsistent."""
        quality = scorer.score(answers_from([3] * 24)).quality
        assert quality.mirror_consistency == 0.0
        assert quality.flags == ("low_consistency", "low_variability")

    def test_population_standard_deviation(self, scorer, answers_with):
        """Variability is the population standard deviation."""
        quality = scorer.score(answers_with({1: 3, 2: -3, 3: 3, 4: -3})).quality
        # 4 values of magnitude 3, mean 0: sqrt(36 / 24)
        assert quality.response_variability == pytest.approx(1.5 ** 0.5)

    def test_atypical_threshold_is_strict(self, scorer, symmetric_answers):
        """A dimension at exactly 10 is not atypical."""
        # symmetric_answers has D1 = 10 and D4 = -10
        result = scorer.score(symmetric_answers)
        assert max(abs(d.raw) for d in result.dimensions) == 10
        assert "atypical_profile" not in result.quality.flags

    def test_clamp_option(self, answers_from):
        """Clamping keeps consistency within [0, 1]."""
        result = Scorer(clamp_consistency=True).score(answers_from([3] * 24))
        assert 0.0 <= result.quality.mirror_consistency <= 1.0


class TestDeterminism:

    def test_identical_input_identical_output(self, scorer, sample_answers):
        """Same answers always give the same result."""
        first = scorer.score(sample_answers)
        second = Scorer().score(dict(sample_answers))
        assert first == second
        assert first.model_dump_json() == second.model_dump_json()


class TestBuildScorer:

    def test_variant_from_settings(self):
        """SCORING_VARIANT selects the variant."""
        scorer = build_scorer(Settings(SCORING_VARIANT="tpcs_difa_fr"))
        assert scorer.variant.name == "tpcs_difa_fr"
        assert scorer.variant.tie_break_order == (5, 6)

    def test_tie_break_override(self):
        """TIE_BREAK_ORDER replaces the variant order."""
        scorer = build_scorer(Settings(SCORING_VARIANT="tpcs_difa_fr", TIE_BREAK_ORDER=[6]))
        assert scorer.variant.tie_break_order == (6,)

    def test_explicit_variant_name_wins(self):
        """An explicit name beats the configured variant."""
        scorer = build_scorer(Settings(), variant_name="tpcs_difa_l")
        assert scorer.variant.name == "tpcs_difa_l"

    def test_clamp_setting(self):
        """CLAMP_MIRROR_CONSISTENCY reaches the scorer."""
        scorer = build_scorer(Settings(CLAMP_MIRROR_CONSISTENCY=True))
        assert scorer.clamp_consistency is True

    def test_empty_tie_break_override_disables_tie_break(self, answers_with):
        """An explicit empty TIE_BREAK_ORDER is honoured, not ignored."""
        scorer = build_scorer(Settings(SCORING_VARIANT="tpcs_difa_fr", TIE_BREAK_ORDER=[]))
        assert scorer.variant.tie_break_order == ()
        result = scorer.score(answers_with({17: 1, 18: -1, 21: 2, 22: -2}))
        assert result.dimension(1).raw == 0
        assert result.letters[0] == "X"
        assert result.dimension(1).tie_broken_by is None

    def test_unset_tie_break_keeps_variant_order(self):
        """Leaving TIE_BREAK_ORDER unset keeps the variant's own order."""
        scorer = build_scorer(Settings(SCORING_VARIANT="tpcs_difa_fr", TIE_BREAK_ORDER=None))
        assert scorer.variant.tie_break_order == (5, 6)
