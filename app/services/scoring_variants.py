"""
TPCS-DIFA — Scoring Variants

Deployments of the questionnaire share one scoring algorithm but differ in
their letter vocabulary, their family labels and the order in which
dimensions break polarity ties.  A ``ScoringVariant`` captures exactly those
differences as an immutable value; the ``Scorer`` is bound to one at
construction and never mutates it.

Registered variants
-------------------
- ``tpcs_difa``     E/F · A/I · R/E · C/D, Alpha/Beta/Gamma/Delta, tie-break D6
- ``tpcs_difa_l``   L/F · A/I · R/E · C/D, Alpha/Beta/Gamma/Delta, tie-break D6
- ``tpcs_difa_fr``  L/F · A/I · R/E · C/D, Dynamique/Inspiré/Centré/Réceptif,
  tie-break D5 then D6
"""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.exceptions import UnknownVariantError

# Dimensions allowed to break a polarity tie on D1..D4.
TIE_BREAK_DIMENSIONS: frozenset[int] = frozenset({5, 6})


class PolePair(BaseModel):
    """The two letters a classification dimension can resolve to."""

    model_config = ConfigDict(frozen=True)

    positive: str = Field(min_length=1, max_length=1)
    negative: str = Field(min_length=1, max_length=1)

    @model_validator(mode="after")
    def _poles_must_differ(self) -> "PolePair":
        if self.positive == self.negative:
            raise ValueError(f"Pole letters must differ, got {self.positive!r} twice")
        return self

    def letter_for(self, sign: int) -> str | None:
        """Return the pole letter for a sign, or ``None`` when the sign is 0."""
        if sign > 0:
            return self.positive
        if sign < 0:
            return self.negative
        return None


class ScoringVariant(BaseModel):
    """Letter vocabulary, family table and tie-break order for one deployment.

    ``families`` is keyed by the concatenated (L3, L4) letters, e.g. ``"RC"``,
    and must hold exactly one entry per combination of the two poles of D3
    and D4.  Anything else (including an unresolved letter) maps to
    ``fallback_family``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    poles: tuple[PolePair, PolePair, PolePair, PolePair]
    families: dict[str, str]
    fallback_family: str
    tie_break_order: tuple[int, ...] = (6,)
    unresolved_marker: str = Field(default="X", min_length=1, max_length=1)

    @field_validator("tie_break_order")
    @classmethod
    def _tie_break_dimensions_must_be_known(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        unknown = [d for d in v if d not in TIE_BREAK_DIMENSIONS]
        if unknown:
            raise ValueError(f"Tie-break dimensions must be D5 or D6, got {unknown}")
        if len(set(v)) != len(v):
            raise ValueError(f"Tie-break order contains duplicates: {list(v)}")
        return v

    @model_validator(mode="after")
    def _check_vocabulary(self) -> "ScoringVariant":
        expected = {
            l3 + l4
            for l3 in (self.poles[2].positive, self.poles[2].negative)
            for l4 in (self.poles[3].positive, self.poles[3].negative)
        }
        if set(self.families) != expected:
            raise ValueError(
                f"Family table keys must be {sorted(expected)}, got {sorted(self.families)}"
            )
        for pair in self.poles:
            if self.unresolved_marker in (pair.positive, pair.negative):
                raise ValueError(
                    f"Unresolved marker {self.unresolved_marker!r} clashes with a pole letter"
                )
        return self

    def family_for(self, l3: str, l4: str) -> str:
        return self.families.get(l3 + l4, self.fallback_family)

    def with_tie_break_order(self, order: Iterable[int]) -> "ScoringVariant":
        """Return a validated copy of this variant with another tie-break order."""
        data = self.model_dump()
        data["tie_break_order"] = tuple(order)
        return ScoringVariant.model_validate(data)


def _pairs(*letters: str) -> tuple[PolePair, PolePair, PolePair, PolePair]:
    it = iter(letters)
    return tuple(PolePair(positive=p, negative=n) for p, n in zip(it, it))  # type: ignore[return-value]


TPCS_DIFA = ScoringVariant(
    name="tpcs_difa",
    description="Reference vocabulary with Greek-letter families",
    poles=_pairs("E", "F", "A", "I", "R", "E", "C", "D"),
    families={"RC": "Alpha", "RD": "Beta", "EC": "Gamma", "ED": "Delta"},
    fallback_family="Delta",
)

TPCS_DIFA_L = ScoringVariant(
    name="tpcs_difa_l",
    description="Attention letter L instead of E, so no letter repeats across dimensions",
    poles=_pairs("L", "F", "A", "I", "R", "E", "C", "D"),
    families={"RC": "Alpha", "RD": "Beta", "EC": "Gamma", "ED": "Delta"},
    fallback_family="Delta",
)

TPCS_DIFA_FR = ScoringVariant(
    name="tpcs_difa_fr",
    description="French family labels, context dimension consulted before introspection",
    poles=_pairs("L", "F", "A", "I", "R", "E", "C", "D"),
    families={"RC": "Dynamique", "RD": "Inspiré", "EC": "Centré", "ED": "Réceptif"},
    fallback_family="Réceptif",
    tie_break_order=(5, 6),
)

DEFAULT_VARIANT_NAME = TPCS_DIFA.name

VARIANTS: dict[str, ScoringVariant] = {
    v.name: v for v in (TPCS_DIFA, TPCS_DIFA_L, TPCS_DIFA_FR)
}


def get_variant(name: str) -> ScoringVariant:
    """Look up a registered variant by name.

    Raises
    ------
    UnknownVariantError
        If ``name`` is not registered.
    """
    try:
        return VARIANTS[name]
    except KeyError:
        raise UnknownVariantError(name) from None
