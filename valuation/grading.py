"""Letter grades derived from the composite score."""

from __future__ import annotations

from enum import Enum


class InvestmentGrade(str, Enum):
    """Ordinal investment grade; comparisons follow rank, not spelling."""

    AAA = "AAA"
    AA_PLUS = "AA+"
    AA = "AA"
    AA_MINUS = "AA-"
    A_PLUS = "A+"
    A = "A"
    A_MINUS = "A-"
    BBB_PLUS = "BBB+"
    BBB = "BBB"
    BBB_MINUS = "BBB-"
    BB_PLUS = "BB+"
    BB = "BB"
    BB_MINUS = "BB-"
    B_PLUS = "B+"
    B = "B"
    B_MINUS = "B-"

    @property
    def rank(self) -> int:
        """0 for B- up to 15 for AAA."""
        return _RANKS[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, InvestmentGrade):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, InvestmentGrade):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, InvestmentGrade):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, InvestmentGrade):
            return NotImplemented
        return self.rank >= other.rank

    def __str__(self) -> str:
        return self.value


# Descending lower bounds; the first threshold the score reaches wins.
GRADE_THRESHOLDS: tuple[tuple[float, InvestmentGrade], ...] = (
    (95, InvestmentGrade.AAA),
    (90, InvestmentGrade.AA_PLUS),
    (85, InvestmentGrade.AA),
    (82, InvestmentGrade.AA_MINUS),
    (78, InvestmentGrade.A_PLUS),
    (75, InvestmentGrade.A),
    (70, InvestmentGrade.A_MINUS),
    (65, InvestmentGrade.BBB_PLUS),
    (60, InvestmentGrade.BBB),
    (55, InvestmentGrade.BBB_MINUS),
    (50, InvestmentGrade.BB_PLUS),
    (45, InvestmentGrade.BB),
    (40, InvestmentGrade.BB_MINUS),
    (35, InvestmentGrade.B_PLUS),
    (30, InvestmentGrade.B),
)
FLOOR_GRADE = InvestmentGrade.B_MINUS

_RANKS = {
    grade: rank
    for rank, grade in enumerate(
        [FLOOR_GRADE, *(grade for _, grade in reversed(GRADE_THRESHOLDS))]
    )
}


def classify(score: float) -> InvestmentGrade:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return FLOOR_GRADE


def parse_grade(text: str) -> InvestmentGrade:
    """Map a grade string as published by the ledger back onto the enum."""

    normalized = text.strip().upper().replace("−", "-")
    return InvestmentGrade(normalized)


__all__ = ["InvestmentGrade", "GRADE_THRESHOLDS", "FLOOR_GRADE", "classify", "parse_grade"]
