import pytest

from valuation.grading import GRADE_THRESHOLDS, InvestmentGrade, classify, parse_grade


@pytest.mark.parametrize(
    ("score", "expected"),
    [
        (100, InvestmentGrade.AAA),
        (95, InvestmentGrade.AAA),
        (94, InvestmentGrade.AA_PLUS),
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
        (29, InvestmentGrade.B_MINUS),
        (10, InvestmentGrade.B_MINUS),
        (0, InvestmentGrade.B_MINUS),
    ],
)
def test_threshold_table(score, expected):
    assert classify(score) is expected


def test_classifier_is_monotonic_over_the_score_range():
    grades = [classify(score) for score in range(0, 101)]
    for lower, higher in zip(grades, grades[1:]):
        assert higher >= lower


def test_every_grade_is_reachable_and_each_score_maps_to_one():
    grades = {classify(score) for score in range(0, 101)}
    assert grades == set(InvestmentGrade)


def test_thresholds_are_strictly_descending():
    bounds = [threshold for threshold, _ in GRADE_THRESHOLDS]
    assert bounds == sorted(bounds, reverse=True)
    assert len(set(bounds)) == len(bounds)


def test_grade_order_follows_rank_not_spelling():
    assert InvestmentGrade.AAA > InvestmentGrade.AA_PLUS
    assert InvestmentGrade.BBB_MINUS > InvestmentGrade.BB_PLUS
    assert InvestmentGrade.B_MINUS < InvestmentGrade.B
    assert max(InvestmentGrade) is InvestmentGrade.AAA
    assert InvestmentGrade.B_MINUS.rank == 0
    assert InvestmentGrade.AAA.rank == 15


def test_out_of_range_scores_are_still_classified():
    assert classify(150) is InvestmentGrade.AAA
    assert classify(-10) is InvestmentGrade.B_MINUS
    assert classify(94.99) is InvestmentGrade.AA_PLUS


def test_parse_grade_accepts_unicode_minus():
    assert parse_grade("AA−") is InvestmentGrade.AA_MINUS
    assert parse_grade(" bbb+ ") is InvestmentGrade.BBB_PLUS
    with pytest.raises(ValueError):
        parse_grade("C")
