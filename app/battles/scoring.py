"""Submission scoring."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

from app.jobs.status import SUCCESS

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def to_decimal(value: Union[str, int, float, Decimal, None]) -> Decimal:
    if value is None or value == "":
        return ZERO
    return Decimal(str(value))


def score_submission(
    outcomes: Iterable[str],
    total_test_cases: int,
    question_points: Union[str, int, float, Decimal],
) -> Decimal:
    """
    points / total_test_cases * passed, rounded to two places.

    >>> score_submission(["Success", "Success", "Fail", "Fail"], 4, 10)
    Decimal('5.00')
    """
    passed = sum(1 for outcome in outcomes if outcome == SUCCESS)
    if passed == 0 or total_test_cases <= 0:
        return ZERO
    points = to_decimal(question_points)
    return (points / Decimal(total_test_cases) * passed).quantize(CENTS, rounding=ROUND_HALF_UP)
