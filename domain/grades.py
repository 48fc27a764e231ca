"""Grade arithmetic shared with the gradebook utility."""

import math

MIN_GRADE = 1.0
MAX_GRADE = 6.0


def round_grade(value: float) -> float:
    """Round to the nearest quarter (halves go up) and clamp to [1.0, 6.0]."""
    grade = math.floor(value * 4 + 0.5) / 4.0
    return min(MAX_GRADE, max(MIN_GRADE, grade))


def calculate_grade(points: float, max_points: float, gifted_points: float = 0.0) -> float:
    """Linear grade: (points / (max - gifted)) * 5 + 1, rounded and clamped."""
    adjusted_max = max_points - gifted_points
    if adjusted_max <= 0:
        return MIN_GRADE
    return round_grade(points / adjusted_max * 5.0 + 1.0)
