from dataclasses import dataclass
import math

BASE_POINTS = 100
TIME_BONUS_MAX = 20
STREAK_BONUS_STEP = 5
STREAK_BONUS_MAX = 50


@dataclass(frozen=True)
class Score:
    points: int
    accuracy_points: int
    time_bonus: int
    streak_bonus: int


def accuracy_points(cents_deviation: float) -> int:
    """Base points for a correct note, reduced as intonation drifts."""
    cents = abs(cents_deviation)
    if cents > 50:
        return 50
    if cents > 20:
        return 75
    if cents > 10:
        return 90
    return BASE_POINTS


def score_correct(cents_deviation: float, remaining_fraction: float, streak: int) -> Score:
    """Points awarded for a correct note.

    Args:
        cents_deviation: Detected vs expected frequency, in cents
        remaining_fraction: Share of the judgment window still left, 0-1
        streak: Consecutive correct notes before this one
    """
    remaining = min(1.0, max(0.0, remaining_fraction))
    base = accuracy_points(cents_deviation)
    time_bonus = int(math.floor(remaining * TIME_BONUS_MAX))
    streak_bonus = min(max(streak, 0) * STREAK_BONUS_STEP, STREAK_BONUS_MAX)
    return Score(base + time_bonus + streak_bonus, base, time_bonus, streak_bonus)
