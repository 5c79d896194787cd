"""
Scoring Engine for the Porra prediction league

This module turns a (prediction, actual result) pair into a points breakdown.
It is pure: no database access, no clock. Persisting the breakdown onto
predictions is done by app/services/scoring_service.py, and aggregating it
into standings by app/services/standings.py.

Standard mode awards four independent components:

    winner      +1  same outcome (home win / draw / away win)
    halftime    +2  exact halftime score, only when the halftime result is known
    difference  +3  same goal difference
    exact       +4  exact full-time score

Legacy mode (matches played before the four-tier system) awards a single
point for an exact full-time score. That point is carried by the exact
component so the total always equals the sum of the components.
"""

from collections import namedtuple

from app.errors import InvalidInput

STANDARD = "standard"
LEGACY = "legacy"
SCORING_MODES = (STANDARD, LEGACY)

POINTS_WINNER = 1
POINTS_HALFTIME = 2
POINTS_DIFFERENCE = 3
POINTS_EXACT = 4
POINTS_LEGACY_EXACT = 1

MAX_POINTS = POINTS_WINNER + POINTS_HALFTIME + POINTS_DIFFERENCE + POINTS_EXACT


class PointsBreakdown(
    namedtuple("PointsBreakdown", ["winner", "halftime", "difference", "exact"])
):
    """Points awarded per component for a single prediction"""

    __slots__ = ()

    @property
    def total(self):
        return self.winner + self.halftime + self.difference + self.exact

    def to_dict(self):
        return {
            "points_winner": self.winner,
            "points_halftime": self.halftime,
            "points_difference": self.difference,
            "points_exact": self.exact,
            "total": self.total,
        }


def validate_score(value, field):
    """Return value if it is a non-negative integer, else raise InvalidInput"""
    # bool is an int subclass but never a valid score
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{field} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidInput(f"{field} must not be negative, got {value}")
    return value


def validate_mode(mode):
    if mode not in SCORING_MODES:
        raise InvalidInput(
            f"Unknown scoring mode {mode!r}; expected one of {', '.join(SCORING_MODES)}"
        )
    return mode


def _sign(value):
    return (value > 0) - (value < 0)


def score_prediction(
    predicted_home,
    predicted_away,
    predicted_home_ht,
    predicted_away_ht,
    actual_home,
    actual_away,
    actual_home_ht=None,
    actual_away_ht=None,
    mode=STANDARD,
):
    """
    Score one prediction against a final result.

    The halftime component requires both actual halftime values to be
    present. A missing halftime result is never treated as 0-0.

    Raises:
        InvalidInput: a score is negative or not an integer, or mode is unknown
    """
    validate_mode(mode)
    validate_score(predicted_home, "predicted_home")
    validate_score(predicted_away, "predicted_away")
    validate_score(predicted_home_ht, "predicted_home_ht")
    validate_score(predicted_away_ht, "predicted_away_ht")
    validate_score(actual_home, "actual_home")
    validate_score(actual_away, "actual_away")

    halftime_known = actual_home_ht is not None and actual_away_ht is not None
    if actual_home_ht is not None:
        validate_score(actual_home_ht, "actual_home_ht")
    if actual_away_ht is not None:
        validate_score(actual_away_ht, "actual_away_ht")

    is_exact = predicted_home == actual_home and predicted_away == actual_away

    if mode == LEGACY:
        return PointsBreakdown(0, 0, 0, POINTS_LEGACY_EXACT if is_exact else 0)

    predicted_diff = predicted_home - predicted_away
    actual_diff = actual_home - actual_away

    winner = POINTS_WINNER if _sign(predicted_diff) == _sign(actual_diff) else 0

    halftime = 0
    if (
        halftime_known
        and predicted_home_ht == actual_home_ht
        and predicted_away_ht == actual_away_ht
    ):
        halftime = POINTS_HALFTIME

    difference = POINTS_DIFFERENCE if predicted_diff == actual_diff else 0
    exact = POINTS_EXACT if is_exact else 0

    return PointsBreakdown(winner, halftime, difference, exact)


def score_pair(prediction, match):
    """
    Score a Prediction model against its Match.

    Returns None when the match has no final result yet (not scorable).
    """
    if match is None or not match.is_finished:
        return None
    if match.home_score is None or match.away_score is None:
        return None

    return score_prediction(
        prediction.home_score,
        prediction.away_score,
        prediction.home_score_halftime if prediction.home_score_halftime is not None else 0,
        prediction.away_score_halftime if prediction.away_score_halftime is not None else 0,
        match.home_score,
        match.away_score,
        match.home_score_halftime,
        match.away_score_halftime,
        mode=match.scoring_mode or STANDARD,
    )
