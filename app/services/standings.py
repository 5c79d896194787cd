"""
Standings aggregation

A Standing is derived per user from (Prediction, Match) pairs within a scope:
a season, or all time. Points are recomputed with the scoring engine so a
standing always equals the sum of the per-match breakdowns, whether or not
the rescoring job has caught up with the latest results.
"""

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from app import db
from app.errors import InvalidInput, NotFound
from app.models import Match, MatchStatus, Prediction, Season, User
from app.utils.cache_utils import cached_query
from app.utils.scoring import score_pair
from app.utils.timezone_utils import ensure_utc

logger = logging.getLogger(__name__)

ALL_TIME = "all-time"
LATEST = datetime.max.replace(tzinfo=timezone.utc)

COMPONENT_FIELDS = (
    ("points_winner", "winner"),
    ("points_halftime", "halftime"),
    ("points_difference", "difference"),
    ("points_exact", "exact"),
)


def calculate_accuracy(correct, total):
    """Percentage of correct predictions, one decimal, half rounded up; 0 when total is 0"""
    if not total:
        return 0.0
    percentage = Decimal(correct * 100) / Decimal(total)
    return float(percentage.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _empty_standing(user):
    return {
        "user_id": user.id,
        "display_name": user.full_name,
        "avatar_url": user.avatar_url,
        "total_points": 0,
        "total_predictions": 0,
        "correct_predictions": 0,
        "accuracy": 0.0,
        "points_winner": 0,
        "points_halftime": 0,
        "points_difference": 0,
        "points_exact": 0,
        "pending_predictions": 0,
    }


def standing_sort_key(standing, created_at=None):
    """Points desc, accuracy desc, exact points desc, oldest account, lowest id"""
    return (
        -standing["total_points"],
        -standing["accuracy"],
        -standing["points_exact"],
        ensure_utc(created_at) if created_at else LATEST,
        standing["user_id"],
    )


def build_standings(rows):
    """
    Aggregate (prediction, match, user) rows into ordered standings.

    Rows whose match is not finished only count toward
    ``pending_predictions``. Malformed rows are skipped.
    """
    standings = {}
    created = {}

    for prediction, match, user in rows:
        if prediction is None or user is None:
            continue

        standing = standings.get(user.id)
        if standing is None:
            standing = standings[user.id] = _empty_standing(user)
            created[user.id] = user.created_at

        try:
            breakdown = score_pair(prediction, match)
        except InvalidInput as e:
            logger.warning(f"Skipping unscorable prediction {prediction.id}: {e.message}")
            continue

        if breakdown is None:
            standing["pending_predictions"] += 1
            continue

        standing["total_predictions"] += 1
        standing["total_points"] += breakdown.total
        if breakdown.total > 0:
            standing["correct_predictions"] += 1
        for field, component in COMPONENT_FIELDS:
            standing[field] += getattr(breakdown, component)

    for standing in standings.values():
        standing["accuracy"] = calculate_accuracy(
            standing["correct_predictions"], standing["total_predictions"]
        )

    return sorted(
        standings.values(),
        key=lambda s: standing_sort_key(s, created.get(s["user_id"])),
    )


def normalize_scope(scope):
    """Return ALL_TIME or an existing season id; None means the active season"""
    if scope is None:
        season = Season.get_current_season()
        if not season:
            raise NotFound("No active season")
        return season.id

    if scope == ALL_TIME:
        return ALL_TIME

    try:
        season_id = int(scope)
    except (TypeError, ValueError):
        raise InvalidInput(f"Scope must be a season id or '{ALL_TIME}', got {scope!r}")

    if db.session.get(Season, season_id) is None:
        raise NotFound(f"Season {season_id} not found")
    return season_id


def _scope_rows(scope):
    query = (
        db.session.query(Prediction, Match, User)
        .join(Match, Prediction.match_id == Match.id)
        .join(User, Prediction.user_id == User.id)
    )
    if scope != ALL_TIME:
        query = query.filter(Prediction.season_id == scope)
    return query.order_by(Prediction.id).all()


def compute_standings(scope):
    """Uncached standings for a normalized scope"""
    return build_standings(_scope_rows(scope))


@cached_query("standings")
def _cached_standings(scope):
    return compute_standings(scope)


def get_standings(scope=None):
    """Ordered standings for a season id, ALL_TIME, or the active season (None)"""
    return _cached_standings(normalize_scope(scope))


def get_user_summary(user_id, scope=None):
    """Standing of a single user within a scope, zeroed if they have no predictions"""
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")

    for standing in get_standings(scope):
        if standing["user_id"] == user_id:
            return standing
    return _empty_standing(user)


def points_progression(scope=None):
    """
    Per-match running totals within a scope, oldest kickoff first.

    Only finished matches with at least one prediction in scope appear.
    Each entry carries the points a user earned on that match and their
    total after it.

    Returns:
        list: one dict per match with an ``entries`` list ordered by user id
    """
    scope = normalize_scope(scope)

    query = (
        db.session.query(Prediction, Match, User)
        .join(Match, Prediction.match_id == Match.id)
        .join(User, Prediction.user_id == User.id)
        .filter(Match.status == MatchStatus.FINISHED)
    )
    if scope != ALL_TIME:
        query = query.filter(Prediction.season_id == scope)
    rows = query.order_by(Match.kickoff_utc, Match.id, User.id).all()

    running = {}
    progression = []
    current = None

    for prediction, match, user in rows:
        if current is None or current["match_id"] != match.id:
            current = {
                "match_id": match.id,
                "home_team": match.home_team,
                "away_team": match.away_team,
                "kickoff_utc": ensure_utc(match.kickoff_utc).isoformat(),
                "result": f"{match.home_score}-{match.away_score}",
                "has_halftime": match.has_halftime_result,
                "entries": [],
            }
            progression.append(current)

        try:
            breakdown = score_pair(prediction, match)
        except InvalidInput as e:
            logger.warning(f"Skipping unscorable prediction {prediction.id}: {e.message}")
            continue

        points = breakdown.total if breakdown else 0
        running[user.id] = running.get(user.id, 0) + points
        current["entries"].append(
            {
                "user_id": user.id,
                "display_name": user.full_name,
                "points": points,
                "running_total": running[user.id],
            }
        )

    return progression
