"""
Rescoring of stored predictions

A match whose result changes in a way that affects points is flagged
``needs_rescore`` by Match.apply_result(). Rescoring is a separate, explicit
step: callers invoke rescore_match() right after committing the result, and
the scheduler retries anything still flagged via rescore_pending(). Scoring
is deterministic, so running it twice over the same match is harmless.
"""

import logging
from datetime import datetime, timezone

from app import db
from app.errors import NotFound
from app.models import Match, MatchStatus, Prediction
from app.utils.cache_utils import invalidate_standings
from app.utils.scoring import score_pair

logger = logging.getLogger(__name__)


def rescore_match(match, commit=True):
    """
    Write points onto every prediction of a match.

    Finished matches get a fresh breakdown; any other status clears stored
    points (a result that was withdrawn). Returns the number of predictions
    touched.
    """
    predictions = match.predictions.all()

    for prediction in predictions:
        breakdown = score_pair(prediction, match)
        if breakdown is None:
            prediction.clear_points()
        else:
            prediction.apply_points(breakdown)

    match.needs_rescore = False
    match.scored_at = datetime.now(timezone.utc)

    if commit:
        db.session.commit()
        invalidate_standings()

        from app.socketio_handlers import (
            broadcast_match_scored,
            broadcast_standings_updated,
        )

        broadcast_match_scored(match)
        broadcast_standings_updated()

    logger.info(
        f"Rescored match {match.id} ({match.home_team} vs {match.away_team}, "
        f"{match.status}): {len(predictions)} predictions"
    )
    return len(predictions)


def rescore_match_by_id(match_id):
    match = db.session.get(Match, match_id)
    if match is None:
        raise NotFound(f"Match {match_id} not found")
    return rescore_match(match)


def rescore_pending():
    """
    Rescore every match still flagged ``needs_rescore``.

    Each match is committed on its own so one failure does not block the
    others; failed matches stay flagged for the next run.

    Returns:
        dict with ``matches``, ``predictions`` and ``failed`` counters
    """
    pending = (
        Match.query.filter_by(needs_rescore=True).order_by(Match.kickoff_utc).all()
    )
    stats = {"matches": 0, "predictions": 0, "failed": 0}

    for match in pending:
        match_id = match.id
        try:
            stats["predictions"] += rescore_match(match)
            stats["matches"] += 1
        except Exception as e:
            db.session.rollback()
            stats["failed"] += 1
            logger.error(f"Rescoring match {match_id} failed: {e}", exc_info=True)

    if pending:
        logger.info(
            f"Pending rescore run: {stats['matches']} matches, "
            f"{stats['predictions']} predictions, {stats['failed']} failed"
        )
    return stats


def rescore_all(season_id=None):
    """Rescore every finished match (optionally only those with predictions in a season)"""
    query = Match.query.filter_by(status=MatchStatus.FINISHED)
    if season_id is not None:
        query = query.filter(
            Match.id.in_(
                db.session.query(Prediction.match_id).filter(
                    Prediction.season_id == season_id
                )
            )
        )

    total = 0
    for match in query.order_by(Match.kickoff_utc).all():
        total += rescore_match(match, commit=False)

    db.session.commit()
    invalidate_standings()
    return total


def find_scoring_mismatches():
    """
    Compare stored points with a fresh computation.

    Returns a list of dicts describing every prediction whose stored
    breakdown differs from what the scoring engine produces now, including
    finished matches whose predictions were never scored.
    """
    mismatches = []
    rows = (
        db.session.query(Prediction, Match)
        .join(Match, Prediction.match_id == Match.id)
        .order_by(Match.kickoff_utc, Prediction.id)
        .all()
    )

    for prediction, match in rows:
        expected = score_pair(prediction, match)
        stored = (
            prediction.points_winner,
            prediction.points_halftime,
            prediction.points_difference,
            prediction.points_exact,
            prediction.points,
        )
        wanted = (
            (None,) * 5
            if expected is None
            else tuple(expected) + (expected.total,)
        )
        if stored != wanted:
            mismatches.append(
                {
                    "prediction_id": prediction.id,
                    "match_id": match.id,
                    "user_id": prediction.user_id,
                    "stored": stored,
                    "expected": wanted,
                    "halftime_known": match.has_halftime_result,
                }
            )

    return mismatches
