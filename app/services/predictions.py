"""
Prediction writes

Predictions are upserted per (user, match) until kickoff. A new prediction
is attributed to the season active when it is created; later edits keep that
attribution. Points are never written here.
"""

import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app import db
from app.errors import InvalidInput, NotFound, PermissionDenied
from app.models import Match, Prediction, User
from app.services.season_manager import season_manager
from app.utils.cache_utils import invalidate_standings
from app.utils.scoring import validate_score

logger = logging.getLogger(__name__)


def _resolve_target_user(actor, user_id):
    if user_id is None or user_id == actor.id:
        return actor

    if not (actor.is_admin or current_app.config.get("ALLOW_PROXY_PREDICTIONS", True)):
        raise PermissionDenied("You may only submit your own predictions")

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFound(f"User {user_id} not found")
    return user


def _set_scores(prediction, home, away, home_ht, away_ht):
    prediction.home_score = home
    prediction.away_score = away
    prediction.home_score_halftime = home_ht
    prediction.away_score_halftime = away_ht


def upsert_prediction(actor, match_id, home_score, away_score,
                      home_score_halftime=None, away_score_halftime=None,
                      user_id=None, now=None):
    """
    Create or update a prediction before kickoff.

    Halftime scores default to 0-0 when not given.

    Returns:
        tuple: (prediction, created)

    Raises:
        InvalidInput: bad scores, or the match has kicked off
        NotFound: unknown match or user, or no active season
        PermissionDenied: proxy predictions are disabled
    """
    home_score = validate_score(home_score, "home_score")
    away_score = validate_score(away_score, "away_score")
    home_ht = validate_score(
        0 if home_score_halftime is None else home_score_halftime, "home_score_halftime"
    )
    away_ht = validate_score(
        0 if away_score_halftime is None else away_score_halftime, "away_score_halftime"
    )

    user = _resolve_target_user(actor, user_id)

    match = db.session.get(Match, match_id)
    if match is None:
        raise NotFound(f"Match {match_id} not found")

    if match.is_locked(now):
        raise InvalidInput("Predictions are closed for this match")

    prediction = user.get_prediction_for_match(match.id)
    created = prediction is None

    if created:
        season = season_manager.season_for_new_prediction()
        prediction = Prediction(user_id=user.id, match_id=match.id, season_id=season.id)
        db.session.add(prediction)

    _set_scores(prediction, home_score, away_score, home_ht, away_ht)

    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent create for the same (user, match)
        db.session.rollback()
        prediction = Prediction.query.filter_by(
            user_id=user.id, match_id=match.id
        ).first()
        if prediction is None:
            raise
        created = False
        _set_scores(prediction, home_score, away_score, home_ht, away_ht)
        db.session.commit()

    invalidate_standings()
    logger.info(
        f"{'Created' if created else 'Updated'} prediction {prediction.id} "
        f"for user {user.id} on match {match.id}"
        + (f" (submitted by user {actor.id})" if actor.id != user.id else "")
    )
    return prediction, created


def delete_prediction(actor, prediction_id, now=None):
    """Delete one of the actor's own predictions before kickoff (admins: any)"""
    prediction = db.session.get(Prediction, prediction_id)
    if prediction is None:
        raise NotFound(f"Prediction {prediction_id} not found")

    if prediction.user_id != actor.id and not actor.is_admin:
        raise PermissionDenied("You may only delete your own predictions")

    if prediction.match.is_locked(now):
        raise InvalidInput("Predictions are closed for this match")

    db.session.delete(prediction)
    db.session.commit()
    invalidate_standings()
    logger.info(f"Deleted prediction {prediction_id} (by user {actor.id})")


def list_predictions(match_id=None, user_id=None, season_id=None):
    query = Prediction.query
    if match_id is not None:
        query = query.filter_by(match_id=match_id)
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    if season_id is not None:
        query = query.filter_by(season_id=season_id)
    return query.order_by(Prediction.created_at.desc(), Prediction.id.desc()).all()
