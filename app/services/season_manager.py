"""
Season lifecycle

Exactly one season is active at a time. Closing it and opening its successor
is a single transaction: the active row is locked, the winner is computed
from fresh (uncached) standings, the row is stamped closed and the new
season is inserted before one commit. A partial unique index on
``seasons.is_active`` backs the invariant at the database level.
"""

import logging
from collections import namedtuple
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.errors import InvalidInput, NotFound, TransactionFailure
from app.models import Season
from app.services.standings import compute_standings
from app.utils.cache_utils import invalidate_standings
from app.utils.scoring import validate_mode

logger = logging.getLogger(__name__)


class SeasonCloseResult(
    namedtuple(
        "SeasonCloseResult",
        ["closed_season_id", "winner_user_id", "winner_points", "new_season_id"],
    )
):
    __slots__ = ()

    def to_dict(self):
        return self._asdict()


def _clean_name(name):
    if not isinstance(name, str) or not name.strip():
        raise InvalidInput("Season name must be a non-empty string")
    return name.strip()


def pick_winner(standings):
    """Leader of an ordered standings list, among users with scored predictions"""
    for standing in standings:
        if standing["total_predictions"] > 0:
            return standing
    return None


class SeasonManager:
    """Narrow interface over the seasons table"""

    def current_season(self):
        season = Season.get_current_season()
        if season is None:
            raise NotFound("No active season")
        return season

    def list_seasons(self):
        return Season.query.order_by(Season.start_date.desc(), Season.id.desc()).all()

    def get_season(self, season_id):
        season = db.session.get(Season, season_id)
        if season is None:
            raise NotFound(f"Season {season_id} not found")
        return season

    def season_for_new_prediction(self):
        """
        Active season, share-locked until the caller's transaction ends so a
        concurrent close cannot slip between attribution and commit.
        """
        season = (
            Season.query.filter_by(is_active=True).with_for_update(read=True).first()
        )
        if season is None:
            raise NotFound("No active season; predictions cannot be attributed")
        return season

    def create_initial_season(self, name, scoring_mode=None, now=None):
        """Create the first active season of a fresh deployment"""
        name = _clean_name(name)
        scoring_mode = validate_mode(scoring_mode or "standard")

        if Season.get_current_season() is not None:
            raise InvalidInput("An active season already exists; close it instead")

        season = Season(
            name=name,
            start_date=now or datetime.now(timezone.utc),
            is_active=True,
            scoring_mode=scoring_mode,
        )
        try:
            db.session.add(season)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Creating initial season failed: {e}", exc_info=True)
            raise TransactionFailure("Could not create the initial season") from e

        logger.info(f"Created initial season '{season.name}' ({scoring_mode})")
        return season

    def close_and_open(self, new_season_name, scoring_mode=None, now=None,
                       expected_season_id=None):
        """
        Close the active season and open a new one, atomically.

        Args:
            new_season_name: name of the season to open (non-empty)
            scoring_mode: mode of the new season; inherited when omitted
            now: instant stamped as end of the old / start of the new season
            expected_season_id: when given, only close if this is still the
                active season, so a retried request cannot close its successor

        Raises:
            InvalidInput: empty name or unknown mode (nothing changed)
            NotFound: no active season
            TransactionFailure: the change could not be committed (nothing changed)
        """
        new_season_name = _clean_name(new_season_name)
        if scoring_mode is not None:
            validate_mode(scoring_mode)
        now = now or datetime.now(timezone.utc)

        try:
            active = (
                Season.query.filter_by(is_active=True).with_for_update().first()
            )
            if active is None:
                raise NotFound("No active season to close")
            if expected_season_id is not None and active.id != expected_season_id:
                raise TransactionFailure(
                    f"Season {expected_season_id} is no longer the active season"
                )

            winner = pick_winner(compute_standings(active.id))
            self._stamp_closed(active, winner, now)
            new_season = self._open_season(
                new_season_name, scoring_mode or active.scoring_mode, now
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Season close failed, nothing applied: {e}", exc_info=True)
            raise TransactionFailure(
                "Season close could not be committed; retry the whole operation"
            ) from e
        except Exception:
            db.session.rollback()
            raise

        result = SeasonCloseResult(
            closed_season_id=active.id,
            winner_user_id=active.winner_user_id,
            winner_points=active.winner_points,
            new_season_id=new_season.id,
        )

        logger.info(
            f"Closed season '{active.name}' (winner: user {result.winner_user_id}, "
            f"{result.winner_points} pts); opened '{new_season.name}'"
        )

        invalidate_standings()
        from app.socketio_handlers import broadcast_season_closed

        broadcast_season_closed(result)
        return result

    def _stamp_closed(self, season, winner, now):
        season.end_date = now
        season.winner_user_id = winner["user_id"] if winner else None
        season.winner_points = winner["total_points"] if winner else None
        season.is_active = False
        # Flush the deactivation first so the single-active index never sees two rows
        db.session.flush()

    def _open_season(self, name, scoring_mode, now):
        season = Season(
            name=name,
            start_date=now,
            end_date=None,
            is_active=True,
            scoring_mode=scoring_mode,
        )
        db.session.add(season)
        db.session.flush()
        return season


season_manager = SeasonManager()
