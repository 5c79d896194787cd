"""
Match reconciliation

Merges externally observed matches into stored Match rows. Fetching and
normalising the external feed happens elsewhere; records arrive here already
expressed in MatchStatus terms.

Reconciliation runs in two explicit phases:

1. Each observed record is upserted and committed on its own. A result
   change that affects points flags the match ``needs_rescore``.
2. Every flagged match is rescored. A failure here is logged and counted;
   the flag stays set, so the scheduler's pending run retries it.
"""

import logging
from collections import namedtuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.errors import InvalidInput
from app.models import Match, Season
from app.services.scoring_service import rescore_match
from app.utils.cache_utils import invalidate_standings
from app.utils.scoring import validate_mode
from app.utils.timezone_utils import ensure_utc, parse_iso_datetime

logger = logging.getLogger(__name__)

OBSERVED_FIELDS = [
    "external_id",
    "status",
    "home_team",
    "away_team",
    "kickoff_utc",
    "home_score",
    "away_score",
    "home_score_halftime",
    "away_score_halftime",
    "venue",
    "competition",
    "home_team_logo",
    "away_team_logo",
]


class ObservedMatch(namedtuple("ObservedMatch", OBSERVED_FIELDS)):
    """A match as reported by the external feed"""

    __slots__ = ()

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise InvalidInput("Observed match must be an object")

        missing = [
            f for f in ("external_id", "status", "home_team", "away_team", "kickoff_utc")
            if data.get(f) in (None, "")
        ]
        if missing:
            raise InvalidInput(f"Observed match missing fields: {', '.join(missing)}")

        try:
            external_id = int(data["external_id"])
            kickoff = parse_iso_datetime(data["kickoff_utc"])
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"Malformed observed match: {e}")

        values = {field: data.get(field) for field in OBSERVED_FIELDS}
        values.update(
            external_id=external_id,
            status=str(data["status"]).upper(),
            kickoff_utc=kickoff,
        )
        return cls(**values)


class SyncResult(
    namedtuple(
        "SyncResult",
        ["created", "updated", "unchanged", "rescored", "rescore_failed", "errors"],
    )
):
    __slots__ = ()

    def to_dict(self):
        return self._asdict()


def _mode_for_new_match():
    season = Season.get_current_season()
    if season is not None:
        return season.scoring_mode
    return validate_mode(current_app.config.get("DEFAULT_SCORING_MODE", "standard"))


def _details_snapshot(match):
    return (
        match.home_team,
        match.away_team,
        ensure_utc(match.kickoff_utc),
        match.venue,
        match.competition,
        match.home_team_logo,
        match.away_team_logo,
    ) + match.result_snapshot()


def _apply_observed(match, observed):
    match.home_team = observed.home_team
    match.away_team = observed.away_team
    match.kickoff_utc = observed.kickoff_utc
    match.venue = observed.venue
    match.competition = observed.competition
    match.home_team_logo = observed.home_team_logo
    match.away_team_logo = observed.away_team_logo
    return match.apply_result(
        observed.status,
        observed.home_score,
        observed.away_score,
        observed.home_score_halftime,
        observed.away_score_halftime,
    )


def reconcile_one(observed):
    """
    Upsert one observed match and commit it.

    Returns:
        tuple: (match, outcome, triggered) with outcome one of
        "created", "updated", "unchanged"
    """
    match = Match.query.filter_by(external_id=observed.external_id).first()

    if match is None:
        match = Match(external_id=observed.external_id)
        match.set_scoring_mode(_mode_for_new_match())
        triggered = _apply_observed(match, observed)
        db.session.add(match)
        outcome = "created"
    else:
        before = _details_snapshot(match)
        triggered = _apply_observed(match, observed)
        outcome = "updated" if _details_snapshot(match) != before else "unchanged"

    db.session.commit()
    if triggered:
        # Standings recompute from results, so they are stale before any rescore
        invalidate_standings()
    return match, outcome, triggered


def reconcile(observed_matches):
    """
    Reconcile a batch of observed matches (dicts or ObservedMatch records).

    Returns:
        SyncResult with per-outcome counters
    """
    counts = {"created": 0, "updated": 0, "unchanged": 0, "errors": 0}
    to_rescore = []

    for raw in observed_matches:
        try:
            observed = raw if isinstance(raw, ObservedMatch) else ObservedMatch.from_dict(raw)
            match, outcome, triggered = reconcile_one(observed)
        except InvalidInput as e:
            db.session.rollback()
            counts["errors"] += 1
            logger.warning(f"Skipping observed match: {e.message}")
            continue
        except SQLAlchemyError as e:
            db.session.rollback()
            counts["errors"] += 1
            logger.error(f"Failed to store observed match: {e}", exc_info=True)
            continue

        counts[outcome] += 1
        if triggered:
            to_rescore.append(match.id)

    rescored = rescore_failed = 0
    for match_id in to_rescore:
        try:
            rescore_match(db.session.get(Match, match_id))
            rescored += 1
        except Exception as e:
            db.session.rollback()
            rescore_failed += 1
            logger.error(
                f"Rescoring match {match_id} failed; left flagged for retry: {e}",
                exc_info=True,
            )

    result = SyncResult(
        created=counts["created"],
        updated=counts["updated"],
        unchanged=counts["unchanged"],
        rescored=rescored,
        rescore_failed=rescore_failed,
        errors=counts["errors"],
    )
    logger.info(f"Sync finished: {result.to_dict()}")
    return result
