from datetime import datetime, timezone

from app import db
from app.errors import InvalidInput
from app.utils.scoring import STANDARD, validate_mode, validate_score
from app.utils.timezone_utils import ensure_utc, format_kickoff


class MatchStatus:
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    FINISHED = "FINISHED"
    POSTPONED = "POSTPONED"
    CANCELLED = "CANCELLED"

    ALL = (SCHEDULED, LIVE, FINISHED, POSTPONED, CANCELLED)


class Match(db.Model):
    __tablename__ = "matches"

    id = db.Column(db.Integer, primary_key=True)

    # External feed identification
    external_id = db.Column(db.Integer, unique=True, index=True)
    competition = db.Column(db.String(100))

    # Teams
    home_team = db.Column(db.String(100), nullable=False)
    away_team = db.Column(db.String(100), nullable=False)
    home_team_logo = db.Column(db.String(500))
    away_team_logo = db.Column(db.String(500))

    # Kickoff doubles as the prediction lock instant
    kickoff_utc = db.Column(db.DateTime, nullable=False)
    venue = db.Column(db.String(200))

    status = db.Column(db.String(20), nullable=False, default=MatchStatus.SCHEDULED)

    # Populated only while FINISHED; halftime may stay null on finished matches
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)
    home_score_halftime = db.Column(db.Integer)
    away_score_halftime = db.Column(db.Integer)

    # Stamped at creation, never inferred from the presence of halftime data
    scoring_mode = db.Column(db.String(20), nullable=False, default=STANDARD)

    # Rescoring bookkeeping
    needs_rescore = db.Column(db.Boolean, nullable=False, default=False)
    scored_at = db.Column(db.DateTime)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    predictions = db.relationship("Prediction", backref="match", lazy="dynamic")

    __table_args__ = (
        db.Index("idx_match_kickoff", "kickoff_utc"),
        db.Index("idx_match_status", "status"),
        db.Index("idx_match_needs_rescore", "needs_rescore"),
        db.CheckConstraint(
            "scoring_mode IN ('standard', 'legacy')", name="valid_scoring_mode"
        ),
    )

    def __repr__(self):
        return f"<Match {self.home_team} vs {self.away_team} {self.status}>"

    @property
    def is_finished(self):
        return self.status == MatchStatus.FINISHED

    @property
    def has_halftime_result(self):
        return self.home_score_halftime is not None and self.away_score_halftime is not None

    def is_locked(self, now=None):
        """Predictions lock at kickoff"""
        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        return now >= ensure_utc(self.kickoff_utc)

    def result_snapshot(self):
        return (
            self.status,
            self.home_score,
            self.away_score,
            self.home_score_halftime,
            self.away_score_halftime,
        )

    def apply_result(self, status, home_score=None, away_score=None,
                     home_score_halftime=None, away_score_halftime=None):
        """
        Update status and scores, keeping scores present only while FINISHED.

        Returns True when the change requires the match's predictions to be
        rescored: the match became FINISHED, left FINISHED, or had its scores
        corrected while FINISHED. The match is flagged ``needs_rescore`` in
        that case; the caller is responsible for running the rescore.

        Raises:
            InvalidInput: unknown status, or a FINISHED result without a
                valid full-time score
        """
        if status not in MatchStatus.ALL:
            raise InvalidInput(f"Unknown match status {status!r}")

        if status == MatchStatus.FINISHED:
            if home_score is None or away_score is None:
                raise InvalidInput("A finished match needs a full-time score")
            validate_score(home_score, "home_score")
            validate_score(away_score, "away_score")
            if home_score_halftime is None or away_score_halftime is None:
                # A half-known halftime result is an unknown halftime result
                home_score_halftime = away_score_halftime = None
            else:
                validate_score(home_score_halftime, "home_score_halftime")
                validate_score(away_score_halftime, "away_score_halftime")
        else:
            home_score = away_score = None
            home_score_halftime = away_score_halftime = None

        was_finished = self.is_finished
        before = self.result_snapshot()

        self.status = status
        self.home_score = home_score
        self.away_score = away_score
        self.home_score_halftime = home_score_halftime
        self.away_score_halftime = away_score_halftime

        now_finished = self.is_finished
        triggered = was_finished != now_finished or (
            now_finished and before != self.result_snapshot()
        )

        if triggered:
            self.needs_rescore = True

        return triggered

    def set_scoring_mode(self, mode):
        self.scoring_mode = validate_mode(mode)

    def to_dict(self, include_predictions_count=False):
        """Convert match to dictionary for API responses"""
        data = {
            "id": self.id,
            "external_id": self.external_id,
            "competition": self.competition,
            "home_team": self.home_team,
            "home_team_logo": self.home_team_logo,
            "away_team": self.away_team,
            "away_team_logo": self.away_team_logo,
            "kickoff_utc": (
                ensure_utc(self.kickoff_utc).isoformat() if self.kickoff_utc else None
            ),
            "kickoff_local": format_kickoff(self.kickoff_utc),
            "venue": self.venue,
            "status": self.status,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "home_score_halftime": self.home_score_halftime,
            "away_score_halftime": self.away_score_halftime,
            "scoring_mode": self.scoring_mode,
            "is_locked": self.is_locked(),
            "scored_at": self.scored_at.isoformat() if self.scored_at else None,
        }

        if include_predictions_count:
            data["predictions_count"] = self.predictions.count()

        return data
