from datetime import datetime, timezone

from app import db


class Prediction(db.Model):
    __tablename__ = "predictions"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    match_id = db.Column(db.Integer, db.ForeignKey("matches.id"), nullable=False)
    # Season active when the prediction was first created; never reattributed
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)

    # Predicted scores
    home_score = db.Column(db.Integer, nullable=False)
    away_score = db.Column(db.Integer, nullable=False)
    home_score_halftime = db.Column(db.Integer, nullable=False, default=0)
    away_score_halftime = db.Column(db.Integer, nullable=False, default=0)

    # Written only by the scoring service; null until the match is scored
    points_winner = db.Column(db.Integer)
    points_halftime = db.Column(db.Integer)
    points_difference = db.Column(db.Integer)
    points_exact = db.Column(db.Integer)
    points = db.Column(db.Integer)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    season = db.relationship("Season", foreign_keys=[season_id])

    __table_args__ = (
        db.UniqueConstraint("user_id", "match_id", name="unique_user_match_prediction"),
        db.Index("idx_prediction_user_season", "user_id", "season_id"),
        db.Index("idx_prediction_match", "match_id"),
        db.CheckConstraint(
            "home_score >= 0 AND away_score >= 0 "
            "AND home_score_halftime >= 0 AND away_score_halftime >= 0",
            name="non_negative_prediction",
        ),
    )

    def __repr__(self):
        return (
            f"<Prediction user_id={self.user_id} match_id={self.match_id} "
            f"{self.home_score}-{self.away_score}>"
        )

    @property
    def is_scored(self):
        return self.points is not None

    def apply_points(self, breakdown):
        """Store a PointsBreakdown on this prediction"""
        self.points_winner = breakdown.winner
        self.points_halftime = breakdown.halftime
        self.points_difference = breakdown.difference
        self.points_exact = breakdown.exact
        self.points = breakdown.total

    def clear_points(self):
        self.points_winner = None
        self.points_halftime = None
        self.points_difference = None
        self.points_exact = None
        self.points = None

    def to_dict(self, include_match=False, include_user=False):
        """Convert prediction to dictionary for API responses"""
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "match_id": self.match_id,
            "season_id": self.season_id,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "home_score_halftime": self.home_score_halftime,
            "away_score_halftime": self.away_score_halftime,
            "points": self.points,
            "is_scored": self.is_scored,
            "points_winner": self.points_winner,
            "points_halftime": self.points_halftime,
            "points_difference": self.points_difference,
            "points_exact": self.points_exact,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

        if include_match:
            data["match"] = self.match.to_dict() if self.match else None
        if include_user:
            data["user"] = self.user.to_dict() if self.user else None

        return data
