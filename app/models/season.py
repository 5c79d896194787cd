from datetime import datetime, timezone

from app import db
from app.utils.scoring import STANDARD


class Season(db.Model):
    __tablename__ = "seasons"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)

    # Season bounds; end_date stays null while the season is active
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime)

    # Status
    is_active = db.Column(db.Boolean, nullable=False, default=False)

    # Mode stamped on matches created while this season is active
    scoring_mode = db.Column(db.String(20), nullable=False, default=STANDARD)

    # Set once, when the season is closed
    winner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    winner_points = db.Column(db.Integer)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    winner = db.relationship("User", foreign_keys=[winner_user_id])

    __table_args__ = (
        # At most one row may carry is_active = true
        db.Index(
            "uq_single_active_season",
            "is_active",
            unique=True,
            sqlite_where=db.text("is_active = 1"),
            postgresql_where=db.text("is_active"),
        ),
        db.Index("idx_season_start", "start_date"),
        db.CheckConstraint(
            "scoring_mode IN ('standard', 'legacy')", name="valid_season_scoring_mode"
        ),
    )

    def __repr__(self):
        return f"<Season {self.name}{' (active)' if self.is_active else ''}>"

    @property
    def is_closed(self):
        return not self.is_active and self.end_date is not None

    @staticmethod
    def get_current_season():
        """Get the currently active season"""
        return Season.query.filter_by(is_active=True).first()

    def to_dict(self):
        """Convert season to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "is_active": self.is_active,
            "scoring_mode": self.scoring_mode,
            "winner_user_id": self.winner_user_id,
            "winner_name": self.winner.full_name if self.winner else None,
            "winner_points": self.winner_points,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
