from app import db  # noqa: F401 - imported for model imports

from .match import Match, MatchStatus
from .prediction import Prediction
from .season import Season
from .user import User

__all__ = [
    "User",
    "Season",
    "Match",
    "MatchStatus",
    "Prediction",
]
