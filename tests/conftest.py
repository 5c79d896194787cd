"""Shared fixtures: a fresh in-memory app per test plus model factories."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from app import create_app, db
from app.models import Match, MatchStatus, Prediction, Season, User

_counter = itertools.count(1)


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(username=None, is_admin=False, created_at=None, display_name=None):
        n = next(_counter)
        username = username or f"player{n}"
        user = User.create_user(
            username,
            f"{username}@example.com",
            "secret-password",
            display_name=display_name,
            is_admin=is_admin,
        )
        if created_at is not None:
            user.created_at = created_at
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_season(app):
    def _make_season(name="2025/26", is_active=True, scoring_mode="standard",
                     start_date=None, end_date=None):
        season = Season(
            name=name,
            start_date=start_date or datetime(2025, 8, 1, tzinfo=timezone.utc),
            end_date=end_date,
            is_active=is_active,
            scoring_mode=scoring_mode,
        )
        db.session.add(season)
        db.session.commit()
        return season

    return _make_season


@pytest.fixture
def active_season(make_season):
    return make_season()


@pytest.fixture
def make_match(app):
    def _make_match(kickoff=None, status=MatchStatus.SCHEDULED, home_score=None,
                    away_score=None, home_score_halftime=None,
                    away_score_halftime=None, scoring_mode="standard", **kwargs):
        n = next(_counter)
        match = Match(
            external_id=kwargs.pop("external_id", 1000 + n),
            home_team=kwargs.pop("home_team", f"Home {n}"),
            away_team=kwargs.pop("away_team", f"Away {n}"),
            kickoff_utc=kickoff or datetime.now(timezone.utc) + timedelta(days=1),
            status=status,
            home_score=home_score,
            away_score=away_score,
            home_score_halftime=home_score_halftime,
            away_score_halftime=away_score_halftime,
            scoring_mode=scoring_mode,
            **kwargs,
        )
        db.session.add(match)
        db.session.commit()
        return match

    return _make_match


@pytest.fixture
def make_prediction(app):
    """Insert a prediction directly, bypassing the kickoff lock"""

    def _make_prediction(user, match, season, home, away, home_ht=0, away_ht=0):
        prediction = Prediction(
            user_id=user.id,
            match_id=match.id,
            season_id=season.id,
            home_score=home,
            away_score=away,
            home_score_halftime=home_ht,
            away_score_halftime=away_ht,
        )
        db.session.add(prediction)
        db.session.commit()
        return prediction

    return _make_prediction


def finish(match, home, away, home_ht=None, away_ht=None):
    """Record a final result the way the reconciler does, without rescoring"""
    match.apply_result(MatchStatus.FINISHED, home, away, home_ht, away_ht)
    db.session.commit()
    return match


def login(client, user):
    with client.session_transaction() as sess:
        sess["_user_id"] = str(user.id)
        sess["_fresh"] = True
