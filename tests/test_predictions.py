"""Tests for prediction writes: lock instant, upsert, proxy policy."""

from datetime import datetime, timedelta, timezone

import pytest

from app import cache
from app.errors import InvalidInput, NotFound, PermissionDenied
from app.models import Match, Prediction
from app.services.predictions import (
    delete_prediction,
    list_predictions,
    upsert_prediction,
)
from app.services.standings import get_standings, get_user_summary

KICKOFF = datetime(2026, 3, 1, 20, 0, tzinfo=timezone.utc)


class TestUpsert:
    def test_create_then_update(self, active_season, make_user, make_match):
        user = make_user()
        match = make_match()

        prediction, created = upsert_prediction(user, match.id, 2, 1, 1, 0)
        assert created
        assert prediction.season_id == active_season.id
        assert (prediction.home_score_halftime, prediction.away_score_halftime) == (1, 0)

        updated, created = upsert_prediction(user, match.id, 0, 0)
        assert not created
        assert updated.id == prediction.id
        assert (updated.home_score, updated.away_score) == (0, 0)
        assert Prediction.query.count() == 1

    def test_halftime_defaults_to_nil_nil(self, active_season, make_user, make_match):
        prediction, _ = upsert_prediction(make_user(), make_match().id, 3, 0)
        assert prediction.home_score_halftime == 0
        assert prediction.away_score_halftime == 0
        assert prediction.points is None

    def test_locked_at_kickoff(self, active_season, make_user, make_match):
        user = make_user()
        match = make_match(kickoff=KICKOFF)

        upsert_prediction(user, match.id, 1, 0, now=KICKOFF - timedelta(seconds=1))

        with pytest.raises(InvalidInput):
            upsert_prediction(user, match.id, 2, 0, now=KICKOFF)

        assert Prediction.query.one().home_score == 1

    @pytest.mark.parametrize(
        "scores", [(-1, 0), (0, -3), (1.5, 0), ("2", 1), (True, 0)]
    )
    def test_rejects_invalid_scores(self, active_season, make_user, make_match, scores):
        with pytest.raises(InvalidInput):
            upsert_prediction(make_user(), make_match().id, *scores)
        assert Prediction.query.count() == 0

    def test_rejects_negative_halftime(self, active_season, make_user, make_match):
        with pytest.raises(InvalidInput):
            upsert_prediction(make_user(), make_match().id, 1, 0, -1, 0)

    def test_unknown_match(self, active_season, make_user):
        with pytest.raises(NotFound):
            upsert_prediction(make_user(), 4242, 1, 0)

    def test_requires_active_season(self, make_user, make_match):
        with pytest.raises(NotFound):
            upsert_prediction(make_user(), make_match().id, 1, 0)


class TestProxyPredictions:
    def test_member_may_predict_for_another(self, active_season, make_user, make_match):
        actor = make_user()
        target = make_user()

        prediction, _ = upsert_prediction(actor, make_match().id, 1, 1, user_id=target.id)

        assert prediction.user_id == target.id

    def test_proxy_disabled_for_members(self, app, active_season, make_user, make_match):
        app.config["ALLOW_PROXY_PREDICTIONS"] = False
        actor = make_user()
        target = make_user()

        with pytest.raises(PermissionDenied):
            upsert_prediction(actor, make_match().id, 1, 1, user_id=target.id)

    def test_admin_may_always_proxy(self, app, active_season, make_user, make_match):
        app.config["ALLOW_PROXY_PREDICTIONS"] = False
        admin = make_user(is_admin=True)
        target = make_user()

        prediction, _ = upsert_prediction(admin, make_match().id, 1, 1, user_id=target.id)

        assert prediction.user_id == target.id

    def test_unknown_target_user(self, active_season, make_user, make_match):
        with pytest.raises(NotFound):
            upsert_prediction(make_user(), make_match().id, 1, 1, user_id=999)


class TestDelete:
    def test_delete_own_prediction(self, active_season, make_user, make_match):
        user = make_user()
        prediction, _ = upsert_prediction(user, make_match().id, 1, 0)

        delete_prediction(user, prediction.id)

        assert Prediction.query.count() == 0

    def test_cannot_delete_someone_elses(self, active_season, make_user, make_match):
        owner = make_user()
        prediction, _ = upsert_prediction(owner, make_match().id, 1, 0)

        with pytest.raises(PermissionDenied):
            delete_prediction(make_user(), prediction.id)

    def test_cannot_delete_after_kickoff(self, active_season, make_user, make_match):
        user = make_user()
        match = make_match(kickoff=KICKOFF)
        prediction, _ = upsert_prediction(
            user, match.id, 1, 0, now=KICKOFF - timedelta(hours=1)
        )

        with pytest.raises(InvalidInput):
            delete_prediction(user, prediction.id, now=KICKOFF + timedelta(minutes=5))

    def test_unknown_prediction(self, active_season, make_user):
        with pytest.raises(NotFound):
            delete_prediction(make_user(), 77)


def test_list_filters(active_season, make_user, make_match):
    alice, bob = make_user(), make_user()
    m1, m2 = make_match(), make_match()
    upsert_prediction(alice, m1.id, 1, 0)
    upsert_prediction(alice, m2.id, 2, 0)
    upsert_prediction(bob, m1.id, 0, 0)

    assert len(list_predictions()) == 3
    assert len(list_predictions(match_id=m1.id)) == 2
    assert len(list_predictions(user_id=alice.id)) == 2
    assert len(list_predictions(match_id=m2.id, user_id=bob.id)) == 0
    assert len(list_predictions(season_id=active_season.id)) == 3


class TestStandingsFollowWrites:
    @pytest.fixture(autouse=True)
    def simple_cache(self, app):
        cache.init_app(app, config={"CACHE_TYPE": "SimpleCache"})

    def test_new_member_appears_after_first_prediction(self, active_season, make_user,
                                                        make_match):
        match = make_match()
        alice, bob = make_user("alice"), make_user("bob")

        upsert_prediction(alice, match.id, 1, 0)
        assert [s["user_id"] for s in get_standings()] == [alice.id]

        upsert_prediction(bob, match.id, 2, 2)
        assert {s["user_id"] for s in get_standings()} == {alice.id, bob.id}
        assert get_user_summary(bob.id)["pending_predictions"] == 1

    def test_delete_drops_pending_prediction(self, active_season, make_user, make_match):
        user = make_user()
        prediction, _ = upsert_prediction(user, make_match().id, 1, 1)
        assert get_standings()[0]["pending_predictions"] == 1

        delete_prediction(user, prediction.id)

        assert get_standings() == []
        assert get_user_summary(user.id)["pending_predictions"] == 0


def test_match_relationship_does_not_cascade_deletes():
    cascade = Match.predictions.property.cascade
    assert not cascade.delete
    assert not cascade.delete_orphan
