"""Round trips through the JSON API."""

import pytest

from app import db
from app.models import Match, Prediction, Season
from conftest import finish, login

SYNC_HEADERS = {"Authorization": "Bearer test-sync-secret"}


@pytest.fixture
def member(make_user):
    return make_user("member")


@pytest.fixture
def admin(make_user):
    return make_user("admin", is_admin=True)


class TestPredictionsApi:
    def test_requires_login(self, client, active_season, make_match):
        response = client.post(
            "/api/predictions",
            json={"match_id": make_match().id, "home_score": 1, "away_score": 0},
        )
        assert response.status_code == 401
        assert response.get_json()["error"] == "Unauthorized"

    def test_create_then_update(self, client, active_season, member, make_match):
        login(client, member)
        match = make_match()
        payload = {"match_id": match.id, "home_score": 0, "away_score": 0}

        created = client.post("/api/predictions", json=payload)
        assert created.status_code == 201
        body = created.get_json()
        assert body["season_id"] == active_season.id
        assert body["home_score_halftime"] == 0
        assert body["points"] is None

        payload.update(home_score=2, home_score_halftime=1, away_score_halftime=None)
        updated = client.post("/api/predictions", json=payload)
        assert updated.status_code == 200
        assert updated.get_json()["id"] == body["id"]
        assert updated.get_json()["home_score"] == 2
        assert updated.get_json()["home_score_halftime"] == 1
        assert updated.headers["Cache-Control"].startswith("no-store")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"home_score": -1},
            {"home_score": 1.5},
            {"home_score": True},
            {"home_score": "two"},
            {"home_score": None},
            {"away_score_halftime": -2},
        ],
    )
    def test_invalid_scores(self, client, active_season, member, make_match, overrides):
        login(client, member)
        payload = {"match_id": make_match().id, "home_score": 1, "away_score": 0}
        payload.update(overrides)

        response = client.post("/api/predictions", json=payload)

        assert response.status_code == 400
        assert response.get_json()["error"] == "InvalidInput"
        assert Prediction.query.count() == 0

    def test_body_must_be_json_object(self, client, active_season, member):
        login(client, member)
        response = client.post("/api/predictions", json=[1, 2])
        assert response.status_code == 400

    def test_locked_match(self, client, active_season, member, make_match):
        login(client, member)
        match = finish(make_match(), 1, 0)
        match.kickoff_utc = match.kickoff_utc.replace(year=2020)
        db.session.commit()

        response = client.post(
            "/api/predictions",
            json={"match_id": match.id, "home_score": 1, "away_score": 0},
        )
        assert response.status_code == 400
        assert "closed" in response.get_json()["message"]

    def test_list_and_delete(self, client, active_season, member, make_match):
        login(client, member)
        match = make_match()
        created = client.post(
            "/api/predictions",
            json={"match_id": match.id, "home_score": 1, "away_score": 1},
        ).get_json()

        listed = client.get(f"/api/predictions?match_id={match.id}").get_json()
        assert [p["id"] for p in listed] == [created["id"]]
        assert listed[0]["match"]["id"] == match.id

        assert client.delete(f"/api/predictions/{created['id']}").status_code == 200
        assert client.delete(f"/api/predictions/{created['id']}").status_code == 404


class TestStandingsApi:
    def test_default_scope_is_active_season(self, client, active_season, member,
                                            make_match, make_prediction):
        make_prediction(member, finish(make_match(), 2, 1, 1, 0), active_season, 2, 1, 1, 0)

        body = client.get("/api/standings").get_json()

        assert body["scope"] == active_season.id
        row = body["standings"][0]
        assert row["user_id"] == member.id
        assert row["total_points"] == 10
        assert row["accuracy"] == 100.0
        assert {
            "display_name",
            "total_predictions",
            "correct_predictions",
            "points_winner",
            "points_halftime",
            "points_difference",
            "points_exact",
        } <= set(row)

    def test_all_time_scope(self, client, active_season):
        body = client.get("/api/standings?scope=all-time").get_json()
        assert body == {"scope": "all-time", "standings": []}

    def test_bad_scope(self, client, active_season):
        assert client.get("/api/standings?scope=forever").status_code == 400
        assert client.get("/api/standings?scope=999").status_code == 404

    def test_no_active_season(self, client):
        response = client.get("/api/standings")
        assert response.status_code == 404
        assert response.get_json()["error"] == "NotFound"

    def test_user_standing(self, client, active_season, member):
        body = client.get(f"/api/standings/users/{member.id}").get_json()
        assert body["standing"]["total_points"] == 0


class TestSeasonsApi:
    def test_current_and_list(self, client, active_season):
        assert client.get("/api/seasons/current").get_json()["id"] == active_season.id
        assert [s["id"] for s in client.get("/api/seasons").get_json()] == [active_season.id]

    def test_close_requires_admin(self, client, active_season, member):
        login(client, member)
        response = client.post("/api/seasons/close", json={"new_season_name": "Next"})
        assert response.status_code == 403
        assert Season.query.count() == 1

    def test_close_as_admin(self, client, active_season, admin):
        login(client, admin)

        response = client.post(
            "/api/seasons/close",
            json={"new_season_name": "2026/27", "expected_season_id": active_season.id},
        )

        assert response.status_code == 201
        body = response.get_json()
        assert body["closed_season_id"] == active_season.id
        assert body["winner_user_id"] is None
        current = client.get("/api/seasons/current").get_json()
        assert current["id"] == body["new_season_id"]
        assert current["name"] == "2026/27"

    def test_close_keeps_season_name_as_given(self, client, active_season, admin):
        login(client, admin)

        response = client.post("/api/seasons/close", json={"new_season_name": "  Liga & Copa  "})

        assert response.status_code == 201
        assert client.get("/api/seasons/current").get_json()["name"] == "Liga & Copa"

    @pytest.mark.parametrize(
        "payload",
        [
            {"new_season_name": "   "},
            {"new_season_name": ""},
            {},
            {"new_season_name": "Next", "scoring_mode": "bonus"},
        ],
    )
    def test_close_rejects_bad_input(self, client, active_season, admin, payload):
        login(client, admin)

        response = client.post("/api/seasons/close", json=payload)

        assert response.status_code == 400
        assert response.get_json()["error"] == "InvalidInput"
        assert Season.query.count() == 1

    def test_stale_close_conflicts(self, client, active_season, admin):
        login(client, admin)
        payload = {"new_season_name": "Next", "expected_season_id": active_season.id}
        assert client.post("/api/seasons/close", json=payload).status_code == 201

        response = client.post("/api/seasons/close", json=payload)

        assert response.status_code == 409
        assert response.get_json()["error"] == "TransactionFailure"


class TestSyncApi:
    MATCH = {
        "external_id": 77,
        "status": "SCHEDULED",
        "home_team": "Athletic Club",
        "away_team": "Real Sociedad",
        "kickoff_utc": "2026-11-01T18:30:00Z",
    }

    def test_requires_secret_or_admin(self, client, active_season, member):
        assert client.post("/api/sync", json={"matches": []}).status_code == 401

        wrong = {"Authorization": "Bearer nope"}
        assert client.post("/api/sync", json={"matches": []}, headers=wrong).status_code == 401

        login(client, member)
        assert client.post("/api/sync", json={"matches": []}).status_code == 401

    def test_sync_with_secret(self, client, active_season):
        response = client.post("/api/sync", json={"matches": [self.MATCH]}, headers=SYNC_HEADERS)

        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["created"] == 1
        assert Match.query.filter_by(external_id=77).one().home_team == "Athletic Club"

    def test_sync_as_admin_rescores(self, client, active_season, admin, make_prediction):
        login(client, admin)
        client.post("/api/sync", json={"matches": [self.MATCH]})
        match = Match.query.filter_by(external_id=77).one()
        prediction = make_prediction(admin, match, active_season, 1, 0)

        finished = dict(self.MATCH, status="FINISHED", home_score=1, away_score=0)
        body = client.post("/api/sync", json={"matches": [finished]}).get_json()

        assert body["rescored"] == 1
        assert db.session.get(Prediction, prediction.id).points == 8

    def test_sync_reports_rejected_records(self, client, active_season):
        body = client.post(
            "/api/sync", json={"matches": [self.MATCH, {"status": "FINISHED"}]},
            headers=SYNC_HEADERS,
        ).get_json()
        assert body["success"] is False
        assert body["errors"] == 1
        assert body["created"] == 1

    def test_matches_must_be_a_list(self, client, active_season):
        response = client.post("/api/sync", json={"matches": "all"}, headers=SYNC_HEADERS)
        assert response.status_code == 400


class TestMatchesApi:
    def test_list_and_filter(self, client, make_match):
        scheduled = make_match()
        finished = finish(make_match(), 0, 0)

        all_ids = [m["id"] for m in client.get("/api/matches").get_json()]
        assert set(all_ids) == {scheduled.id, finished.id}

        finished_only = client.get("/api/matches?status=finished").get_json()
        assert [m["id"] for m in finished_only] == [finished.id]

        assert client.get("/api/matches?status=abandoned").status_code == 400

    def test_detail(self, client, make_match):
        match = make_match()
        body = client.get(f"/api/matches/{match.id}").get_json()
        assert body["predictions_count"] == 0
        assert body["is_locked"] is False
        assert body["kickoff_local"]
        assert client.get("/api/matches/9999").status_code == 404


class TestSchedulerApi:
    def test_status_and_run(self, client, admin, active_season, make_match):
        login(client, admin)
        match = make_match()
        match.needs_rescore = True
        db.session.commit()

        status = client.get("/api/scheduler/status").get_json()
        assert status["pending_rescore"] == 1
        assert status["active_season_id"] == active_season.id

        run = client.post("/api/scheduler/run").get_json()
        assert run["success"] is True
        assert not db.session.get(Match, match.id).needs_rescore

    def test_status_requires_admin(self, client, member):
        login(client, member)
        assert client.get("/api/scheduler/status").status_code == 403
