"""Tests for the management CLI."""

import json

import pytest

from app import db
from app.models import Match, Prediction, Season, User
from conftest import finish
from manage import cli


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestSeasonCommands:
    def test_init_uses_default_mode(self, app, runner):
        app.config["DEFAULT_SCORING_MODE"] = "legacy"

        result = runner.invoke(cli, ["season", "init", "Founders Cup"])

        assert result.exit_code == 0, result.output
        season = Season.get_current_season()
        assert season.name == "Founders Cup"
        assert season.scoring_mode == "legacy"

    def test_init_refuses_second_active_season(self, runner, active_season):
        result = runner.invoke(cli, ["season", "init", "Again"])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_close(self, runner, active_season, make_user, make_match, make_prediction):
        user = make_user(display_name="Pichichi")
        make_prediction(user, finish(make_match(), 3, 0), active_season, 3, 0)

        result = runner.invoke(cli, ["season", "close", "2026/27", "--yes"])

        assert result.exit_code == 0, result.output
        assert "Pichichi (8 pts)" in result.output
        closed = db.session.get(Season, active_season.id)
        assert closed.winner_user_id == user.id
        assert Season.get_current_season().name == "2026/27"

    def test_close_can_be_cancelled(self, runner, active_season):
        result = runner.invoke(cli, ["season", "close", "Next"], input="n\n")
        assert "Cancelled" in result.output
        assert Season.query.count() == 1

    def test_close_without_active_season(self, runner):
        result = runner.invoke(cli, ["season", "close", "Next", "--yes"])
        assert result.exit_code == 1

    def test_close_with_blank_name(self, runner, active_season):
        result = runner.invoke(cli, ["season", "close", "  ", "--yes"])
        assert result.exit_code == 1
        assert Season.query.count() == 1

    def test_list(self, runner, active_season):
        result = runner.invoke(cli, ["season", "list"])
        assert "ACTIVE" in result.output
        assert active_season.name in result.output


class TestScoringCommands:
    def test_diagnose_then_rescore(self, runner, active_season, make_user, make_match,
                                   make_prediction):
        prediction = make_prediction(
            make_user(), finish(make_match(), 1, 1, 0, 0), active_season, 1, 1, 0, 0
        )

        diagnosis = runner.invoke(cli, ["scoring", "diagnose"])
        assert "1 predictions out of date" in diagnosis.output

        result = runner.invoke(cli, ["scoring", "rescore"])
        assert result.exit_code == 0, result.output
        assert db.session.get(Prediction, prediction.id).points == 10

        diagnosis = runner.invoke(cli, ["scoring", "diagnose"])
        assert "Stored points match" in diagnosis.output

    def test_rescore_pending_and_single_match(self, runner, active_season, make_match):
        match = finish(make_match(), 2, 2)
        assert match.needs_rescore

        result = runner.invoke(cli, ["scoring", "rescore", "--pending"])
        assert "Rescored 1 matches" in result.output
        assert not db.session.get(Match, match.id).needs_rescore

        result = runner.invoke(cli, ["scoring", "rescore", "--match-id", "999"])
        assert result.exit_code == 1


class TestOtherCommands:
    def test_standings_show(self, runner, active_season, make_user, make_match,
                            make_prediction):
        make_prediction(make_user("topscorer"), finish(make_match(), 1, 0), active_season, 1, 0)

        result = runner.invoke(cli, ["standings", "show"])

        assert result.exit_code == 0, result.output
        assert "topscorer" in result.output

    def test_standings_show_bad_scope(self, runner, active_season):
        result = runner.invoke(cli, ["standings", "show", "--scope", "nope"])
        assert result.exit_code == 1

    def test_user_create_and_list(self, runner):
        result = runner.invoke(
            cli, ["user", "create", "gaffer", "gaffer@example.com", "pw123456", "--admin"]
        )
        assert result.exit_code == 0, result.output
        assert User.query.filter_by(username="gaffer").one().is_admin

        duplicate = runner.invoke(
            cli, ["user", "create", "gaffer", "other@example.com", "pw123456"]
        )
        assert duplicate.exit_code == 1

        listing = runner.invoke(cli, ["user", "list"])
        assert "gaffer" in listing.output

    def test_sync_load(self, runner, active_season, tmp_path):
        path = tmp_path / "matches.json"
        path.write_text(
            json.dumps(
                {
                    "matches": [
                        {
                            "external_id": 9,
                            "status": "SCHEDULED",
                            "home_team": "Valencia CF",
                            "away_team": "Villarreal CF",
                            "kickoff_utc": "2026-12-05T20:00:00+00:00",
                        }
                    ]
                }
            )
        )

        result = runner.invoke(cli, ["sync", "load", str(path)])

        assert result.exit_code == 0, result.output
        assert "1 created" in result.output
        assert Match.query.filter_by(external_id=9).count() == 1

    def test_standings_progression(self, runner, active_season, make_user, make_match,
                                   make_prediction):
        make_prediction(make_user("topscorer"), finish(make_match(), 2, 1), active_season, 2, 1)

        result = runner.invoke(cli, ["standings", "progression"])

        assert result.exit_code == 0, result.output
        assert "topscorer" in result.output
        assert "-> 8 pts" in result.output

        all_time = runner.invoke(cli, ["standings", "progression", "--scope", "all-time"])
        assert "-> 8 pts" in all_time.output

    def test_status(self, runner, active_season):
        result = runner.invoke(cli, ["status"])
        assert "Database: Connected" in result.output
        assert active_season.name in result.output
