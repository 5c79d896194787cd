#!/usr/bin/env python3
"""
Porra Management CLI

This script provides command-line management functionality for the Porra application.
"""

import json
import logging

import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import create_app, db
from app.errors import PorraError
from app.models import Match, MatchStatus, Prediction, Season, User
from app.services.scoring_service import (
    find_scoring_mismatches,
    rescore_all,
    rescore_match_by_id,
    rescore_pending,
)
from app.services.season_manager import season_manager
from app.services.standings import get_standings, normalize_scope, points_progression
from app.services.sync_reconciler import reconcile
from app.utils.scoring import SCORING_MODES

MODE_CHOICE = click.Choice(SCORING_MODES)


@click.group()
def cli():
    """Porra Management CLI"""
    pass


# Season Management Commands
@cli.group()
def season():
    """Season management commands"""
    pass


@season.command("init")
@click.argument("name")
@click.option("--mode", type=MODE_CHOICE, help="Scoring mode (default: DEFAULT_SCORING_MODE)")
@with_appcontext
def init_season(name, mode):
    """Create the first active season"""
    try:
        mode = mode or current_app.config.get("DEFAULT_SCORING_MODE", "standard")
        created = season_manager.create_initial_season(name, scoring_mode=mode)
        click.echo(f"✅ Created season '{created.name}' ({created.scoring_mode})")
    except PorraError as e:
        click.echo(f"❌ {e.message}")
        raise SystemExit(1)


@season.command("list")
@with_appcontext
def list_seasons():
    """List all seasons"""
    seasons = season_manager.list_seasons()

    if not seasons:
        click.echo("No seasons found.")
        return

    click.echo("Seasons:")
    for s in seasons:
        status = "🟢 ACTIVE" if s.is_active else "⚪"
        winner = ""
        if s.is_closed:
            winner = (
                f" - winner: {s.winner.full_name} ({s.winner_points} pts)"
                if s.winner
                else " - no winner"
            )
        click.echo(f"  {status} [{s.id}] {s.name} ({s.scoring_mode}){winner}")


@season.command("close")
@click.argument("new_name")
@click.option("--mode", type=MODE_CHOICE, help="Scoring mode of the new season (default: inherit)")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@with_appcontext
def close_season(new_name, mode, yes):
    """Close the active season and open NEW_NAME"""
    active = Season.get_current_season()
    if active is None:
        click.echo("❌ No active season to close")
        raise SystemExit(1)

    if not yes and not click.confirm(
        f"Close season '{active.name}' and open '{new_name}'?"
    ):
        click.echo("Cancelled.")
        return

    try:
        result = season_manager.close_and_open(
            new_name, scoring_mode=mode, expected_season_id=active.id
        )
    except PorraError as e:
        click.echo(f"❌ {e.message}")
        raise SystemExit(1)

    if result.winner_user_id:
        winner = db.session.get(User, result.winner_user_id)
        click.echo(f"🏆 Winner: {winner.full_name} ({result.winner_points} pts)")
    else:
        click.echo("🏆 No winner (no scored predictions)")
    click.echo(f"✅ Opened season '{new_name}' (id {result.new_season_id})")


# Standings Commands
@cli.group()
def standings():
    """Standings commands"""
    pass


@standings.command("show")
@click.option("--scope", help="Season id or 'all-time' (default: active season)")
@click.option("--limit", type=int, default=20, show_default=True)
@with_appcontext
def show_standings(scope, limit):
    """Print the standings table"""
    try:
        scope = normalize_scope(scope)
        rows = get_standings(scope)
    except PorraError as e:
        click.echo(f"❌ {e.message}")
        raise SystemExit(1)

    click.echo(f"Standings ({scope}):")
    click.echo(f"  {'#':>3} {'Player':<24} {'Pts':>5} {'Pred':>5} {'Acc':>6} {'Exact':>6}")
    for rank, row in enumerate(rows[:limit], start=1):
        click.echo(
            f"  {rank:>3} {row['display_name'][:24]:<24} {row['total_points']:>5} "
            f"{row['total_predictions']:>5} {row['accuracy']:>5.1f}% {row['points_exact']:>6}"
        )


@standings.command("progression")
@click.option("--scope", help="Season id or 'all-time' (default: active season)")
@with_appcontext
def show_progression(scope):
    """Print running point totals match by match"""
    try:
        matches = points_progression(scope)
    except PorraError as e:
        click.echo(f"❌ {e.message}")
        raise SystemExit(1)

    if not matches:
        click.echo("No finished matches with predictions")
        return

    for number, match in enumerate(matches, start=1):
        halftime = "with halftime" if match["has_halftime"] else "no halftime"
        click.echo(
            f"Match {number}: {match['home_team']} vs {match['away_team']} "
            f"{match['result']} ({halftime})"
        )
        for entry in match["entries"]:
            click.echo(
                f"  {entry['display_name'][:24]:<24} +{entry['points']:<3} "
                f"-> {entry['running_total']} pts"
            )


# Scoring Commands
@cli.group()
def scoring():
    """Scoring maintenance commands"""
    pass


@scoring.command("rescore")
@click.option("--match-id", type=int, help="Rescore a single match")
@click.option("--pending", is_flag=True, help="Only matches flagged for rescoring")
@with_appcontext
def rescore(match_id, pending):
    """Recompute stored points (all finished matches by default)"""
    try:
        if match_id is not None:
            count = rescore_match_by_id(match_id)
            click.echo(f"✅ Rescored {count} predictions for match {match_id}")
        elif pending:
            stats = rescore_pending()
            click.echo(
                f"✅ Rescored {stats['matches']} matches "
                f"({stats['predictions']} predictions), {stats['failed']} failed"
            )
        else:
            count = rescore_all()
            click.echo(f"✅ Rescored {count} predictions")
    except PorraError as e:
        click.echo(f"❌ {e.message}")
        raise SystemExit(1)
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error while rescoring: {str(e)}")
        logging.error(f"Rescore failed - SQL error: {e}")
        raise SystemExit(1)


@scoring.command("diagnose")
@with_appcontext
def diagnose():
    """Report predictions whose stored points differ from a fresh computation"""
    mismatches = find_scoring_mismatches()
    flagged = Match.query.filter_by(needs_rescore=True).count()

    click.echo(f"Matches flagged for rescoring: {flagged}")
    if not mismatches:
        click.echo("✅ Stored points match the scoring engine")
        return

    click.echo(f"⚠️  {len(mismatches)} predictions out of date:")
    for m in mismatches[:50]:
        click.echo(
            f"  prediction {m['prediction_id']} (match {m['match_id']}, "
            f"user {m['user_id']}): stored={m['stored']} expected={m['expected']}"
        )
    click.echo("Run 'scoring rescore' to fix them.")


# Sync Commands
@cli.group()
def sync():
    """Match data sync commands"""
    pass


@sync.command("load")
@click.argument("path", type=click.File("r"))
@with_appcontext
def load_matches(path):
    """Reconcile observed matches from a JSON file (a list, or {"matches": [...]})"""
    try:
        payload = json.load(path)
    except ValueError as e:
        click.echo(f"❌ Invalid JSON: {str(e)}")
        raise SystemExit(1)

    observed = payload.get("matches") if isinstance(payload, dict) else payload
    if not isinstance(observed, list):
        click.echo("❌ Expected a list of matches")
        raise SystemExit(1)

    result = reconcile(observed)
    click.echo(
        f"✅ Sync: {result.created} created, {result.updated} updated, "
        f"{result.unchanged} unchanged, {result.rescored} rescored"
    )
    if result.errors or result.rescore_failed:
        click.echo(
            f"⚠️  {result.errors} records rejected, "
            f"{result.rescore_failed} rescores left for the scheduler"
        )


# User Management Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command("create")
@click.argument("username")
@click.argument("email")
@click.argument("password")
@click.option("--display-name", help="Display name")
@click.option("--admin", is_flag=True, help="Grant admin privileges")
@with_appcontext
def create_user(username, email, password, display_name, admin):
    """Create a league member"""
    existing = User.query.filter(
        (User.username == username) | (User.email == email)
    ).first()
    if existing:
        click.echo(f"❌ User with username '{username}' or email '{email}' already exists!")
        raise SystemExit(1)

    try:
        User.create_user(username, email, password, display_name, is_admin=admin)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ User '{username}' already exists!")
        logging.error(f"User creation failed - integrity error: {e}")
        raise SystemExit(1)

    role = "admin" if admin else "member"
    click.echo(f"✅ Created {role} '{username}' ({email})")


@user.command("list")
@with_appcontext
def list_users():
    """List all users"""
    users = User.query.order_by(User.created_at.desc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("Users:")
    for u in users:
        status = "🟢" if u.is_active else "🔴"
        admin = " [admin]" if u.is_admin else ""
        click.echo(f"  {status} {u.username} ({u.email}) - {u.full_name}{admin}")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")
        raise SystemExit(1)


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")
        raise SystemExit(1)


@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("⚽ Porra Application Status")
    click.echo("=" * 40)

    # Database connection
    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    current_season = Season.get_current_season()
    if current_season:
        click.echo(
            f"✅ Current Season: {current_season.name} ({current_season.scoring_mode})"
        )
    else:
        click.echo("⚠️  Current Season: None active")

    user_count = User.query.filter_by(is_active=True).count()
    click.echo(f"👥 Active Users: {user_count}")

    match_count = Match.query.count()
    finished_count = Match.query.filter_by(status=MatchStatus.FINISHED).count()
    click.echo(f"⚽ Matches: {finished_count}/{match_count} finished")

    if current_season:
        prediction_count = Prediction.query.filter_by(season_id=current_season.id).count()
        click.echo(f"📝 Predictions this season: {prediction_count}")

    flagged = Match.query.filter_by(needs_rescore=True).count()
    if flagged:
        click.echo(f"⚠️  Matches awaiting rescore: {flagged}")


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        cli()
