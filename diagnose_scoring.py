#!/usr/bin/env python
"""Diagnose why predictions aren't scored the way they should be"""
from app import create_app
from app.models import Match, MatchStatus, Season
from app.services.scoring_service import find_scoring_mismatches

app = create_app()

with app.app_context():
    print("=== Scoring Diagnostics ===\n")

    season = Season.get_current_season()
    if season:
        print(f"Current Season: {season.name} ({season.scoring_mode})")
    else:
        print("No current season found!")

    # Finished matches with predictions never written
    print("\n=== Finished Matches with Unscored Predictions ===")
    finished = (
        Match.query.filter_by(status=MatchStatus.FINISHED)
        .order_by(Match.kickoff_utc)
        .all()
    )
    print(f"Total finished matches: {len(finished)}")

    unscored_count = 0
    for match in finished:
        unscored = [p for p in match.predictions.all() if p.points is None]
        if unscored:
            unscored_count += len(unscored)
            print(f"\nMatch {match.id}: {match.home_team} {match.home_score}-{match.away_score} {match.away_team}")
            print(f"  needs_rescore={match.needs_rescore}, scored_at={match.scored_at}")
            print(f"  Unscored predictions: {len(unscored)} out of {match.predictions.count()}")

    print(f"\n{'='*60}")
    print(f"Total unscored predictions on finished matches: {unscored_count}")

    # Halftime audit: these matches can never award the halftime component
    print("\n=== Finished Matches without Halftime Result ===")
    no_halftime = [m for m in finished if not m.has_halftime_result]
    print(f"Total: {len(no_halftime)}")
    for match in no_halftime:
        print(f"  Match {match.id} ({match.scoring_mode}): {match.home_team} vs {match.away_team}, kickoff {match.kickoff_utc}")

    print("\n=== Stored vs Recomputed Points ===")
    mismatches = find_scoring_mismatches()
    print(f"Out-of-date predictions: {len(mismatches)}")
    for m in mismatches[:20]:
        print(f"  Prediction {m['prediction_id']} (match {m['match_id']}): stored={m['stored']} expected={m['expected']}")

    if mismatches:
        print("\nRun 'python manage.py scoring rescore' to fix stored points.")
