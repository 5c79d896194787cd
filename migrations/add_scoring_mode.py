"""Add explicit scoring mode and rescoring bookkeeping

This migration:
- adds scoring_mode, needs_rescore and scored_at to matches
- adds scoring_mode to seasons
- backfills legacy mode once, from the historical data: finished matches
  with predictions and no halftime result that kicked off before the first
  finished match carrying a halftime result. Seasons that ended before that
  cutoff are legacy too.
- enforces a single active season with a partial unique index

After this runs the mode is read from the column only; nothing re-derives it.
"""

import sqlalchemy as sa
from alembic import op

HALFTIME_CUTOFF = """
    (SELECT MIN(kickoff_utc) FROM matches
     WHERE status = 'FINISHED'
       AND home_score_halftime IS NOT NULL
       AND away_score_halftime IS NOT NULL)
"""


def upgrade():
    with op.batch_alter_table("matches") as batch_op:
        batch_op.add_column(
            sa.Column(
                "scoring_mode",
                sa.String(length=20),
                nullable=False,
                server_default="standard",
            )
        )
        batch_op.add_column(
            sa.Column(
                "needs_rescore", sa.Boolean(), nullable=False, server_default=sa.false()
            )
        )
        batch_op.add_column(sa.Column("scored_at", sa.DateTime(), nullable=True))
        batch_op.create_index("idx_match_needs_rescore", ["needs_rescore"])

    with op.batch_alter_table("seasons") as batch_op:
        batch_op.add_column(
            sa.Column(
                "scoring_mode",
                sa.String(length=20),
                nullable=False,
                server_default="standard",
            )
        )

    # One-time backfill; a NULL cutoff (no halftime data at all) marks nothing
    op.execute(
        f"""
        UPDATE matches SET scoring_mode = 'legacy'
        WHERE status = 'FINISHED'
          AND (home_score_halftime IS NULL OR away_score_halftime IS NULL)
          AND EXISTS (SELECT 1 FROM predictions p WHERE p.match_id = matches.id)
          AND kickoff_utc < {HALFTIME_CUTOFF}
        """
    )
    op.execute(
        f"""
        UPDATE seasons SET scoring_mode = 'legacy'
        WHERE end_date IS NOT NULL
          AND end_date <= {HALFTIME_CUTOFF}
        """
    )

    # Anything already finished gets scored by the next pending run
    op.execute("UPDATE matches SET needs_rescore = TRUE WHERE status = 'FINISHED'")

    op.create_index(
        "uq_single_active_season",
        "seasons",
        ["is_active"],
        unique=True,
        sqlite_where=sa.text("is_active = 1"),
        postgresql_where=sa.text("is_active"),
    )


def downgrade():
    op.drop_index("uq_single_active_season", table_name="seasons")

    with op.batch_alter_table("seasons") as batch_op:
        batch_op.drop_column("scoring_mode")

    with op.batch_alter_table("matches") as batch_op:
        batch_op.drop_index("idx_match_needs_rescore")
        batch_op.drop_column("scored_at")
        batch_op.drop_column("needs_rescore")
        batch_op.drop_column("scoring_mode")
