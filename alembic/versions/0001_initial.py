"""initial bracket and rating schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-01
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Создаем таблицу турниров.
    op.create_table(
        "tournaments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("game_id", sa.Integer(), nullable=False),
        sa.Column("organizer_id", sa.Integer(), nullable=True),
        sa.Column("bracket_type", sa.String(length=32), nullable=False, server_default="single_elimination"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("max_participants", sa.Integer(), nullable=False, server_default="16"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tournaments_game_id", "tournaments", ["game_id"], unique=False)
    op.create_index("ix_tournaments_status", "tournaments", ["status"], unique=False)

    # Создаем таблицу заявок.
    op.create_table(
        "tournament_registrations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("registered_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("tournament_id", "user_id", name="uq_registration_tournament_user"),
    )
    op.create_index("ix_tournament_registrations_tournament_id", "tournament_registrations", ["tournament_id"], unique=False)
    op.create_index("ix_tournament_registrations_user_id", "tournament_registrations", ["user_id"], unique=False)
    op.create_index("ix_tournament_registrations_status", "tournament_registrations", ["status"], unique=False)

    # Создаем таблицу матчей сетки.
    op.create_table(
        "tournament_matches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.Column("match_number", sa.Integer(), nullable=False),
        sa.Column("participant1_id", sa.Integer(), nullable=True),
        sa.Column("participant2_id", sa.Integer(), nullable=True),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("participant1_score", sa.Integer(), nullable=True),
        sa.Column("participant2_score", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("tournament_id", "round", "match_number", name="uq_tournament_round_match_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_tournament_matches_tournament_id", "tournament_matches", ["tournament_id"], unique=False)
    op.create_index("ix_tournament_matches_round", "tournament_matches", ["round"], unique=False)
    op.create_index("ix_tournament_matches_status", "tournament_matches", ["status"], unique=False)

    # Создаем таблицы рейтинга и истории.
    op.create_table(
        "player_rankings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("game_id", sa.Integer(), nullable=False),
        sa.Column("elo_rating", sa.Integer(), nullable=False, server_default="1200"),
        sa.Column("peak_elo", sa.Integer(), nullable=False, server_default="1200"),
        sa.Column("wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("losses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("matches_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("win_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("best_win_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "game_id", name="uq_player_ranking_user_game"),
    )
    op.create_index("ix_player_rankings_user_id", "player_rankings", ["user_id"], unique=False)
    op.create_index("ix_player_rankings_game_id", "player_rankings", ["game_id"], unique=False)
    op.create_index("ix_player_rankings_elo_rating", "player_rankings", ["elo_rating"], unique=False)

    op.create_table(
        "elo_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("game_id", sa.Integer(), nullable=False),
        sa.Column("elo_before", sa.Integer(), nullable=False),
        sa.Column("elo_after", sa.Integer(), nullable=False),
        sa.Column("elo_change", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("match_id", "user_id", name="uq_elo_history_match_user"),
    )
    op.create_index("ix_elo_history_match_id", "elo_history", ["match_id"], unique=False)
    op.create_index("ix_elo_history_user_id", "elo_history", ["user_id"], unique=False)
    op.create_index("ix_elo_history_game_id", "elo_history", ["game_id"], unique=False)
    op.create_index("ix_elo_history_created_at", "elo_history", ["created_at"], unique=False)


def downgrade() -> None:
    # Откатываем схему до пустого состояния.
    op.drop_table("elo_history")
    op.drop_table("player_rankings")
    op.drop_table("tournament_matches")
    op.drop_table("tournament_registrations")
    op.drop_table("tournaments")
