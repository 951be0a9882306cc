"""persisted achievement unlocks and overtake acknowledgements

Revision ID: 0002_achievements_and_overtake_acks
Revises: 0001_initial
Create Date: 2026-10-08
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_achievements_and_overtake_acks"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Время первого открытия достижения.
    op.create_table(
        "player_achievements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("achievement_id", sa.String(length=50), nullable=False),
        sa.Column("unlocked_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "achievement_id", name="uq_player_achievement"),
    )
    op.create_index("ix_player_achievements_user_id", "player_achievements", ["user_id"], unique=False)

    # Серверный флаг «обгон уже показан».
    op.create_table(
        "overtake_acknowledgements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("rival_id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("acknowledged_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "rival_id", "match_id", name="uq_overtake_ack"),
    )
    op.create_index("ix_overtake_acknowledgements_user_id", "overtake_acknowledgements", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_overtake_acknowledgements_user_id", table_name="overtake_acknowledgements")
    op.drop_table("overtake_acknowledgements")
    op.drop_index("ix_player_achievements_user_id", table_name="player_achievements")
    op.drop_table("player_achievements")
