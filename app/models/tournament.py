from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class BracketType(str, Enum):
    SINGLE_ELIMINATION = "single_elimination"


class TournamentStatus(str, Enum):
    DRAFT = "draft"
    REGISTRATION = "registration"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RegistrationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class MatchStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DISPUTED = "disputed"


class Tournament(Base):
    __tablename__ = "tournaments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    game_id: Mapped[int] = mapped_column(Integer, index=True)
    organizer_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bracket_type: Mapped[str] = mapped_column(String(32), default=BracketType.SINGLE_ELIMINATION.value)
    status: Mapped[str] = mapped_column(String(20), default=TournamentStatus.DRAFT.value, index=True)
    max_participants: Mapped[int] = mapped_column(Integer, default=16)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Registration(Base):
    __tablename__ = "tournament_registrations"
    __table_args__ = (UniqueConstraint("tournament_id", "user_id", name="uq_registration_tournament_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), index=True)
    # Для командной заявки user_id указывает на капитана, он и попадает в сетку.
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    team_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=RegistrationStatus.PENDING.value, index=True)
    registered_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class TournamentMatch(Base):
    __tablename__ = "tournament_matches"
    __table_args__ = (
        UniqueConstraint("tournament_id", "round", "match_number", name="uq_tournament_round_match_number"),
        # id матча служит ключом идемпотентности рейтинга, id после перегенерации не переиспользуются.
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), index=True)
    round: Mapped[int] = mapped_column(Integer, index=True)
    match_number: Mapped[int] = mapped_column(Integer)
    participant1_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    participant2_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    winner_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    participant1_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    participant2_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=MatchStatus.PENDING.value, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
