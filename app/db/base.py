"""Регистрирует ORM-модели в метаданных SQLAlchemy."""

from app.models.achievement import OvertakeAcknowledgement, PlayerAchievement
from app.models.base import Base
from app.models.ranking import EloHistoryEntry, PlayerRanking
from app.models.tournament import Registration, Tournament, TournamentMatch

__all__ = [
    "Base",
    "Tournament",
    "Registration",
    "TournamentMatch",
    "PlayerRanking",
    "EloHistoryEntry",
    "PlayerAchievement",
    "OvertakeAcknowledgement",
]
