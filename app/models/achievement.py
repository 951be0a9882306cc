from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class PlayerAchievement(Base):
    __tablename__ = "player_achievements"
    __table_args__ = (UniqueConstraint("user_id", "achievement_id", name="uq_player_achievement"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    achievement_id: Mapped[str] = mapped_column(String(50))
    unlocked_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class OvertakeAcknowledgement(Base):
    __tablename__ = "overtake_acknowledgements"
    __table_args__ = (UniqueConstraint("user_id", "rival_id", "match_id", name="uq_overtake_ack"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    rival_id: Mapped[int] = mapped_column(Integer)
    match_id: Mapped[int] = mapped_column(Integer)
    acknowledged_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
