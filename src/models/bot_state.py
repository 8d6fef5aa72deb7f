"""Per-bot learning state (last run and a JSON summary of it)."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class BotState(Base):
    __tablename__ = "bot_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bot_name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    last_learned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    notes_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
