"""Audit trail of tool invocations."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ToolAudit(Base):
    __tablename__ = "tool_audit"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    api_key_hint: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="Masked credential or JWT subject"
    )
    tool_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    params_json: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="success | error"
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        default=lambda: datetime.now(UTC),
    )
