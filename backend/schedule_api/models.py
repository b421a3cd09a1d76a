from __future__ import annotations
import uuid
from typing import Optional
from datetime import datetime

from sqlalchemy import Index, String, Text, DateTime, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base

class Event(Base):
    __tablename__ = "events"
    __table_args__ = (Index("ix_events_user_id_start_time", "user_id", "start_time"),)

    id:          Mapped[uuid.UUID]     = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title:       Mapped[str]           = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_time:  Mapped[datetime]      = mapped_column(DateTime(timezone=True), nullable=False)
    end_time:    Mapped[datetime]      = mapped_column(DateTime(timezone=True), nullable=False)
    user_id:     Mapped[str]           = mapped_column(String(64), nullable=False)
    created_at:  Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=True
    )
    updated_at:  Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Event id={self.id} user_id={self.user_id!r} title={self.title!r}>"
