"""RequestMessage ORM — one entry of a request's append-only ledger.

Invariants:
    - content is 1–500 characters (CHECK on length; blank rejected before insert)
    - type_message ∈ MessageType values, whose_message ∈ Author values
    - No code path updates or deletes a row
"""

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint, DateTime, ForeignKey, Index, Integer, String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assignflow.db.base import Base


class RequestMessage(Base):
    """Ledger entry — audit trail and derivation source for the state machine."""
    __tablename__ = "request_message"
    __table_args__ = (
        CheckConstraint(
            "length(content) BETWEEN 1 AND 500", name="ck_request_message_content",
        ),
        Index("ix_request_message_request_id", "request_id", "id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("request_asignation.id"), nullable=False,
    )
    content: Mapped[str] = mapped_column(String(500), nullable=False)
    type_message: Mapped[str] = mapped_column(String(20), nullable=False)
    whose_message: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    request: Mapped["RequestAsignation"] = relationship(
        "RequestAsignation", back_populates="messages",
    )
