import uuid

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from core.dates import utcnow

from .database import Base

WAITING = "waiting"
READY = "ready"


class Ticket(Base):
    """One customer's queued order for one day."""
    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("date_key", "base_position", name="ux_tickets_date_position"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    date_key = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    base_position = Column(Integer, nullable=False)
    customer_name = Column(String, nullable=True)
    status = Column(Text, nullable=False, default=WAITING, index=True)  # waiting|ready

    # [{"name": str, "qty": int}, ...] in display order
    items = Column(JSON, nullable=False, default=list)

    # optimistic concurrency token, bumped on every write
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "date_key": self.date_key,
            "base_position": self.base_position,
            "customer_name": self.customer_name,
            "status": self.status,
            "items": list(self.items or []),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
