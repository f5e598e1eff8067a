import uuid

from sqlalchemy import Column, DateTime, Integer, String, Text, Uuid
from sqlalchemy.sql import func

from core.dates import utcnow

from ..database import Base


class InventoryMovement(Base):
    __tablename__ = "inventory_movements"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    category = Column(String, nullable=False, index=True)

    # signed change applied to InventoryLevel.available
    change = Column(Integer, nullable=False)
    # 'TICKET_CREATED' | 'TICKET_EDITED' | 'TICKET_CANCELLED' | 'QUEUE_CLEARED' | 'RESTOCK'
    reason = Column(Text, nullable=False)

    ticket_id = Column(Uuid, nullable=True, index=True)
    date_key = Column(String(10), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True)
