from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from core.dates import utcnow

from ..database import Base


class InventoryLevel(Base):
    __tablename__ = "inventory_levels"
    __table_args__ = (
        CheckConstraint("available >= 0", name="ck_inventory_levels_available_nonneg"),
    )

    category = Column(String, primary_key=True)  # e.g. 'chai' | 'bun' | 'tiramisu'
    available = Column(Integer, nullable=False, default=0)

    # Safety margin shown to staff; not enforced by reconciliation.
    buffer = Column(Integer, nullable=False, default=10)

    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
