from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from schemas.tickets import CamelModel


class InventoryMovementOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    category: str
    change: int
    reason: str
    ticket_id: Optional[UUID] = None
    date_key: Optional[str] = None
    created_at: datetime
