from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


TicketStatus = Literal["waiting", "ready"]

DATE_KEY_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TicketItem(CamelModel):
    name: str
    qty: int = Field(default=1, ge=0)

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class TicketRead(CamelModel):
    id: UUID
    date_key: str
    base_position: int
    customer_name: Optional[str] = None
    status: TicketStatus
    items: List[Dict]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QueueRead(CamelModel):
    date_key: str
    tickets: List[TicketRead]


class QueueCleared(CamelModel):
    date_key: str
    cleared: bool
    removed: int
    restored: Dict[str, int]


class TicketCreate(CamelModel):
    items: List[TicketItem]
    customer_name: Optional[str] = None
    date_key: Optional[str] = Field(default=None, pattern=DATE_KEY_PATTERN)

    @field_validator("customer_name")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class TicketItemsUpdate(CamelModel):
    id: UUID
    date_key: str = Field(pattern=DATE_KEY_PATTERN)
    items: List[TicketItem]


class TicketItemsRead(CamelModel):
    id: UUID
    date_key: str
    items: List[TicketItem]


class TicketStatusUpdate(CamelModel):
    id: UUID
    date_key: str = Field(pattern=DATE_KEY_PATTERN)
    status: Literal["ready"]


class TicketDeleted(CamelModel):
    id: UUID
    date_key: str
    deleted: bool
    restored: Dict[str, int] = {}
