from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.dates import utcnow
from core.item_classifier import ItemClassifier
from db.database import AppSettings
from db.settings import (
    DEFAULT_CLOSED_MESSAGE,
    DEFAULT_SERVICE_END,
    DEFAULT_SERVICE_START,
    SETTINGS_ID,
)
from services import ledger


async def get_app_settings(db: AsyncSession) -> Optional[AppSettings]:
    res = await db.execute(
        select(AppSettings).where(AppSettings.id == SETTINGS_ID).execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def get_service_hours(db: AsyncSession) -> Dict[str, str]:
    s = await get_app_settings(db)
    return {
        "service_start": (s.service_start if s else None) or DEFAULT_SERVICE_START,
        "service_end": (s.service_end if s else None) or DEFAULT_SERVICE_END,
        "closed_message": (s.closed_message if s else None) or DEFAULT_CLOSED_MESSAGE,
    }


async def load_settings(db: AsyncSession, classifier: ItemClassifier) -> Dict:
    """Stored record merged over defaults; every tracked category is present."""
    out = await get_service_hours(db)
    zeros = {c: 0 for c in classifier.categories}
    out["inventory"] = {**zeros, **(await ledger.get_inventory(db))}
    defaults = {c: settings.default_buffer for c in classifier.categories}
    out["buffer"] = {**defaults, **(await ledger.get_buffer(db))}
    return out


async def save_settings(
    db: AsyncSession,
    *,
    service_start: Optional[str] = None,
    service_end: Optional[str] = None,
    closed_message: Optional[str] = None,
    inventory: Optional[Dict[str, int]] = None,
    buffer: Optional[Dict[str, int]] = None,
) -> None:
    s = await get_app_settings(db)
    if s is None:
        s = AppSettings(id=SETTINGS_ID)
        db.add(s)
    s.service_start = service_start or s.service_start or DEFAULT_SERVICE_START
    s.service_end = service_end or s.service_end or DEFAULT_SERVICE_END
    s.closed_message = closed_message or s.closed_message or DEFAULT_CLOSED_MESSAGE
    s.updated_at = utcnow()
    await db.flush()

    if buffer:
        await ledger.set_buffer(db, buffer)
    if inventory:
        await ledger.restock(db, inventory)
