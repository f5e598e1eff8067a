"""
Inventory ledger access.

``apply_inventory_delta`` is the only way reservations change the ledger:
rows are locked (FOR UPDATE where the backend supports it), every category
is validated before any write, and each write is a conditional UPDATE that
refuses to drive ``available`` below zero. All of it runs inside the
caller's transaction.
"""

import logging
from typing import Dict, Iterable, Mapping, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.dates import utcnow
from core.errors import ConcurrentUpdate, StockExceeded
from db.database import InventoryLevel, InventoryMovement

logger = logging.getLogger(__name__)


async def _load_levels(db: AsyncSession, categories: Optional[Iterable[str]] = None, lock: bool = False) -> Dict[str, InventoryLevel]:
    stmt = select(InventoryLevel).order_by(InventoryLevel.category.asc())
    if categories is not None:
        stmt = stmt.where(InventoryLevel.category.in_(list(categories)))
    if lock:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt.execution_options(populate_existing=True))
    return {lvl.category: lvl for lvl in res.scalars().all()}


async def get_inventory(db: AsyncSession) -> Dict[str, int]:
    levels = await _load_levels(db)
    return {c: int(lvl.available or 0) for c, lvl in levels.items()}


async def get_buffer(db: AsyncSession) -> Dict[str, int]:
    levels = await _load_levels(db)
    return {c: int(lvl.buffer or 0) for c, lvl in levels.items()}


async def ensure_categories(db: AsyncSession, categories: Iterable[str]) -> None:
    """Create zero-stock ledger rows for categories that have none yet."""
    categories = list(categories)
    existing = await _load_levels(db, categories)
    for category in categories:
        if category not in existing:
            db.add(InventoryLevel(category=category, available=0, buffer=settings.default_buffer, version=1))
    await db.flush()


def _record_movement(db: AsyncSession, *, category: str, change: int, reason: str, ticket_id: Optional[UUID], date_key: Optional[str]) -> None:
    db.add(
        InventoryMovement(
            category=category,
            change=int(change),
            reason=reason,
            ticket_id=ticket_id,
            date_key=date_key,
        )
    )


async def apply_inventory_delta(
    db: AsyncSession,
    deltas: Mapping[str, int],
    *,
    reason: str,
    ticket_id: Optional[UUID] = None,
    date_key: Optional[str] = None,
    order: Optional[Iterable[str]] = None,
) -> Dict[str, int]:
    """
    Reserve (positive delta) or release (negative delta) units per category.

    Returns the resulting ``available`` count for every touched category.
    Raises StockExceeded for the first category (in ``order``) that would go
    negative; nothing has been written at that point. Raises ConcurrentUpdate
    when a conditional write loses a race.
    """
    categories = list(order) if order is not None else sorted(deltas)
    changed = [c for c in categories if int(deltas.get(c, 0)) != 0]
    if not changed:
        return {}

    levels = await _load_levels(db, changed, lock=True)

    # validate everything before the first write
    for category in changed:
        lvl = levels.get(category)
        available = int(lvl.available or 0) if lvl is not None else 0
        delta = int(deltas[category])
        if available - delta < 0:
            raise StockExceeded(category, available=available, requested=delta, already_reserved=0)

    result: Dict[str, int] = {}
    now = utcnow()
    for category in changed:
        delta = int(deltas[category])
        lvl = levels.get(category)
        if lvl is None:
            # validation guarantees this is a release
            db.add(InventoryLevel(category=category, available=-delta, buffer=settings.default_buffer, version=1, updated_at=now))
            await db.flush()
            result[category] = -delta
        else:
            res = await db.execute(
                update(InventoryLevel)
                .where(InventoryLevel.category == category)
                .where(InventoryLevel.available >= delta)
                .values(
                    available=InventoryLevel.available - delta,
                    version=InventoryLevel.version + 1,
                    updated_at=now,
                )
                .returning(InventoryLevel.available)
                .execution_options(synchronize_session=False)
            )
            after = res.scalar_one_or_none()
            if after is None:
                raise ConcurrentUpdate(f"inventory level {category!r} changed concurrently")
            result[category] = int(after)
        _record_movement(db, category=category, change=-delta, reason=reason, ticket_id=ticket_id, date_key=date_key)

    return result


async def restock(db: AsyncSession, inventory: Mapping[str, int]) -> Dict[str, int]:
    """Set absolute available counts (admin restock), recording each change."""
    categories = sorted(inventory)
    await ensure_categories(db, categories)
    levels = await _load_levels(db, categories, lock=True)
    now = utcnow()
    out: Dict[str, int] = {}
    for category in categories:
        target = int(inventory[category])
        lvl = levels[category]
        change = target - int(lvl.available or 0)
        if change:
            await db.execute(
                update(InventoryLevel)
                .where(InventoryLevel.category == category)
                .values(available=target, version=InventoryLevel.version + 1, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            _record_movement(db, category=category, change=change, reason="RESTOCK", ticket_id=None, date_key=None)
            logger.info("Restocked %s: %+d -> %d", category, change, target)
        out[category] = target
    return out


async def set_buffer(db: AsyncSession, buffer: Mapping[str, int]) -> None:
    categories = sorted(buffer)
    await ensure_categories(db, categories)
    now = utcnow()
    for category in categories:
        await db.execute(
            update(InventoryLevel)
            .where(InventoryLevel.category == category)
            .values(buffer=int(buffer[category]), updated_at=now)
            .execution_options(synchronize_session=False)
        )
