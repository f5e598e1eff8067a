from collections import defaultdict
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.dates import utcnow
from core.errors import ConcurrentUpdate
from db.database import Ticket

# ids per DELETE ... IN (...) statement
_DELETE_CHUNK = 500


async def list_tickets(db: AsyncSession, date_key: str, status: Optional[str] = None, lock: bool = False) -> List[Ticket]:
    stmt = (
        select(Ticket)
        .where(Ticket.date_key == date_key)
        .order_by(Ticket.base_position.asc())
    )
    if status:
        stmt = stmt.where(Ticket.status == status)
    if lock:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt.execution_options(populate_existing=True))
    return list(res.scalars().all())


async def get_ticket(db: AsyncSession, date_key: str, ticket_id: UUID, lock: bool = False) -> Optional[Ticket]:
    stmt = select(Ticket).where(Ticket.id == ticket_id, Ticket.date_key == date_key)
    if lock:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt.execution_options(populate_existing=True))
    return res.scalar_one_or_none()


async def next_position(db: AsyncSession, date_key: str) -> int:
    res = await db.execute(select(func.max(Ticket.base_position)).where(Ticket.date_key == date_key))
    current = res.scalar()
    return int(current or 0) + 1


async def insert_ticket(db: AsyncSession, ticket: Ticket) -> Ticket:
    db.add(ticket)
    # surfaces a duplicate (date_key, base_position) inside the transaction
    await db.flush()
    return ticket


async def put_ticket(db: AsyncSession, ticket: Ticket, **values) -> Ticket:
    """Write ``values`` onto ``ticket`` only if nobody else wrote it since it was read."""
    expected = int(ticket.version)
    res = await db.execute(
        update(Ticket)
        .where(Ticket.id == ticket.id, Ticket.version == expected)
        .values(version=expected + 1, updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise ConcurrentUpdate(f"ticket {ticket.id} changed concurrently")
    await db.refresh(ticket)
    return ticket


async def delete_ticket(db: AsyncSession, ticket: Ticket) -> None:
    res = await db.execute(
        delete(Ticket)
        .where(Ticket.id == ticket.id, Ticket.version == int(ticket.version))
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise ConcurrentUpdate(f"ticket {ticket.id} changed concurrently")
    db.expunge(ticket)


async def delete_tickets(db: AsyncSession, tickets: Sequence[Ticket]) -> int:
    """Delete exactly the given tickets (at the versions read) or none of them."""
    if not tickets:
        return 0
    by_version: Dict[int, List[UUID]] = defaultdict(list)
    for t in tickets:
        by_version[int(t.version)].append(t.id)

    removed = 0
    for version, ids in by_version.items():
        for start in range(0, len(ids), _DELETE_CHUNK):
            res = await db.execute(
                delete(Ticket)
                .where(Ticket.version == version, Ticket.id.in_(ids[start:start + _DELETE_CHUNK]))
                .execution_options(synchronize_session=False)
            )
            removed += int(res.rowcount or 0)
    if removed != len(tickets):
        raise ConcurrentUpdate("queue changed while clearing")
    for t in tickets:
        db.expunge(t)
    return removed
