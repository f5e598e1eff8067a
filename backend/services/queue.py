"""
Ticket lifecycle operations for the daily walk-up queue.

Ticket status is a small state machine::

    (new) -> waiting -> ready
               |         |
               +---------+--> removed

Only ``waiting`` tickets hold a reservation, so only transitions out of
``waiting`` into ``removed`` (and edits while ``waiting``) touch the ledger.
Every operation runs as a single ``run_atomic`` transaction.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.dates import get_today_key, is_within_service_hours
from core.errors import InvalidInput, InvalidState, NotFound, QueueClosed
from core.item_classifier import ItemClassifier
from db.database import Ticket
from db.ticket import READY, WAITING
from services import ticket_store
from services.reconciliation import reconcile, run_atomic
from services.settings import get_service_hours

logger = logging.getLogger(__name__)

REMOVED = "removed"

# Ledger reason for each status transition; None means no inventory effect.
_TRANSITIONS: Dict[Tuple[str, str], Optional[str]] = {
    (WAITING, READY): None,
    (WAITING, REMOVED): "TICKET_CANCELLED",
    (READY, REMOVED): None,
}


def _transition_reason(current: str, target: str) -> Optional[str]:
    key = (current, target)
    if key not in _TRANSITIONS:
        raise InvalidState(f"Cannot move a {current} ticket to {target}")
    return _TRANSITIONS[key]


def _clean_items(items) -> List[Dict]:
    if not isinstance(items, list):
        raise InvalidInput("items must be a list")
    out = []
    for line in items:
        if not isinstance(line, dict):
            raise InvalidInput("each item must be an object with name and qty")
        name = line.get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput("item name is required")
        out.append({"name": name.strip(), "qty": line.get("qty", 0)})
    return out


async def list_queue(db: AsyncSession, date_key: Optional[str] = None) -> Tuple[str, List[Dict]]:
    date_key = date_key or get_today_key()
    tickets = await ticket_store.list_tickets(db, date_key)
    return date_key, [t.to_schema for t in tickets]


async def create_ticket(
    db: AsyncSession,
    classifier: ItemClassifier,
    *,
    items: List[Dict],
    customer_name: Optional[str] = None,
    date_key: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict:
    items = _clean_items(items)
    date_key = date_key or get_today_key(now)

    async def _op(db: AsyncSession) -> Dict:
        hours = await get_service_hours(db)
        if not is_within_service_hours(hours["service_start"], hours["service_end"], now):
            raise QueueClosed(hours["closed_message"])

        ticket = Ticket(
            date_key=date_key,
            base_position=await ticket_store.next_position(db, date_key),
            customer_name=customer_name,
            status=WAITING,
            items=items,
            version=1,
        )
        await ticket_store.insert_ticket(db, ticket)
        rec = await reconcile(
            db,
            classifier=classifier,
            old_items=[],
            new_items=items,
            reason="TICKET_CREATED",
            ticket_id=ticket.id,
            date_key=date_key,
        )
        logger.info("Ticket %s created at #%s on %s, reserved %s", ticket.id, ticket.base_position, date_key, rec.changed)
        return ticket.to_schema

    return await run_atomic(db, _op, label="create ticket")


async def edit_ticket_items(
    db: AsyncSession,
    classifier: ItemClassifier,
    *,
    date_key: str,
    ticket_id: UUID,
    items: List[Dict],
) -> Dict:
    if not date_key or not ticket_id:
        raise InvalidInput("id, dateKey and items array are required")
    items = _clean_items(items)

    async def _op(db: AsyncSession) -> Dict:
        ticket = await ticket_store.get_ticket(db, date_key, ticket_id, lock=True)
        if ticket is None:
            raise NotFound("Ticket not found")
        if ticket.status != WAITING:
            raise InvalidState("Can only edit waiting tickets")

        rec = await reconcile(
            db,
            classifier=classifier,
            old_items=list(ticket.items or []),
            new_items=items,
            reason="TICKET_EDITED",
            ticket_id=ticket.id,
            date_key=date_key,
        )
        await ticket_store.put_ticket(db, ticket, items=items)
        logger.info("Ticket %s edited on %s, delta %s", ticket_id, date_key, rec.changed)
        return {"id": ticket_id, "date_key": date_key, "items": items}

    return await run_atomic(db, _op, label="edit ticket")


async def cancel_ticket(
    db: AsyncSession,
    classifier: ItemClassifier,
    *,
    date_key: str,
    ticket_id: UUID,
) -> Dict:
    if not date_key or not ticket_id:
        raise InvalidInput("date and id are required")

    async def _op(db: AsyncSession) -> Dict:
        ticket = await ticket_store.get_ticket(db, date_key, ticket_id, lock=True)
        if ticket is None:
            raise NotFound("Ticket not found")

        reason = _transition_reason(ticket.status, REMOVED)
        old_items = list(ticket.items or [])
        await ticket_store.delete_ticket(db, ticket)

        restored: Dict[str, int] = {}
        if reason is not None:
            rec = await reconcile(
                db,
                classifier=classifier,
                old_items=old_items,
                new_items=[],
                reason=reason,
                ticket_id=ticket_id,
                date_key=date_key,
            )
            restored = {c: -d for c, d in rec.changed.items()}
        logger.info("Ticket %s cancelled on %s, restored %s", ticket_id, date_key, restored)
        return {"id": ticket_id, "date_key": date_key, "deleted": True, "restored": restored}

    return await run_atomic(db, _op, label="cancel ticket")


async def mark_ready(db: AsyncSession, *, date_key: str, ticket_id: UUID) -> Dict:
    async def _op(db: AsyncSession) -> Dict:
        ticket = await ticket_store.get_ticket(db, date_key, ticket_id, lock=True)
        if ticket is None:
            raise NotFound("Ticket not found")
        _transition_reason(ticket.status, READY)
        await ticket_store.put_ticket(db, ticket, status=READY)
        return ticket.to_schema

    return await run_atomic(db, _op, label="mark ticket ready")


async def clear_waiting(db: AsyncSession, classifier: ItemClassifier, *, date_key: Optional[str] = None) -> Dict:
    """
    Remove every waiting ticket for the day and give back their combined
    reservation with a single ledger update. Ready tickets stay.
    """
    date_key = date_key or get_today_key()

    async def _op(db: AsyncSession) -> Dict:
        waiting = await ticket_store.list_tickets(db, date_key, status=WAITING, lock=True)
        combined: List[Dict] = []
        for t in waiting:
            combined.extend(t.items or [])
        removed = await ticket_store.delete_tickets(db, waiting)

        rec = await reconcile(
            db,
            classifier=classifier,
            old_items=combined,
            new_items=[],
            reason="QUEUE_CLEARED",
            date_key=date_key,
        )
        restored = {c: -d for c, d in rec.changed.items()}
        logger.info("Cleared %d waiting tickets on %s, restored %s", removed, date_key, restored)
        return {"date_key": date_key, "cleared": True, "removed": removed, "restored": restored}

    return await run_atomic(db, _op, label="clear queue")
