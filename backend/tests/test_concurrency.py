import asyncio

import pytest
from sqlalchemy import select, update

from core.config import settings
from core.errors import StockExceeded
from db.database import InventoryLevel, InventoryMovement, Ticket
from services import ledger, ticket_store
from services.queue import cancel_ticket, clear_waiting, create_ticket, edit_ticket_items

DAY = "2026-10-19"


async def _seed(session_maker, classifier, **levels):
    async with session_maker() as s:
        await ledger.ensure_categories(s, classifier.categories)
        await ledger.restock(s, levels)
        await s.commit()


async def _inventory(session_maker):
    async with session_maker() as s:
        return await ledger.get_inventory(s)


async def _movements(session_maker, reason):
    async with session_maker() as s:
        res = await s.execute(select(InventoryMovement).where(InventoryMovement.reason == reason))
        return [(m.category, m.change) for m in res.scalars().all()]


async def _set_available(session_maker, category, available):
    async with session_maker() as other:
        await other.execute(
            update(InventoryLevel).where(InventoryLevel.category == category).values(available=available)
        )
        await other.commit()


async def _stored_ticket(db, ticket_id):
    res = await db.execute(select(Ticket).where(Ticket.id == ticket_id))
    return res.scalar_one()


@pytest.mark.asyncio
async def test_concurrent_creates_never_oversell(file_session_maker, classifier, open_at, monkeypatch):
    monkeypatch.setattr(settings, "reconcile_max_retries", 10)
    await _seed(file_session_maker, classifier, chai=3)

    async def order():
        async with file_session_maker() as s:
            try:
                await create_ticket(s, classifier, items=[{"name": "Chai", "qty": 1}], date_key=DAY, now=open_at)
                return "ok"
            except StockExceeded:
                return "exceeded"

    results = await asyncio.gather(*(order() for _ in range(6)))

    assert results.count("ok") == 3
    assert results.count("exceeded") == 3
    assert (await _inventory(file_session_maker))["chai"] == 0
    async with file_session_maker() as s:
        tickets = await ticket_store.list_tickets(s, DAY)
    assert sorted(t.base_position for t in tickets) == [1, 2, 3]


@pytest.mark.asyncio
async def test_cancel_retries_after_a_concurrent_ticket_write(file_session_maker, classifier, open_at, monkeypatch):
    await _seed(file_session_maker, classifier, chai=5)
    async with file_session_maker() as s:
        t = await create_ticket(s, classifier, items=[{"name": "Chai", "qty": 2}], date_key=DAY, now=open_at)

    real_get = ticket_store.get_ticket
    seen = []

    async def get_then_touch(db, date_key, ticket_id, lock=False):
        ticket = await real_get(db, date_key, ticket_id, lock=lock)
        seen.append(ticket.version)
        if len(seen) == 1:
            async with file_session_maker() as other:
                await other.execute(
                    update(Ticket).where(Ticket.id == ticket_id).values(version=Ticket.version + 1)
                )
                await other.commit()
        return ticket

    monkeypatch.setattr(ticket_store, "get_ticket", get_then_touch)

    async with file_session_maker() as s:
        out = await cancel_ticket(s, classifier, date_key=DAY, ticket_id=t["id"])

    assert seen == [1, 2]
    assert out["restored"] == {"chai": 2}
    assert (await _inventory(file_session_maker))["chai"] == 5
    assert await _movements(file_session_maker, "TICKET_CANCELLED") == [("chai", 2)]


@pytest.mark.asyncio
async def test_clear_retries_when_a_waiting_ticket_is_edited_meanwhile(file_session_maker, classifier, open_at, monkeypatch):
    await _seed(file_session_maker, classifier, chai=10)
    async with file_session_maker() as s:
        await create_ticket(s, classifier, items=[{"name": "Chai", "qty": 2}], date_key=DAY, now=open_at)
        b = await create_ticket(s, classifier, items=[{"name": "Chai", "qty": 3}], date_key=DAY, now=open_at)

    real_list = ticket_store.list_tickets
    calls = []

    async def list_then_edit(db, date_key, status=None, lock=False):
        tickets = await real_list(db, date_key, status=status, lock=lock)
        calls.append(len(tickets))
        if len(calls) == 1:
            async with file_session_maker() as other:
                await edit_ticket_items(
                    other, classifier, date_key=DAY, ticket_id=b["id"], items=[{"name": "Chai", "qty": 1}]
                )
        return tickets

    monkeypatch.setattr(ticket_store, "list_tickets", list_then_edit)

    async with file_session_maker() as s:
        out = await clear_waiting(s, classifier, date_key=DAY)

    assert calls == [2, 2]
    assert out["removed"] == 2
    # 2 from the first ticket, 1 left on the edited one
    assert out["restored"] == {"chai": 3}
    assert (await _inventory(file_session_maker))["chai"] == 10
    assert await _movements(file_session_maker, "QUEUE_CLEARED") == [("chai", 3)]


@pytest.mark.asyncio
async def test_lost_ledger_race_is_retried_against_fresh_counts(file_session_maker, classifier, open_at, monkeypatch):
    await _seed(file_session_maker, classifier, chai=3)
    async with file_session_maker() as s:
        t = await create_ticket(s, classifier, items=[{"name": "Chai", "qty": 1}], date_key=DAY, now=open_at)

    real_load = ledger._load_levels
    locked_reads = []

    async def load_then_drain(db, categories=None, lock=False):
        levels = await real_load(db, categories, lock)
        if lock:
            locked_reads.append(1)
            if len(locked_reads) == 1:
                await _set_available(file_session_maker, "chai", 1)
        return levels

    monkeypatch.setattr(ledger, "_load_levels", load_then_drain)

    async with file_session_maker() as s:
        with pytest.raises(StockExceeded) as exc:
            await edit_ticket_items(s, classifier, date_key=DAY, ticket_id=t["id"], items=[{"name": "Chai", "qty": 3}])

    assert len(locked_reads) == 2
    assert (exc.value.available, exc.value.requested, exc.value.already_reserved) == (1, 3, 1)
    assert (await _inventory(file_session_maker))["chai"] == 1
    assert await _movements(file_session_maker, "TICKET_EDITED") == []
    async with file_session_maker() as s:
        stored = await _stored_ticket(s, t["id"])
    assert stored.items == [{"name": "Chai", "qty": 1}]


@pytest.mark.asyncio
async def test_apply_delta_reports_the_stored_count(file_session_maker, classifier, monkeypatch):
    await _seed(file_session_maker, classifier, chai=2)

    real_load = ledger._load_levels

    async def load_then_restock(db, categories=None, lock=False):
        levels = await real_load(db, categories, lock)
        if lock:
            await _set_available(file_session_maker, "chai", 10)
        return levels

    monkeypatch.setattr(ledger, "_load_levels", load_then_restock)

    async with file_session_maker() as s:
        result = await ledger.apply_inventory_delta(s, {"chai": 2}, reason="TICKET_CREATED")
        await s.commit()

    assert result == {"chai": 8}
    assert (await _inventory(file_session_maker))["chai"] == 8
