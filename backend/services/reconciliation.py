"""
Ticket <-> inventory reconciliation.

Every change to what a ticket reserves goes through ``reconcile``: the old and
new item lists are aggregated per category, the net delta is validated against
the ledger for *all* categories, and only then written. ``run_atomic`` wraps a
whole queue operation (ticket write + ledger write) in one transaction and
retries it a bounded number of times when it loses a race.
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, Optional, TypeVar
from uuid import UUID

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import ConcurrentUpdate, QueueError, StockExceeded, StorageFailure
from core.item_classifier import ItemClassifier
from services import ledger

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _as_qty(x) -> int:
    try:
        value = float(x)
    except Exception:
        return 0
    if not math.isfinite(value) or value <= 0:
        return 0
    return int(value)


def aggregate_quantities(items: Optional[Iterable], classifier: ItemClassifier) -> Dict[str, int]:
    """Total quantity per tracked category; unknown names contribute nothing."""
    totals = {c: 0 for c in classifier.categories}
    for line in items or []:
        if not isinstance(line, Mapping):
            continue
        category = classifier.classify(line.get("name"))
        if category is None:
            continue
        totals[category] += _as_qty(line.get("qty"))
    return totals


def net_deltas(old: Mapping[str, int], new: Mapping[str, int], categories: Iterable[str]) -> Dict[str, int]:
    """Positive = more to reserve, negative = units to give back."""
    return {c: int(new.get(c, 0)) - int(old.get(c, 0)) for c in categories}


@dataclass
class Reconciliation:
    old: Dict[str, int]
    new: Dict[str, int]
    deltas: Dict[str, int]
    inventory: Dict[str, int] = field(default_factory=dict)

    @property
    def changed(self) -> Dict[str, int]:
        return {c: d for c, d in self.deltas.items() if d}


async def reconcile(
    db: AsyncSession,
    *,
    classifier: ItemClassifier,
    old_items: Optional[Iterable],
    new_items: Optional[Iterable],
    reason: str,
    ticket_id: Optional[UUID] = None,
    date_key: Optional[str] = None,
) -> Reconciliation:
    """
    Move the ledger from reserving ``old_items`` to reserving ``new_items``.

    Must run inside the transaction that also writes the ticket. Raises
    StockExceeded (with the requested / already-reserved figures for the
    offending category) before anything is written.
    """
    categories = classifier.categories
    old = aggregate_quantities(old_items, classifier)
    new = aggregate_quantities(new_items, classifier)
    deltas = net_deltas(old, new, categories)
    rec = Reconciliation(old=old, new=new, deltas=deltas)

    try:
        rec.inventory = await ledger.apply_inventory_delta(
            db,
            deltas,
            reason=reason,
            ticket_id=ticket_id,
            date_key=date_key,
            order=categories,
        )
    except StockExceeded as e:
        raise StockExceeded(
            e.category,
            available=e.available,
            requested=new.get(e.category, 0),
            already_reserved=old.get(e.category, 0),
        ) from None
    return rec


# serialization failure, deadlock, lock not available
_TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03"}
_TRANSIENT_MESSAGES = ("database is locked", "database table is locked", "deadlock detected")


def _is_transient(err: DBAPIError) -> bool:
    """Lock and serialization errors worth retrying; anything else is deterministic."""
    if isinstance(err, IntegrityError):
        # a duplicate (date_key, base_position) from a concurrent creator
        return True
    code = getattr(err.orig, "pgcode", None) or getattr(err.orig, "sqlstate", None)
    if code in _TRANSIENT_SQLSTATES:
        return True
    message = str(err.orig).lower()
    return any(m in message for m in _TRANSIENT_MESSAGES)


async def run_atomic(
    db: AsyncSession,
    operation: Callable[[AsyncSession], Awaitable[T]],
    *,
    attempts: Optional[int] = None,
    label: str = "operation",
) -> T:
    """
    Run ``operation`` and commit, as one transaction.

    Lost races and transient store errors roll back and retry; business
    errors roll back and propagate untouched. Nothing is ever half-applied.
    """
    attempts = attempts or settings.reconcile_max_retries
    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            result = await operation(db)
            await db.commit()
            return result
        except QueueError:
            await db.rollback()
            raise
        except ConcurrentUpdate as e:
            await db.rollback()
            last_error = e
            logger.warning("%s conflicted (attempt %d/%d): %s", label, attempt, attempts, e)
        except DBAPIError as e:
            await db.rollback()
            if not _is_transient(e):
                logger.error("%s failed in the store: %r", label, e)
                raise StorageFailure(f"{label} failed", cause=e) from e
            last_error = e
            logger.warning("%s conflicted (attempt %d/%d): %s", label, attempt, attempts, e)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("%s failed in the store: %r", label, e)
            raise StorageFailure(f"{label} failed", cause=e) from e
    raise StorageFailure(f"{label} failed after {attempts} attempts", cause=last_error)
