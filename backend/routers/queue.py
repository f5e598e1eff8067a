import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import QueueError, to_http_exception
from core.item_classifier import ItemClassifier, get_classifier
from db.database import get_async_session
from schemas.tickets import DATE_KEY_PATTERN, QueueCleared, QueueRead, TicketRead
from services.queue import clear_waiting, list_queue

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=QueueRead)
async def get_queue(
    date: Optional[str] = Query(None, pattern=DATE_KEY_PATTERN),
    db: AsyncSession = Depends(get_async_session),
):
    try:
        date_key, tickets = await list_queue(db, date)
        return QueueRead(date_key=date_key, tickets=[TicketRead(**t) for t in tickets])
    except Exception:
        logger.exception("GET /queue failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch queue")


@router.delete("", response_model=QueueCleared)
async def clear_queue(
    db: AsyncSession = Depends(get_async_session),
    classifier: ItemClassifier = Depends(get_classifier),
):
    """
    Clear today's queue.

    - Deletes every `waiting` ticket and restores their combined reservation in one ledger update.
    - `ready` (served) tickets are kept.
    """
    try:
        out = await clear_waiting(db, classifier)
        return QueueCleared(**out)
    except QueueError as e:
        logger.error("DELETE /queue rejected: %s", e)
        raise to_http_exception(e)
    except Exception:
        logger.exception("DELETE /queue failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to clear queue")
