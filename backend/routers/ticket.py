import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InvalidInput, NotFound, QueueError, StorageFailure, to_http_exception
from core.item_classifier import ItemClassifier, get_classifier
from db.database import get_async_session
from schemas.tickets import (
    DATE_KEY_PATTERN,
    TicketCreate,
    TicketDeleted,
    TicketItemsRead,
    TicketItemsUpdate,
    TicketRead,
    TicketStatusUpdate,
)
from services.queue import cancel_ticket, create_ticket, edit_ticket_items, mark_ready

logger = logging.getLogger(__name__)

router = APIRouter()


def _reject(route: str, e: QueueError) -> HTTPException:
    if isinstance(e, StorageFailure):
        logger.error("%s failed in the store: %s", route, e)
    else:
        logger.warning("%s rejected: %s", route, e)
    return to_http_exception(e)


@router.post("", response_model=TicketRead, status_code=status.HTTP_201_CREATED)
async def create(
    payload: TicketCreate,
    db: AsyncSession = Depends(get_async_session),
    classifier: ItemClassifier = Depends(get_classifier),
):
    try:
        out = await create_ticket(
            db,
            classifier,
            items=[it.model_dump() for it in payload.items],
            customer_name=payload.customer_name,
            date_key=payload.date_key,
        )
        return TicketRead(**out)
    except QueueError as e:
        raise _reject("POST /ticket", e)
    except Exception:
        logger.exception("POST /ticket failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create ticket")


@router.patch("", response_model=TicketItemsRead)
async def update_items(
    payload: TicketItemsUpdate,
    db: AsyncSession = Depends(get_async_session),
    classifier: ItemClassifier = Depends(get_classifier),
):
    """Replace a waiting ticket's items, reserving/releasing only the net difference."""
    try:
        out = await edit_ticket_items(
            db,
            classifier,
            date_key=payload.date_key,
            ticket_id=payload.id,
            items=[it.model_dump() for it in payload.items],
        )
        return TicketItemsRead(**out)
    except QueueError as e:
        raise _reject("PATCH /ticket", e)
    except Exception:
        logger.exception("PATCH /ticket failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update ticket")


@router.patch("/status", response_model=TicketRead)
async def update_status(
    payload: TicketStatusUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    try:
        out = await mark_ready(db, date_key=payload.date_key, ticket_id=payload.id)
        return TicketRead(**out)
    except QueueError as e:
        raise _reject("PATCH /ticket/status", e)
    except Exception:
        logger.exception("PATCH /ticket/status failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update ticket status")


@router.delete("", response_model=TicketDeleted)
async def delete_one(
    date: Optional[str] = Query(None, pattern=DATE_KEY_PATTERN),
    ticket_id: Optional[str] = Query(None, alias="id"),
    db: AsyncSession = Depends(get_async_session),
    classifier: ItemClassifier = Depends(get_classifier),
):
    """Delete one ticket; a waiting ticket's reservation goes back to inventory."""
    try:
        if not date or not ticket_id:
            raise InvalidInput("date and id are required")
        try:
            parsed_id = UUID(ticket_id)
        except ValueError:
            raise NotFound("Ticket not found") from None
        out = await cancel_ticket(db, classifier, date_key=date, ticket_id=parsed_id)
        return TicketDeleted(**out)
    except QueueError as e:
        raise _reject("DELETE /ticket", e)
    except Exception:
        logger.exception("DELETE /ticket failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete ticket")
