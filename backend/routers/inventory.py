import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_async_session, InventoryMovement as InventoryMovementModel
from schemas.inventory import InventoryMovementOut
from services import ledger

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=Dict[str, Dict[str, int]])
async def get_levels(db: AsyncSession = Depends(get_async_session)):
    try:
        return {
            "inventory": await ledger.get_inventory(db),
            "buffer": await ledger.get_buffer(db),
        }
    except Exception:
        logger.exception("GET /inventory failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load inventory")


@router.get("/movements", response_model=List[InventoryMovementOut])
async def list_movements(
    category: Optional[str] = None,
    date_key: Optional[str] = Query(None, alias="date"),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = (
        select(InventoryMovementModel)
        .order_by(InventoryMovementModel.created_at.desc(), InventoryMovementModel.id.desc())
        .limit(limit)
    )
    if category:
        stmt = stmt.where(InventoryMovementModel.category == category.strip().lower())
    if date_key:
        stmt = stmt.where(InventoryMovementModel.date_key == date_key)
    try:
        res = await db.execute(stmt)
        return [InventoryMovementOut.model_validate(m) for m in res.scalars().all()]
    except Exception:
        logger.exception("GET /inventory/movements failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load movements")
