import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import QueueError, to_http_exception
from core.item_classifier import ItemClassifier, get_classifier
from db.database import get_async_session
from schemas.settings import SettingsRead, SettingsUpdate
from services.reconciliation import run_atomic
from services.settings import load_settings, save_settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=SettingsRead)
async def get_settings(
    db: AsyncSession = Depends(get_async_session),
    classifier: ItemClassifier = Depends(get_classifier),
):
    try:
        return SettingsRead(**(await load_settings(db, classifier)))
    except Exception:
        logger.exception("GET /settings failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load settings")


@router.post("", response_model=SettingsRead)
async def post_settings(
    payload: SettingsUpdate,
    db: AsyncSession = Depends(get_async_session),
    classifier: ItemClassifier = Depends(get_classifier),
):
    """
    Save service hours and inventory settings.

    - `inventory` values are absolute counts (restock); each change is logged as a RESTOCK movement.
    - `buffer` values are per-category safety margins.
    """
    data = payload.model_dump(exclude_unset=True)
    try:
        await run_atomic(db, lambda s: save_settings(s, **data), label="save settings")
        return SettingsRead(**(await load_settings(db, classifier)))
    except QueueError as e:
        logger.error("POST /settings failed: %s", e)
        raise to_http_exception(e)
    except Exception:
        logger.exception("POST /settings failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save settings")
