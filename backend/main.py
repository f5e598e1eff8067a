import logging

from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from core.config import settings
from core.item_classifier import classifier
from db.database import async_session_maker, create_db_and_tables
from routers.inventory import router as inventory_router
from routers.queue import router as queue_router
from routers.settings import router as settings_router
from routers.ticket import router as ticket_router
from services import ledger

logging.basicConfig(level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("walkup_queue")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    async with async_session_maker() as db:
        await ledger.ensure_categories(db, classifier.categories)
        await db.commit()
    logger.info("Tracking inventory categories: %s", ", ".join(classifier.categories))
    yield


app = FastAPI(
    title="Walk-up Queue API",
    description="Daily walk-up order queue with reserved perishable inventory",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(queue_router, prefix="/queue", tags=["queue"])
app.include_router(ticket_router, prefix="/ticket", tags=["ticket"])
app.include_router(settings_router, prefix="/settings", tags=["settings"])
app.include_router(inventory_router, prefix="/inventory", tags=["inventory"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
