"""
Delete ALL tickets for a day (default: today) WITHOUT restoring inventory.

Use DELETE /queue for the normal end-of-day clear; this is an admin reset for
test days where the ledger is re-seeded afterwards.

Run inside docker (recommended):
  docker exec -i queue-api sh -lc "cd /app && PYTHONPATH=/app uv run python scripts/reset_queue.py [YYYY-MM-DD]"
"""

from __future__ import annotations

import asyncio
import sys

from sqlalchemy import delete

from core.dates import get_today_key
from db.database import async_session_maker, Ticket


async def main(date_key: str) -> None:
    async with async_session_maker() as db:
        res = await db.execute(delete(Ticket).where(Ticket.date_key == date_key))
        await db.commit()

        n = int(getattr(res, "rowcount", 0) or 0)
        print(f"Deleted tickets for {date_key}: {n}")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else get_today_key()))
