"""
Seed starting inventory for every tracked category.

This script:
- Creates ledger rows for categories that have none.
- Sets each category's available count from <CATEGORY>_QTY (e.g. CHAI_QTY=40),
  recorded as RESTOCK movements.
- Categories without an env var are left as they are.

Run inside docker (recommended):
  docker exec -i queue-api sh -lc "cd /app && PYTHONPATH=/app uv run python scripts/seed_inventory.py"
"""

from __future__ import annotations

import asyncio
import os

from core.item_classifier import classifier
from db.database import async_session_maker, create_db_and_tables
from services import ledger


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return max(0, int(raw.strip()))
    except Exception:
        return None


async def main() -> None:
    await create_db_and_tables()
    targets = {}
    for category in classifier.categories:
        qty = _env_int(f"{category.upper()}_QTY")
        if qty is not None:
            targets[category] = qty

    async with async_session_maker() as db:
        await ledger.ensure_categories(db, classifier.categories)
        if targets:
            await ledger.restock(db, targets)
        await db.commit()
        inventory = await ledger.get_inventory(db)

    print("Inventory: " + ", ".join(f"{c}={n}" for c, n in inventory.items()))


if __name__ == "__main__":
    asyncio.run(main())
