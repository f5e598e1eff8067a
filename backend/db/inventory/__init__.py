"""
Inventory ledger (one row per item-type category).

Models:
- InventoryLevel (available count + safety buffer per category)
- InventoryMovement (append-only deltas applied to a level)
"""

