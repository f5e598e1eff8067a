"""
Item-name classification.

Maps the free-text display name of a ticket line onto one of the tracked
inventory categories. Names that match no category are "unknown" and never
touch inventory (free add-ons, water, etc.).
"""

import re
from typing import Dict, List, Optional

from core.config import settings


def _normalize(name) -> str:
    if not isinstance(name, str):
        return ""
    return " ".join(name.strip().lower().split())


class ItemClassifier:
    def __init__(self, aliases: Dict[str, List[str]]):
        # dict order is the fixed category iteration order
        self._patterns = {
            category: [re.compile(r"(?<!\w)" + re.escape(_normalize(a)) + r"(?!\w)") for a in names if _normalize(a)]
            for category, names in aliases.items()
        }

    @property
    def categories(self) -> List[str]:
        return list(self._patterns.keys())

    def classify(self, name) -> Optional[str]:
        normalized = _normalize(name)
        if not normalized:
            return None
        for category, patterns in self._patterns.items():
            if any(p.search(normalized) for p in patterns):
                return category
        return None


classifier = ItemClassifier(settings.item_categories)


def get_classifier() -> ItemClassifier:
    return classifier
