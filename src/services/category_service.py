# src/services/category_service.py
from __future__ import annotations

from typing import List, Optional

from src.models.category import CategoryGroup


def classify(text: str) -> Optional[CategoryGroup]:
    """
    Return the group whose keywords occur most often in the text.
    Ties go to the group declared first in CategoryGroup; None when nothing matches.
    """
    lower_text = (text or "").lower()

    best_group, best_count = None, 0
    for group in CategoryGroup:
        count = sum(1 for keyword in group.keywords if keyword.lower() in lower_text)
        # strict ">" keeps the earlier group on ties
        if count > best_count:
            best_group, best_count = group, count
    return best_group


def extract_keywords(text: str, group: CategoryGroup) -> List[str]:
    """Keywords of `group` present in the text, in the group's declared order."""
    lower_text = (text or "").lower()
    return _distinct(k for k in group.keywords if k.lower() in lower_text)


def extract_all_keywords(text: str) -> List[str]:
    lower_text = (text or "").lower()
    return _distinct(
        k for group in CategoryGroup for k in group.keywords if k.lower() in lower_text
    )


def _distinct(items) -> List[str]:
    return list(dict.fromkeys(items))
