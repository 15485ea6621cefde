"""Subcategory service for the per-category subcategory map."""

import copy
from typing import Dict, List

from models.category import CATEGORIES, DEFAULT_SUBCATEGORIES, MAX_SUBCATEGORIES
from services.store import SUBCATEGORIES_KEY
from logger import get_logger

logger = get_logger()


class SubcategoryService:
    """Service for managing approved subcategories."""

    def __init__(self, store):
        self.store = store

    def find_all(self) -> Dict[str, List[str]]:
        """Get the subcategory map, falling back to the defaults.

        Returns:
            Dict mapping each category to its subcategory names.
        """
        stored = self.store.load(SUBCATEGORIES_KEY, None)
        if not stored:
            return copy.deepcopy(DEFAULT_SUBCATEGORIES)
        return stored

    def save_all(self, subcategories: Dict[str, List[str]]) -> None:
        self.store.persist(SUBCATEGORIES_KEY, subcategories)

    def approve(self, parent_category: str, name: str) -> bool:
        """Add an approved subcategory under a parent category.

        Duplicates are ignored and each parent holds at most
        MAX_SUBCATEGORIES names.

        Args:
            parent_category: One of the fixed top-level categories.
            name: Subcategory name to add.

        Returns:
            True if the name was added, False if it was a duplicate or the cap was hit.

        Raises:
            ValueError: If the parent category is unknown or the name is empty.
        """
        if parent_category not in CATEGORIES:
            raise ValueError(f"Unknown category: {parent_category}")

        name = name.strip()
        if not name:
            raise ValueError("Subcategory name cannot be empty")

        subcategories = self.find_all()
        existing = subcategories.get(parent_category, [])

        if name in existing:
            return False

        if len(existing) >= MAX_SUBCATEGORIES:
            logger.warning(
                f"Category '{parent_category}' already has {MAX_SUBCATEGORIES} "
                f"subcategories; '{name}' not added"
            )
            return False

        subcategories[parent_category] = existing + [name]
        self.save_all(subcategories)
        logger.info(f"Approved subcategory '{name}' under '{parent_category}'")
        return True
