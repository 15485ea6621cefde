"""Category taxonomy for expense classification.

Top-level categories are a fixed, closed set. Subcategories are an open
list per category, capped at MAX_SUBCATEGORIES and grown only by approval.
"""

from typing import Dict, List

CATEGORIES: List[str] = [
    "Food",
    "Transport",
    "Utilities",
    "Entertainment",
    "Shopping",
    "Health",
    "Other",
]

MAX_SUBCATEGORIES = 8

DEFAULT_SUBCATEGORIES: Dict[str, List[str]] = {
    "Food": ["Groceries", "Dining Out", "Coffee & Snacks", "Delivery"],
    "Transport": ["Ride Hailing", "Fuel", "Public Transit", "Parking"],
    "Utilities": ["Electricity", "Internet", "Phone", "Water"],
    "Entertainment": ["Streaming", "Movies", "Events", "Games"],
    "Shopping": ["Clothing", "Household", "Electronics", "Gifts"],
    "Health": ["Pharmacy", "Doctor", "Fitness", "Insurance"],
    "Other": [],
}


def is_valid_category(name: str) -> bool:
    """Check whether a category name belongs to the fixed taxonomy."""
    return name in CATEGORIES
