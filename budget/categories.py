"""Category budgets tracked per table.

``spent`` is entered by the user and never derived from formula cells.
"""

from typing import List, Optional, Union

from core.models import CategoryBudget, CategoryShare, CategoryStatus, Table
from config import settings
from utils.numeric import parse_float, safe_percent

Amount = Union[str, int, float, None]


def add_category(table: Table, name: str, limit: Amount, threshold: Amount = None) -> Optional[CategoryBudget]:
    """Add a category budget; no-op for a blank name or unparseable limit"""
    clean_name = (name or "").strip()
    parsed_limit = parse_float(limit)
    if table is None or not clean_name or parsed_limit is None:
        return None

    category = CategoryBudget(
        name=clean_name,
        limit=parsed_limit,
        spent=0.0,
        alert_threshold=parse_float(threshold) or settings.DEFAULT_ALERT_THRESHOLD,
    )
    table.category_budgets.append(category)
    return category


def get_category(table: Table, category_id: str) -> Optional[CategoryBudget]:
    for category in table.category_budgets:
        if category.id == category_id:
            return category
    return None


def delete_category(table: Table, category_id: str) -> bool:
    category = get_category(table, category_id)
    if category is None:
        return False
    table.category_budgets.remove(category)
    return True


def set_spent(table: Table, category_id: str, amount: Amount) -> Optional[CategoryBudget]:
    """Overwrite the spent amount; unparseable input counts as 0"""
    category = get_category(table, category_id)
    if category is None:
        return None
    category.spent = parse_float(amount, 0.0)
    return category


def category_status(category: CategoryBudget) -> CategoryStatus:
    percentage = safe_percent(category.spent, category.limit)
    over = percentage > 100
    return CategoryStatus(
        category_id=category.id,
        name=category.name,
        limit=category.limit,
        spent=category.spent,
        remaining=category.limit - category.spent,
        percentage=percentage,
        is_over_budget=over,
        is_near_limit=percentage >= category.alert_threshold and not over,
    )


def table_statuses(table: Table) -> List[CategoryStatus]:
    return [category_status(category) for category in table.category_budgets]


def spending_breakdown(table: Table) -> List[CategoryShare]:
    """Each category's share of the table's total spent amount"""
    total = sum(category.spent for category in table.category_budgets)
    return [
        CategoryShare(
            category_id=category.id,
            name=category.name,
            spent=category.spent,
            share=safe_percent(category.spent, total),
        )
        for category in table.category_budgets
    ]
