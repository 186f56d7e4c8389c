"""
Reorder reminders: days left until a product should be bought again and the
list of products due soon enough to notify about.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional, Union

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class ReorderNotification:
    id: str
    product_name: str
    days_left: int


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def days_until_reorder(next_reorder_date: DateLike, today: Optional[DateLike] = None) -> int:
    """Whole calendar days until the reorder date; negative when overdue."""
    today = _as_date(today) if today is not None else date.today()
    return (_as_date(next_reorder_date) - today).days


def due_notifications(products: Iterable, today: Optional[DateLike] = None,
                      window_days: int = 3) -> List[ReorderNotification]:
    notifications = []
    for product in products:
        days_left = days_until_reorder(product.next_reorder_date, today)
        if days_left <= window_days:
            notifications.append(
                ReorderNotification(id=product.id, product_name=product.name, days_left=days_left)
            )
    return notifications
