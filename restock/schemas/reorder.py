"""
Pydantic schemas for reorder reminders.
"""

from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field


class ProductIn(BaseModel):
    id: str
    name: str = Field(..., min_length=1)
    product_url: Optional[str] = None
    next_reorder_date: date


class ReorderNotificationOut(BaseModel):
    id: str
    product_name: str
    days_left: int
    product_url: Optional[str] = None


class ReorderNotificationsIn(BaseModel):
    products: List[ProductIn]
    today: Optional[date] = None


class AffiliateLinkOut(BaseModel):
    url: str
    affiliate_url: str
