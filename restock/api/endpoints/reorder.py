from typing import List

from fastapi import APIRouter, Query

from restock.core.affiliate import generate_affiliate_link
from restock.core.config import settings
from restock.core.reorder import due_notifications
from restock.schemas.reorder import (
    AffiliateLinkOut,
    ReorderNotificationOut,
    ReorderNotificationsIn,
)

router = APIRouter()


@router.post("/notifications", response_model=List[ReorderNotificationOut])
async def reorder_notifications(payload: ReorderNotificationsIn):
    """
    Products due for reorder within the notification window, overdue included.
    """
    urls = {product.id: product.product_url for product in payload.products}
    notifications = due_notifications(
        payload.products,
        today=payload.today,
        window_days=settings.REORDER_NOTIFICATION_DAYS,
    )
    return [
        ReorderNotificationOut(
            id=n.id,
            product_name=n.product_name,
            days_left=n.days_left,
            product_url=generate_affiliate_link(urls[n.id]) if urls.get(n.id) else None,
        )
        for n in notifications
    ]


@router.get("/affiliate-link", response_model=AffiliateLinkOut)
async def affiliate_link(url: str = Query(..., min_length=1)):
    return AffiliateLinkOut(url=url, affiliate_url=generate_affiliate_link(url))
