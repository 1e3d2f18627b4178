from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from .. import models, schemas
from ..crud import crud_order
from .dependencies import get_db, get_current_user, get_current_customer
from .api_ws import broadcaster

router = APIRouter(tags=["orders"])

logger = logging.getLogger(__name__)


def _order_for_shop_staff(
    db: Session, order_id: str, user: models.User, allow_admin: bool = True
) -> models.Order:
    order = crud_order.get_order(db, order_id)
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    if allow_admin and user.role == models.UserRole.ADMIN:
        return order
    if user.role != models.UserRole.SHOP_OWNER or user.shop_id != order.shop_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return order


@router.post("/", response_model=schemas.OrderEnvelope, status_code=status.HTTP_201_CREATED)
def create_order(
    order_in: schemas.OrderCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_customer),
):
    shop = db.query(models.Shop).filter(models.Shop.id == order_in.shop_id).first()
    if shop is None or not shop.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")
    order = crud_order.create_order(
        db,
        customer=current_user,
        shop_id=shop.id,
        order_type=order_in.order_type,
        customer_name=order_in.customer_name,
        customer_phone=order_in.customer_phone,
        description=order_in.description,
    )
    out = schemas.OrderResponse.model_validate(order)
    logger.info("order.created", extra={"order_id": order.id, "shop_id": shop.id})
    background_tasks.add_task(
        broadcaster.broadcast_new_order, out.model_dump(mode="json"), shop.id
    )
    return {"success": True, "message": "Order created successfully", "order": out}


@router.patch("/{order_id}/status", response_model=schemas.OrderEnvelope)
def update_order_status(
    order_id: str,
    update: schemas.OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    order = _order_for_shop_staff(db, order_id, current_user)
    order = crud_order.update_order_status(db, order, update.status)
    out = schemas.OrderResponse.model_validate(order)
    record = out.model_dump(mode="json")
    background_tasks.add_task(broadcaster.broadcast_order_updated, record, order.shop_id)
    if order.customer_id is not None:
        background_tasks.add_task(
            broadcaster.push_notification,
            order.customer_id,
            {"type": "order_status", "orderId": order.id, "status": order.status.value},
        )
    return {"success": True, "message": "Order status updated", "order": out}


@router.patch("/{order_id}/urgency", response_model=schemas.OrderEnvelope)
def toggle_order_urgency(
    order_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    order = _order_for_shop_staff(db, order_id, current_user, allow_admin=False)
    order = crud_order.toggle_order_urgency(db, order)
    out = schemas.OrderResponse.model_validate(order)
    background_tasks.add_task(
        broadcaster.broadcast_order_updated, out.model_dump(mode="json"), order.shop_id
    )
    return {"success": True, "message": "Order urgency toggled", "order": out}
