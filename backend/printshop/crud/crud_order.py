from typing import Optional

from sqlalchemy.orm import Session

from .. import models


def get_order(db: Session, order_id: str) -> Optional[models.Order]:
    return db.query(models.Order).filter(models.Order.id == order_id).first()


def is_order_participant(db: Session, order: models.Order, user_id: int) -> bool:
    """True when ``user_id`` placed the order or owns the shop fulfilling it."""
    if order.customer_id is not None and int(order.customer_id) == int(user_id):
        return True
    shop = db.query(models.Shop).filter(models.Shop.id == order.shop_id).first()
    return shop is not None and int(shop.owner_id) == int(user_id)


def get_order_for_participant(
    db: Session, order_id: str, user_id: int
) -> Optional[models.Order]:
    """Return the order only if ``user_id`` may read or write its chat."""
    order = get_order(db, order_id)
    if order is None or not is_order_participant(db, order, user_id):
        return None
    return order


def generate_order_id(db: Session, order_type: models.OrderType) -> str:
    prefix = models.ORDER_ID_PREFIX[order_type]
    count = (
        db.query(models.Order)
        .filter(models.Order.order_type == order_type)
        .count()
    )
    return f"{prefix}{count + 1:06d}"


def create_order(
    db: Session,
    customer: models.User,
    shop_id: int,
    order_type: models.OrderType = models.OrderType.UPLOADED_FILES,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    description: str | None = None,
) -> models.Order:
    db_order = models.Order(
        id=generate_order_id(db, order_type),
        shop_id=shop_id,
        customer_id=customer.id,
        customer_name=customer_name or customer.name,
        customer_phone=customer_phone or customer.phone,
        order_type=order_type,
        description=description,
        status=models.OrderStatus.RECEIVED,
    )
    db.add(db_order)
    db.commit()
    db.refresh(db_order)
    return db_order


def update_order_status(
    db: Session, order: models.Order, status: models.OrderStatus
) -> models.Order:
    order.status = status
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def toggle_order_urgency(db: Session, order: models.Order) -> models.Order:
    order.is_urgent = not bool(order.is_urgent)
    db.add(order)
    db.commit()
    db.refresh(order)
    return order
