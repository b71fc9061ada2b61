import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .auth import Identity, split_display_name
from .errors import NotFound, ValidationFailed
from .lifecycle import Transition, initial_order_status
from .models import OrderStatus, Role, ShopCategory, ShopStatus

logger = logging.getLogger(__name__)

# Business rule: money stored rounded to 2 decimals, strictly positive

def round_amount(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _positive_amount(value: Decimal, field: str) -> Decimal:
    amount = round_amount(value)
    if amount <= 0:
        raise ValidationFailed(f"{field} must be greater than 0", field=field)
    return amount


def _commit(db: Session, message: str):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValidationFailed(message) from e


# -------------------- Users --------------------

def get_user(db: Session, user_id: str) -> models.User | None:
    return db.get(models.User, user_id)


def _apply_identity(user: models.User, identity: Identity):
    first, last = split_display_name(identity.name)
    user.email = identity.email
    user.first_name = first
    user.last_name = last
    user.profile_image_url = identity.picture


def ensure_profile(db: Session, identity: Identity) -> models.User:
    """Insert the caller's user row on first sight, otherwise refresh its profile fields.

    Never touches ``id`` or ``role``.
    """
    user = db.get(models.User, identity.subject)
    if user is None:
        user = models.User(id=identity.subject, role=Role.CUSTOMER)
        _apply_identity(user, identity)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # another request created the row first
            db.rollback()
            user = db.get(models.User, identity.subject)
            if user is None:
                raise
        else:
            logger.info("created profile for %s", identity.subject)
            db.refresh(user)
            return user

    first, last = split_display_name(identity.name)
    if (user.email, user.first_name, user.last_name, user.profile_image_url) != (
        identity.email,
        first,
        last,
        identity.picture,
    ):
        _apply_identity(user, identity)
        db.commit()
        db.refresh(user)
    return user


def list_users(db: Session) -> List[models.User]:
    return db.query(models.User).order_by(models.User.created_at, models.User.id).all()


def update_user_role(db: Session, user_id: str, role: Role) -> models.User | None:
    user = db.get(models.User, user_id)
    if not user:
        return None
    user.role = Role(role)
    db.commit()
    db.refresh(user)
    return user


# -------------------- Shops --------------------

def list_shops(db: Session, category: Optional[ShopCategory] = None) -> List[models.Shop]:
    query = db.query(models.Shop)
    if category is not None:
        query = query.filter(models.Shop.category == category)
    return query.order_by(models.Shop.id).all()


def list_shops_by_owner(db: Session, owner_id: str) -> List[models.Shop]:
    return db.query(models.Shop).filter(models.Shop.owner_id == owner_id).order_by(models.Shop.id).all()


def get_shop(db: Session, shop_id: int) -> models.Shop | None:
    return db.get(models.Shop, shop_id)


def create_shop(db: Session, owner_id: str, shop: schemas.ShopCreate) -> models.Shop:
    db_shop = models.Shop(owner_id=owner_id, status=ShopStatus.ACTIVE, **shop.model_dump())
    db.add(db_shop)
    _commit(db, "integrity error: shop owner does not exist")
    db.refresh(db_shop)
    return db_shop


def update_shop(db: Session, shop: models.Shop, changes: schemas.ShopUpdate) -> models.Shop:
    for field, value in changes.model_dump(exclude_unset=True).items():
        if value is None:
            raise ValidationFailed(f"{field} cannot be null", field=field)
        setattr(shop, field, value)
    db.commit()
    db.refresh(shop)
    return shop


def set_shop_status(db: Session, shop_id: int, status: ShopStatus) -> models.Shop | None:
    shop = db.get(models.Shop, shop_id)
    if not shop:
        return None
    shop.status = ShopStatus(status)
    db.commit()
    db.refresh(shop)
    return shop


# -------------------- Products --------------------

def list_products_by_shop(db: Session, shop_id: int) -> List[models.Product]:
    return db.query(models.Product).filter(models.Product.shop_id == shop_id).order_by(models.Product.id).all()


def get_product(db: Session, product_id: int) -> models.Product | None:
    return db.get(models.Product, product_id)


def create_product(db: Session, shop_id: int, product: schemas.ProductCreate) -> models.Product:
    data = product.model_dump()
    data["price"] = _positive_amount(product.price, "price")
    db_product = models.Product(shop_id=shop_id, **data)
    db.add(db_product)
    _commit(db, "integrity error: shop does not exist")
    db.refresh(db_product)
    return db_product


def update_product(db: Session, product: models.Product, changes: schemas.ProductUpdate) -> models.Product:
    for field, value in changes.model_dump(exclude_unset=True).items():
        if value is None:
            raise ValidationFailed(f"{field} cannot be null", field=field)
        if field == "price":
            value = _positive_amount(value, "price")
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product: models.Product) -> None:
    db.delete(product)
    # orders keep a reference to the product they were placed for
    _commit(db, "product has orders and cannot be deleted")


# -------------------- Tasks --------------------

def list_tasks(db: Session) -> List[models.Task]:
    return db.query(models.Task).order_by(models.Task.id).all()


def get_task(db: Session, task_id: int) -> models.Task | None:
    return db.get(models.Task, task_id)


def create_task(db: Session, creator_id: str, task: schemas.TaskCreate) -> models.Task:
    data = task.model_dump()
    data["budget"] = _positive_amount(task.budget, "budget")
    db_task = models.Task(creator_id=creator_id, status=models.TaskStatus.OPEN, assignee_id=None, **data)
    db.add(db_task)
    _commit(db, "integrity error: task creator does not exist")
    db.refresh(db_task)
    return db_task


def _compare_and_swap(db: Session, model, row_id: int, transition: Transition) -> bool:
    stmt = (
        update(model)
        .where(model.id == row_id, model.status == transition.source)
        .values(**transition.changes)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    return result.rowcount == 1


def apply_task_transition(db: Session, task_id: int, transition: Transition) -> models.Task | None:
    """Write a planned transition only if the task still holds the plan's source status.

    Returns ``None`` when another write got there first.
    """
    if not _compare_and_swap(db, models.Task, task_id, transition):
        return None
    task = db.get(models.Task, task_id)
    db.refresh(task)
    logger.info("task %s %s -> %s", task_id, transition.source.value, transition.target.value)
    return task


# -------------------- Orders --------------------

def create_order(db: Session, customer_id: str, order: schemas.OrderCreate) -> models.Order:
    shop = db.get(models.Shop, order.shop_id)
    if not shop:
        raise NotFound("Shop not found")
    product = db.get(models.Product, order.product_id)
    if not product:
        raise NotFound("Product not found")
    if product.shop_id != shop.id:
        raise ValidationFailed("product does not belong to shop", field="productId")

    db_order = models.Order(
        customer_id=customer_id,
        shop_id=shop.id,
        product_id=product.id,
        status=initial_order_status(order.wants_transport),
        transport_id=None,
    )
    db.add(db_order)
    _commit(db, "integrity error")
    db.refresh(db_order)
    return db_order


def get_order(db: Session, order_id: int) -> models.Order | None:
    return db.get(models.Order, order_id)


def list_orders(db: Session) -> List[models.Order]:
    return db.query(models.Order).order_by(models.Order.id).all()


def list_orders_by_customer(db: Session, customer_id: str) -> List[models.Order]:
    return db.query(models.Order).filter(models.Order.customer_id == customer_id).order_by(models.Order.id).all()


def list_orders_by_shop(db: Session, shop_id: int) -> List[models.Order]:
    return db.query(models.Order).filter(models.Order.shop_id == shop_id).order_by(models.Order.id).all()


def list_pending_transport(db: Session) -> List[models.Order]:
    return (
        db.query(models.Order)
        .filter(models.Order.status == OrderStatus.TRANSPORT_REQUESTED)
        .order_by(models.Order.id)
        .all()
    )


def apply_order_transition(db: Session, order_id: int, transition: Transition) -> models.Order | None:
    if not _compare_and_swap(db, models.Order, order_id, transition):
        return None
    order = db.get(models.Order, order_id)
    db.refresh(order)
    logger.info("order %s %s -> %s", order_id, transition.source.value, transition.target.value)
    return order


# -------------------- Stats --------------------

def _count(db: Session, model, *criteria) -> int:
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return db.execute(stmt).scalar_one()


def admin_stats(db: Session) -> schemas.AdminStats:
    return schemas.AdminStats(
        total_users=_count(db, models.User),
        total_shops=_count(db, models.Shop),
        active_shops=_count(db, models.Shop, models.Shop.status == ShopStatus.ACTIVE),
        total_orders=_count(db, models.Order),
        total_tasks=_count(db, models.Task),
    )
