import logging
import traceback
from typing import Annotated, List, Optional

from fastapi import Depends, FastAPI, Header, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import crud, lifecycle, models, schemas
from .auth import bearer_token, verify_id_token
from .config import get_settings
from .db import Base, SessionLocal, engine
from .errors import MarketplaceError, NotFound
from .models import ShopCategory
from .policy import Action, Actor, require

settings = get_settings()
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Create tables if not existing. Schema changes need a real migration tool.
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Local Marketplace API")

# integer primary keys; larger values cannot exist in the store
RowId = Annotated[int, Path(gt=0, le=schemas.MAX_ID)]

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------- Error mapping --------------------

@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    body = {"detail": exc.message, "code": exc.code}
    if exc.field:
        body["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # report only the first failure, like a form would
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())[1:]) or None
    message = first.get("msg", "invalid request")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    body = {"detail": message, "code": "validation"}
    if field:
        body["field"] = field
    return JSONResponse(status_code=400, content=body)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    body = {"detail": "Internal Server Error", "code": "internal"}
    if get_settings().is_development:
        body["detail"] = str(exc) or exc.__class__.__name__
        body["trace"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=500, content=body)


# -------------------- Dependencies --------------------

# Dependency to get DB session per request

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(authorization: Optional[str] = Header(default=None), db: Session = Depends(get_db)) -> models.User:
    # verify first, then make sure the profile row exists
    identity = verify_id_token(bearer_token(authorization))
    return crud.ensure_profile(db, identity)


def get_actor(user: models.User = Depends(get_current_user)) -> Actor:
    return Actor(id=user.id, role=models.Role(user.role))


def _shop_or_404(db: Session, shop_id: int) -> models.Shop:
    shop = crud.get_shop(db, shop_id)
    if not shop:
        raise NotFound("Shop not found")
    return shop


def _product_or_404(db: Session, product_id: int) -> models.Product:
    product = crud.get_product(db, product_id)
    if not product:
        raise NotFound("Product not found")
    return product


@app.get("/health")
def health():
    return {"status": "ok"}


# -------------------- Auth --------------------

@app.get("/api/auth/user", response_model=schemas.UserRead)
def auth_user(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    stored = crud.get_user(db, user.id)
    if not stored:
        raise NotFound("User not found")
    return stored


# -------------------- Shops --------------------

@app.get("/api/shops", response_model=List[schemas.ShopRead])
def list_shops(category: Optional[ShopCategory] = Query(default=None), db: Session = Depends(get_db)):
    return crud.list_shops(db, category)


@app.get("/api/shops/{shop_id}", response_model=schemas.ShopRead)
def get_shop(shop_id: RowId, db: Session = Depends(get_db)):
    return _shop_or_404(db, shop_id)


@app.post("/api/shops", response_model=schemas.ShopRead, status_code=201)
def create_shop(shop: schemas.ShopCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require(actor, Action.SHOP_CREATE)
    return crud.create_shop(db, actor.id, shop)


@app.patch("/api/shops/{shop_id}", response_model=schemas.ShopRead)
def update_shop(shop_id: RowId, changes: schemas.ShopUpdate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    shop = _shop_or_404(db, shop_id)
    require(actor, Action.SHOP_UPDATE, shop)
    if changes.status is not None and shop.status == models.ShopStatus.SUSPENDED:
        # a suspension is lifted through moderation only
        require(actor, Action.SHOP_MODERATE, shop)
    return crud.update_shop(db, shop, changes)


# -------------------- Products --------------------

@app.get("/api/shops/{shop_id}/products", response_model=List[schemas.ProductRead])
def list_products(shop_id: RowId, db: Session = Depends(get_db)):
    _shop_or_404(db, shop_id)
    return crud.list_products_by_shop(db, shop_id)


@app.post("/api/shops/{shop_id}/products", response_model=schemas.ProductRead, status_code=201)
def create_product(shop_id: RowId, product: schemas.ProductCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    shop = _shop_or_404(db, shop_id)
    require(actor, Action.PRODUCT_CREATE, shop=shop)
    return crud.create_product(db, shop.id, product)


@app.patch("/api/products/{product_id}", response_model=schemas.ProductRead)
def update_product(product_id: RowId, changes: schemas.ProductUpdate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    product = _product_or_404(db, product_id)
    require(actor, Action.PRODUCT_UPDATE, product, shop=product.shop)
    return crud.update_product(db, product, changes)


@app.delete("/api/products/{product_id}")
def delete_product(product_id: RowId, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    product = _product_or_404(db, product_id)
    require(actor, Action.PRODUCT_DELETE, product, shop=product.shop)
    crud.delete_product(db, product)
    return {"success": True}


# -------------------- Tasks --------------------

@app.get("/api/tasks", response_model=List[schemas.TaskRead])
def list_tasks(db: Session = Depends(get_db)):
    return crud.list_tasks(db)


@app.post("/api/tasks", response_model=schemas.TaskRead, status_code=201)
def create_task(task: schemas.TaskCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require(actor, Action.TASK_CREATE)
    return crud.create_task(db, actor.id, task)


@app.patch("/api/tasks/{task_id}/status", response_model=schemas.TaskRead)
def update_task_status(task_id: RowId, payload: schemas.TaskStatusUpdate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    task = crud.get_task(db, task_id)
    if not task:
        raise NotFound("Task not found")
    transition = lifecycle.plan_task_transition(task, actor, models.TaskStatus(payload.status))
    updated = crud.apply_task_transition(db, task_id, transition)
    if updated is None:
        raise lifecycle.lost_race("task", task_id, transition)
    return updated


# -------------------- Orders --------------------

@app.post("/api/orders", response_model=schemas.OrderRead, status_code=201)
def create_order(order: schemas.OrderCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require(actor, Action.ORDER_CREATE)
    return crud.create_order(db, actor.id, order)


@app.get("/api/orders/my", response_model=List[schemas.OrderRead])
def my_orders(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require(actor, Action.ORDER_READ_OWN)
    return crud.list_orders_by_customer(db, actor.id)


@app.get("/api/orders/pending-transport", response_model=List[schemas.OrderRead])
def pending_transport_orders(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require(actor, Action.ORDER_READ_PENDING_TRANSPORT)
    return crud.list_pending_transport(db)


@app.patch("/api/orders/{order_id}/status", response_model=schemas.OrderRead)
def update_order_status(order_id: RowId, payload: schemas.OrderStatusUpdate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    order = crud.get_order(db, order_id)
    if not order:
        raise NotFound("Order not found")
    transition = lifecycle.plan_order_transition(order, actor, payload.status, shop=order.shop)
    updated = crud.apply_order_transition(db, order_id, transition)
    if updated is None:
        raise lifecycle.lost_race("order", order_id, transition)
    return updated


@app.get("/api/shops/{shop_id}/orders", response_model=List[schemas.OrderRead])
def shop_orders(shop_id: RowId, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    shop = _shop_or_404(db, shop_id)
    require(actor, Action.SHOP_READ_ORDERS, shop)
    return crud.list_orders_by_shop(db, shop_id)


# -------------------- Shop owner --------------------

@app.get("/api/shop-owner/dashboard", response_model=List[schemas.ShopSummary])
def shop_owner_dashboard(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require(actor, Action.OWNER_DASHBOARD)
    summaries = []
    for shop in crud.list_shops_by_owner(db, actor.id):
        orders = crud.list_orders_by_shop(db, shop.id)
        summaries.append(
            schemas.ShopSummary(
                shop=schemas.ShopRead.model_validate(shop),
                products_count=len(crud.list_products_by_shop(db, shop.id)),
                orders_count=len(orders),
                recent_orders=[schemas.OrderRead.model_validate(o) for o in reversed(orders[-5:])],
            )
        )
    return summaries


# -------------------- Admin --------------------

@app.get("/api/admin/stats", response_model=schemas.AdminStats)
def admin_stats(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require(actor, Action.ADMIN_READ)
    return crud.admin_stats(db)


@app.get("/api/admin/users", response_model=List[schemas.UserRead])
def admin_users(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require(actor, Action.ADMIN_READ)
    return crud.list_users(db)


@app.patch("/api/admin/users/{user_id}/role", response_model=schemas.UserRead)
def admin_set_role(user_id: str, payload: schemas.RoleUpdate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require(actor, Action.USER_SET_ROLE)
    user = crud.update_user_role(db, user_id, payload.role)
    if not user:
        raise NotFound("User not found")
    logger.info("role of %s set to %s by %s", user_id, payload.role.value, actor.id)
    return user


@app.get("/api/admin/shops", response_model=List[schemas.ShopRead])
def admin_shops(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require(actor, Action.ADMIN_READ)
    return crud.list_shops(db)


@app.patch("/api/admin/shops/{shop_id}/status", response_model=schemas.ShopRead)
def admin_set_shop_status(shop_id: RowId, payload: schemas.ShopStatusUpdate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require(actor, Action.SHOP_MODERATE)
    shop = crud.set_shop_status(db, shop_id, payload.status)
    if not shop:
        raise NotFound("Shop not found")
    logger.info("shop %s set to %s by %s", shop_id, payload.status.value, actor.id)
    return shop


@app.get("/api/admin/orders", response_model=List[schemas.OrderRead])
def admin_orders(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require(actor, Action.ADMIN_READ)
    return crud.list_orders(db)
