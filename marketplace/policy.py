"""Authorization policy.

Pure decisions: given an actor (or ``None`` for an anonymous caller), an
action and a snapshot of the resource it touches, answer allow or deny
with a reason tag. Nothing here reads or writes the database; callers
load the resource and apply the decision before touching the store.

Rules are evaluated in priority order, first match wins:

1. anonymous callers are denied (``unauthenticated``)
2. admins are allowed every admin-designated action (``admin``)
3. ownership and participation checks per action (``owner``/``allowed``)
4. everything else is denied (``forbidden``)
"""
import enum
from typing import Any, NamedTuple, Optional

from .errors import Forbidden, Unauthenticated
from .models import Role, TaskStatus


class Actor(NamedTuple):
    id: str
    role: Role


class Action(str, enum.Enum):
    SHOP_CREATE = "shop.create"
    SHOP_UPDATE = "shop.update"
    SHOP_MODERATE = "shop.moderate"
    SHOP_READ_ORDERS = "shop.read_orders"
    PRODUCT_CREATE = "product.create"
    PRODUCT_UPDATE = "product.update"
    PRODUCT_DELETE = "product.delete"
    TASK_CREATE = "task.create"
    TASK_TAKE = "task.take"
    TASK_COMPLETE = "task.complete"
    ORDER_CREATE = "order.create"
    ORDER_READ_OWN = "order.read_own"
    ORDER_READ_PENDING_TRANSPORT = "order.read_pending_transport"
    ORDER_REQUEST_TRANSPORT = "order.request_transport"
    ORDER_ACCEPT_TRANSPORT = "order.accept_transport"
    ORDER_MARK_DELIVERED = "order.mark_delivered"
    ORDER_COMPLETE = "order.complete"
    OWNER_DASHBOARD = "owner.dashboard"
    USER_SET_ROLE = "user.set_role"
    ADMIN_READ = "admin.read"


ADMIN_ACTIONS = frozenset(
    {
        Action.USER_SET_ROLE,
        Action.SHOP_MODERATE,
        Action.ADMIN_READ,
        Action.SHOP_READ_ORDERS,
        Action.PRODUCT_UPDATE,
        Action.PRODUCT_DELETE,
        Action.ORDER_REQUEST_TRANSPORT,
        Action.ORDER_ACCEPT_TRANSPORT,
        Action.ORDER_MARK_DELIVERED,
        Action.ORDER_COMPLETE,
    }
)

# any signed-in actor may do these
OPEN_ACTIONS = frozenset(
    {
        Action.SHOP_CREATE,
        Action.TASK_CREATE,
        Action.ORDER_CREATE,
        Action.ORDER_READ_OWN,
        Action.ORDER_READ_PENDING_TRANSPORT,
        Action.ORDER_ACCEPT_TRANSPORT,
        Action.OWNER_DASHBOARD,
    }
)


class Decision(NamedTuple):
    allowed: bool
    reason: str


def allow(reason: str = "allowed") -> Decision:
    return Decision(True, reason)


def deny(reason: str = "forbidden") -> Decision:
    return Decision(False, reason)


def is_admin(actor: Actor) -> bool:
    if actor.role is Role.ADMIN:
        return True
    if actor.role is Role.SHOP_OWNER or actor.role is Role.CUSTOMER:
        return False
    raise ValueError(f"unknown role: {actor.role!r}")


def _owns(actor: Actor, owner_id: Optional[str]) -> bool:
    return owner_id is not None and actor.id == owner_id


def authorize(actor: Optional[Actor], action: Action, resource: Any = None, shop: Any = None) -> Decision:
    """Decide whether ``actor`` may perform ``action``.

    ``resource`` is the row being acted on (shop, task or order) and
    ``shop`` is the parent shop for product and order actions.
    """
    if actor is None:
        return deny("unauthenticated")

    if is_admin(actor) and action in ADMIN_ACTIONS:
        return allow("admin")

    if action in (Action.SHOP_UPDATE, Action.SHOP_READ_ORDERS):
        return allow("owner") if _owns(actor, resource.owner_id) else deny()

    if action in (Action.PRODUCT_CREATE, Action.PRODUCT_UPDATE, Action.PRODUCT_DELETE):
        return allow("owner") if _owns(actor, shop.owner_id) else deny()

    if action is Action.TASK_TAKE:
        # creators cannot take their own task
        if actor.id != resource.creator_id and resource.status == TaskStatus.OPEN:
            return allow()
        return deny()

    if action is Action.TASK_COMPLETE:
        return allow("owner") if _owns(actor, resource.creator_id) else deny()

    if action in (Action.ORDER_REQUEST_TRANSPORT, Action.ORDER_COMPLETE):
        if _owns(actor, resource.customer_id) or (shop is not None and _owns(actor, shop.owner_id)):
            return allow("owner")
        return deny()

    if action is Action.ORDER_MARK_DELIVERED:
        return allow("owner") if _owns(actor, resource.transport_id) else deny()

    if action in OPEN_ACTIONS:
        return allow()

    return deny()


def require(actor: Optional[Actor], action: Action, resource: Any = None, shop: Any = None) -> Decision:
    """Like :func:`authorize`, but raise on a deny."""
    decision = authorize(actor, action, resource, shop)
    if not decision.allowed:
        if decision.reason == "unauthenticated":
            raise Unauthenticated("Unauthorized")
        raise Forbidden(f"Forbidden: {action.value} not permitted")
    return decision
