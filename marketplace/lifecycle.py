"""Task and order lifecycle state machines.

Both machines are single-step: one actor-initiated transition per
request. ``plan_*`` functions validate the requested target against the
current state first (``InvalidTransition``), then the actor against the
authorization policy (``Forbidden``), and return the writes to apply.
They never touch the database; the caller applies the plan as a
compare-and-swap update keyed on the source status.
"""
import logging
from typing import Any, Dict, NamedTuple, Optional

from . import policy
from .errors import InvalidTransition
from .models import OrderStatus, TaskStatus
from .policy import Action, Actor

logger = logging.getLogger(__name__)


class Transition(NamedTuple):
    action: Action
    source: Any
    target: Any
    changes: Dict[str, Any]


# (current, requested) -> action
TASK_TRANSITIONS = {
    (TaskStatus.OPEN, TaskStatus.IN_PROGRESS): Action.TASK_TAKE,
    (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED): Action.TASK_COMPLETE,
    # nothing stops a creator from closing a task nobody took
    (TaskStatus.OPEN, TaskStatus.COMPLETED): Action.TASK_COMPLETE,
}

ORDER_TRANSITIONS = {
    (OrderStatus.PENDING, OrderStatus.TRANSPORT_REQUESTED): Action.ORDER_REQUEST_TRANSPORT,
    (OrderStatus.TRANSPORT_REQUESTED, OrderStatus.PICKED_UP): Action.ORDER_ACCEPT_TRANSPORT,
    (OrderStatus.PICKED_UP, OrderStatus.DELIVERED): Action.ORDER_MARK_DELIVERED,
    (OrderStatus.DELIVERED, OrderStatus.COMPLETED): Action.ORDER_COMPLETE,
    # collected in store, no transport involved
    (OrderStatus.PENDING, OrderStatus.COMPLETED): Action.ORDER_COMPLETE,
}

TERMINAL_TASK_STATES = frozenset({TaskStatus.COMPLETED})
TERMINAL_ORDER_STATES = frozenset({OrderStatus.COMPLETED})


def initial_order_status(transport_requested: bool) -> OrderStatus:
    return OrderStatus.TRANSPORT_REQUESTED if transport_requested else OrderStatus.PENDING


def plan_task_transition(task: Any, actor: Actor, requested: TaskStatus) -> Transition:
    current = TaskStatus(task.status)
    requested = TaskStatus(requested)
    action = TASK_TRANSITIONS.get((current, requested))
    if action is None:
        raise InvalidTransition(f"task cannot move from {current.value} to {requested.value}")
    policy.require(actor, action, task)

    changes: Dict[str, Any] = {"status": requested}
    if requested is TaskStatus.IN_PROGRESS:
        changes["assignee_id"] = actor.id
    return Transition(action, current, requested, changes)


def plan_order_transition(order: Any, actor: Actor, requested: OrderStatus, shop: Optional[Any] = None) -> Transition:
    current = OrderStatus(order.status)
    requested = OrderStatus(requested)
    action = ORDER_TRANSITIONS.get((current, requested))
    if action is None:
        raise InvalidTransition(f"order cannot move from {current.value} to {requested.value}")
    policy.require(actor, action, order, shop)

    changes: Dict[str, Any] = {"status": requested}
    if requested is OrderStatus.PICKED_UP:
        changes["transport_id"] = actor.id
    return Transition(action, current, requested, changes)


def lost_race(kind: str, row_id: int, transition: Transition) -> InvalidTransition:
    """Error for a plan whose source status changed before it was applied."""
    logger.warning(
        "%s %s left %s before the update landed",
        kind,
        row_id,
        transition.source.value,
        extra={"action": transition.action.value},
    )
    return InvalidTransition(f"{kind} is no longer {transition.source.value}")
