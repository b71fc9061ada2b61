from types import SimpleNamespace

import pytest

from marketplace import lifecycle
from marketplace.errors import Forbidden, InvalidTransition
from marketplace.models import OrderStatus, Role, TaskStatus
from marketplace.policy import Action, Actor

creator = Actor("a", Role.CUSTOMER)
helper = Actor("b", Role.CUSTOMER)


def make_task(status):
    return SimpleNamespace(id=1, creator_id="a", status=status, assignee_id=None)


def make_order(status, transport_id=None):
    return SimpleNamespace(id=1, customer_id="c", shop_id=1, status=status, transport_id=transport_id)


def test_take_sets_assignee():
    plan = lifecycle.plan_task_transition(make_task(TaskStatus.OPEN), helper, TaskStatus.IN_PROGRESS)
    assert plan.action is Action.TASK_TAKE
    assert plan.source is TaskStatus.OPEN
    assert plan.changes == {"status": TaskStatus.IN_PROGRESS, "assignee_id": "b"}


def test_creator_cannot_take_own_task():
    with pytest.raises(Forbidden):
        lifecycle.plan_task_transition(make_task(TaskStatus.OPEN), creator, TaskStatus.IN_PROGRESS)


def test_complete_leaves_assignee_alone():
    for status in (TaskStatus.OPEN, TaskStatus.IN_PROGRESS):
        plan = lifecycle.plan_task_transition(make_task(status), creator, TaskStatus.COMPLETED)
        assert plan.changes == {"status": TaskStatus.COMPLETED}


@pytest.mark.parametrize("requested", list(TaskStatus))
def test_completed_task_is_terminal(requested):
    # state is checked before the actor, so even the creator is told the move is invalid
    with pytest.raises(InvalidTransition):
        lifecycle.plan_task_transition(make_task(TaskStatus.COMPLETED), creator, requested)


def test_in_progress_cannot_reopen():
    with pytest.raises(InvalidTransition):
        lifecycle.plan_task_transition(make_task(TaskStatus.IN_PROGRESS), creator, TaskStatus.OPEN)


def test_initial_order_status():
    assert lifecycle.initial_order_status(False) is OrderStatus.PENDING
    assert lifecycle.initial_order_status(True) is OrderStatus.TRANSPORT_REQUESTED


def test_pickup_sets_transporter():
    plan = lifecycle.plan_order_transition(make_order(OrderStatus.TRANSPORT_REQUESTED), helper, OrderStatus.PICKED_UP)
    assert plan.changes == {"status": OrderStatus.PICKED_UP, "transport_id": "b"}


def test_pickup_requires_transport_request():
    with pytest.raises(InvalidTransition):
        lifecycle.plan_order_transition(make_order(OrderStatus.PENDING), helper, OrderStatus.PICKED_UP)


def test_only_transporter_marks_delivered():
    order = make_order(OrderStatus.PICKED_UP, transport_id="b")
    with pytest.raises(Forbidden):
        lifecycle.plan_order_transition(order, creator, OrderStatus.DELIVERED)
    plan = lifecycle.plan_order_transition(order, helper, OrderStatus.DELIVERED)
    assert plan.target is OrderStatus.DELIVERED


def test_admin_may_drive_any_order_edge():
    admin = Actor("root", Role.ADMIN)
    shop = SimpleNamespace(owner_id="owner")
    plan = lifecycle.plan_order_transition(make_order(OrderStatus.DELIVERED), admin, OrderStatus.COMPLETED, shop)
    assert plan.action is Action.ORDER_COMPLETE


def test_completed_order_is_terminal():
    with pytest.raises(InvalidTransition):
        lifecycle.plan_order_transition(make_order(OrderStatus.COMPLETED), Actor("root", Role.ADMIN), OrderStatus.PENDING)
