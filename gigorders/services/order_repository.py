"""
Read/write primitives the pipeline engine needs from storage.

Nothing in here commits. Callers own the transaction boundary so an order
and its nested children land (or roll back) together.
"""

from sqlalchemy import func
from sqlalchemy.orm import joinedload, selectinload

from gigorders.extensions import db
from gigorders.models.order import Order
from gigorders.models.order_payout import OrderPayout
from gigorders.models.order_requirement import OrderRequirement
from gigorders.models.order_revision import OrderRevision
from gigorders.utils.exceptions import NotFoundError

CHILD_LABELS = {
    OrderRequirement: "Requirement",
    OrderRevision: "Revision",
    OrderPayout: "Escrow checkpoint",
}


def _with_children(query):
    return query.options(
        selectinload(Order.requirements),
        selectinload(Order.revisions),
        selectinload(Order.payouts),
        joinedload(Order.freelancer),
        joinedload(Order.client),
        joinedload(Order.gig),
    )


def find_order_by_id(order_id):
    order = (
        _with_children(Order.query)
        .filter(Order.id == order_id)
        .populate_existing()
        .first()
    )
    if not order:
        raise NotFoundError("Order", order_id)
    return order


def orders_query(owner_id=None, created_after=None):
    q = _with_children(Order.query)
    if owner_id is not None:
        q = q.filter(Order.freelancer_id == owner_id)
    if created_after is not None:
        q = q.filter(Order.created_at >= created_after)
    return q.order_by(Order.created_at.desc(), Order.id.desc())


def list_orders(owner_id=None, created_after=None):
    return orders_query(owner_id=owner_id, created_after=created_after).all()


def create_order(fields):
    order = Order(**fields)
    db.session.add(order)
    db.session.flush()
    return order


def update_order(order, fields):
    for key, value in fields.items():
        setattr(order, key, value)
    db.session.flush()
    return order


def find_child(model, child_id):
    record = db.session.get(model, child_id)
    if not record:
        raise NotFoundError(CHILD_LABELS.get(model, model.__name__), child_id)
    return record


def create_child(model, order_id, fields):
    record = model(order_id=order_id, **fields)
    db.session.add(record)
    db.session.flush()
    return record


def update_child(record, fields):
    for key, value in fields.items():
        setattr(record, key, value)
    db.session.flush()
    return record


def bulk_create_children(order_id, model, records):
    rows = [model(order_id=order_id, **fields) for fields in records]
    db.session.add_all(rows)
    db.session.flush()
    return rows


def max_revision_round(order_id):
    return (
        db.session.query(func.max(OrderRevision.round_number))
        .filter_by(order_id=order_id)
        .scalar()
    ) or 0

