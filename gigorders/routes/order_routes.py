from flask import Blueprint, request, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from gigorders.extensions import db
from gigorders.models.user import User
from gigorders.schemas.order_schema import (
    checkpoint_schema,
    order_schema,
    orders_schema,
    pipeline_schema,
    requirement_schema,
    revision_schema,
)
from gigorders.services import order_service
from gigorders.services.order_metrics import with_metrics
from gigorders.services.order_repository import orders_query
from gigorders.services.order_view import build_order_view
from gigorders.utils.exceptions import NotFoundError, ValidationError
from gigorders.utils.pagination import paginate_query
from gigorders.utils.response_formatter import success_response

bp = Blueprint("orders", __name__, url_prefix="/api/v1/orders")


def current_user():
    uid = get_jwt_identity()
    user = db.session.get(User, int(uid)) if uid else None
    if not user:
        raise NotFoundError("User")
    return user


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def owner_scope(user):
    """Freelancers only ever see their own orders; admins may filter by owner."""
    if user.is_admin:
        return request.args.get("owner_id", type=int)
    return user.id


def child_response(result, key, schema, status=200):
    return success_response({
        "order": order_schema.dump(result["order"]),
        key: schema.dump(result[key]),
    }, status=status)


# ------------------------------------------------------------
#  GET /orders: paginated list of augmented orders
# ------------------------------------------------------------
@bp.route("", methods=["GET"])
@jwt_required()
def list_orders():
    user = current_user()
    owner_id = owner_scope(user)
    page = request.args.get("page", 1, type=int)
    limit = request.args.get("limit", 20, type=int)

    q = orders_query(owner_id=owner_id)
    items, pagination = paginate_query(q, page, limit)

    cfg = current_app.config
    views = [
        with_metrics(
            build_order_view(order),
            overdue_days=cfg["REQUIREMENT_OVERDUE_DAYS"],
            due_soon_days=cfg["DELIVERY_SOON_DAYS"],
        )
        for order in items
    ]
    return success_response({"orders": orders_schema.dump(views), "pagination": pagination})


# ------------------------------------------------------------
#  GET /orders/pipeline: lookback window + fleet summary
# ------------------------------------------------------------
@bp.route("/pipeline", methods=["GET"])
@jwt_required()
def get_pipeline():
    user = current_user()
    pipeline = order_service.get_order_pipeline(
        owner_id=owner_scope(user),
        lookback_days=request.args.get("lookback_days"),
    )
    current_app.logger.debug(
        "Pipeline for owner=%s: %d orders", pipeline["meta"]["filters"]["owner_id"], len(pipeline["orders"])
    )
    return success_response(pipeline_schema.dump(pipeline))


# ------------------------------------------------------------
#  Orders
# ------------------------------------------------------------
@bp.route("/<int:order_id>", methods=["GET"])
@jwt_required()
def get_order(order_id):
    user = current_user()
    view = order_service.get_order(order_id, actor=user)
    return success_response({"order": order_schema.dump(view)})


@bp.route("", methods=["POST"])
@jwt_required()
def create_order():
    user = current_user()
    view = order_service.create_order(json_body(), actor=user)
    current_app.logger.info("User %s created order %s", user.id, view["order_number"])
    return success_response({"order": order_schema.dump(view)}, status=201)


@bp.route("/<int:order_id>", methods=["PATCH"])
@jwt_required()
def update_order(order_id):
    user = current_user()
    view = order_service.update_order(order_id, json_body(), actor=user)
    return success_response({"order": order_schema.dump(view)})


# ------------------------------------------------------------
#  Requirement forms
# ------------------------------------------------------------
@bp.route("/<int:order_id>/requirements", methods=["POST"])
@jwt_required()
def create_requirement(order_id):
    user = current_user()
    result = order_service.create_requirement(order_id, json_body(), actor=user)
    return child_response(result, "requirement", requirement_schema, status=201)


@bp.route("/requirements/<int:requirement_id>", methods=["PATCH"])
@jwt_required()
def update_requirement(requirement_id):
    user = current_user()
    result = order_service.update_requirement(requirement_id, json_body(), actor=user)
    return child_response(result, "requirement", requirement_schema)


# ------------------------------------------------------------
#  Revisions
# ------------------------------------------------------------
@bp.route("/<int:order_id>/revisions", methods=["POST"])
@jwt_required()
def create_revision(order_id):
    user = current_user()
    result = order_service.create_revision(order_id, json_body(), actor=user)
    return child_response(result, "revision", revision_schema, status=201)


@bp.route("/revisions/<int:revision_id>", methods=["PATCH"])
@jwt_required()
def update_revision(revision_id):
    user = current_user()
    result = order_service.update_revision(revision_id, json_body(), actor=user)
    return child_response(result, "revision", revision_schema)


# ------------------------------------------------------------
#  Escrow checkpoints
# ------------------------------------------------------------
@bp.route("/<int:order_id>/escrow-checkpoints", methods=["POST"])
@jwt_required()
def create_escrow_checkpoint(order_id):
    user = current_user()
    result = order_service.create_escrow_checkpoint(order_id, json_body(), actor=user)
    return child_response(result, "checkpoint", checkpoint_schema, status=201)


@bp.route("/escrow-checkpoints/<int:checkpoint_id>", methods=["PATCH"])
@jwt_required()
def update_escrow_checkpoint(checkpoint_id):
    user = current_user()
    result = order_service.update_escrow_checkpoint(checkpoint_id, json_body(), actor=user)
    return child_response(result, "checkpoint", checkpoint_schema)
