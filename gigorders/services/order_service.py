import logging
from contextlib import contextmanager
from datetime import timedelta

from flask import current_app

from gigorders.extensions import db
from gigorders.models.order_payout import OrderPayout
from gigorders.models.order_requirement import OrderRequirement
from gigorders.models.order_revision import OrderRevision
from gigorders.services import order_repository as repo
from gigorders.services.metadata_normalizer import (
    OrderMetadata,
    build_metadata_patch,
    ensure_from_set,
    normalize_amount,
    normalize_csat,
    normalize_currency,
    normalize_id,
    normalize_progress,
    sanitize_date,
)
from gigorders.services.order_metrics import with_metrics
from gigorders.services.order_view import (
    build_order_view,
    escrow_checkpoint_view,
    requirement_view,
    revision_view,
)
from gigorders.services.pipeline_summary import build_pipeline_summary
from gigorders.services.status_maps import (
    DEFAULT_PIPELINE_STAGE,
    ESCROW_STATUSES,
    INTAKE_STATUSES,
    KICKOFF_STATUSES,
    PAYOUT_STATUSES,
    PIPELINE_STAGES,
    REQUIREMENT_PRIORITIES,
    REQUIREMENT_STATUSES,
    REVISION_SEVERITIES,
    REVISION_STATUSES,
    WORKFLOW_STATUSES,
    escrow_status_to_payout_status,
    pipeline_stage_to_workflow_status,
)
from gigorders.utils.dates import utcnow
from gigorders.utils.exceptions import AuthorizationError, ValidationError

logger = logging.getLogger(__name__)

METADATA_ENUMS = {
    "intake_status": INTAKE_STATUSES,
    "kickoff_status": KICKOFF_STATUSES,
}

ORDER_DATE_FIELDS = ("submitted_at", "kickoff_at", "due_at", "completed_at")


@contextmanager
def transaction():
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def _pipeline_settings():
    cfg = current_app.config
    return {
        "overdue_days": cfg.get("REQUIREMENT_OVERDUE_DAYS", 3),
        "due_soon_days": cfg.get("DELIVERY_SOON_DAYS", 3),
    }


def _authorize(order, actor):
    if actor is None or actor.is_admin:
        return
    if order.freelancer_id != actor.id:
        raise AuthorizationError("You do not have access to this order.")


def _order_response(order_id, now=None):
    order = repo.find_order_by_id(order_id)
    return with_metrics(build_order_view(order, now=now), now=now, **_pipeline_settings())


def _clean_text(value, field_name, max_length=255, required=False):
    if value is None:
        if required:
            raise ValidationError(f"{field_name} is required.", details={field_name: "required"})
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string.", details={field_name: repr(value)})
    text = value.strip()
    if required and not text:
        raise ValidationError(f"{field_name} is required.", details={field_name: "required"})
    if len(text) > max_length:
        raise ValidationError(f"{field_name} is too long.", details={field_name: max_length})
    return text or None


def _optional_id(value, field_name):
    if value is None or value == "":
        return None
    return normalize_id(value, field_name)


def _as_list(payload, key):
    items = payload.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError(f"{key} must be a list.", details={key: repr(items)})
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError(f"Every entry in {key} must be an object.")
    return items


# ------------------------------------------------------------
#  Child payload preparation
# ------------------------------------------------------------
def prepare_requirement_fields(payload, existing=None):
    creating = existing is None
    fields = {}

    if creating or "status" in payload:
        fields["status"] = ensure_from_set(
            payload.get("status") or "pending", REQUIREMENT_STATUSES, "status"
        )
    if creating or "priority" in payload:
        fields["priority"] = ensure_from_set(
            payload.get("priority") or "medium", REQUIREMENT_PRIORITIES, "priority"
        )
    if creating or "title" in payload:
        fields["title"] = _clean_text(payload.get("title"), "title", 180) or "Requirements"
    for key in ("questions", "responses", "notes"):
        if key in payload:
            fields[key] = payload[key]
    for key in ("requested_at", "due_at", "received_at"):
        if key in payload:
            fields[key] = sanitize_date(payload[key], key)

    if creating and fields.get("requested_at") is None:
        fields["requested_at"] = utcnow()

    already_received = existing is not None and existing.received_at is not None
    if fields.get("status") == "received" and "received_at" not in payload and not already_received:
        fields["received_at"] = utcnow()
    return fields


def prepare_revision_fields(payload, existing=None):
    creating = existing is None
    fields = {}

    if creating or "status" in payload:
        fields["status"] = ensure_from_set(
            payload.get("status") or "requested", REVISION_STATUSES, "status"
        )
    if creating or "severity" in payload:
        fields["severity"] = ensure_from_set(
            payload.get("severity") or "medium", REVISION_SEVERITIES, "severity"
        )
    if payload.get("round_number") is not None:
        fields["round_number"] = normalize_id(payload["round_number"], "round_number")
    if "summary" in payload:
        fields["summary"] = payload["summary"]
    for key in ("requested_at", "due_at", "submitted_at", "approved_at"):
        if key in payload:
            fields[key] = sanitize_date(payload[key], key)

    if creating and fields.get("requested_at") is None:
        fields["requested_at"] = utcnow()

    status = fields.get("status")
    if status == "submitted" and "submitted_at" not in payload:
        if existing is None or existing.submitted_at is None:
            fields["submitted_at"] = utcnow()
    if status == "approved" and "approved_at" not in payload:
        if existing is None or existing.approved_at is None:
            fields["approved_at"] = utcnow()
    return fields


def prepare_payout_fields(payload, default_currency="USD", existing=None):
    """Escrow checkpoint payload -> payout row fields.

    Callers may send the payout ``status`` or the UI-facing ``escrow_status``.
    The payout status wins when both are present.
    """
    creating = existing is None
    fields = {}

    if payload.get("status") is not None:
        fields["status"] = ensure_from_set(payload["status"], PAYOUT_STATUSES, "status")
    elif payload.get("escrow_status") is not None:
        escrow_status = ensure_from_set(payload["escrow_status"], ESCROW_STATUSES, "escrow_status")
        fields["status"] = escrow_status_to_payout_status(escrow_status)
    elif creating:
        fields["status"] = "pending"

    if creating or "label" in payload:
        fields["milestone_label"] = _clean_text(payload.get("label"), "label", 180) or "Milestone"
    if creating or "amount" in payload:
        fields["amount"] = normalize_amount(payload.get("amount"), "amount")
    if creating or "currency" in payload:
        fields["currency"] = normalize_currency(payload.get("currency"), default_currency)
    for key in ("expected_at", "released_at"):
        if key in payload:
            fields[key] = sanitize_date(payload[key], key)
    if "risk_note" in payload:
        fields["risk_note"] = payload["risk_note"]

    meta_patch = {}
    for key in ("approval_requirement", "payout_reference", "released_by_id"):
        if key in payload:
            meta_patch[key] = payload[key]
    if "csat_threshold" in payload:
        meta_patch["csat_threshold"] = normalize_csat(payload["csat_threshold"])
    if meta_patch or creating:
        current = existing.payout_metadata if existing is not None else None
        merged = dict(current) if isinstance(current, dict) else {}
        merged.update(meta_patch)
        fields["payout_metadata"] = merged

    if fields.get("status") == "released" and "released_at" not in payload:
        if existing is None or existing.released_at is None:
            fields["released_at"] = utcnow()
    return fields


def _number_revisions(revision_payloads, start=0):
    prepared = []
    highest = start
    for payload in revision_payloads:
        fields = prepare_revision_fields(payload)
        if "round_number" not in fields:
            fields["round_number"] = highest + 1
        highest = max(highest, fields["round_number"])
        prepared.append(fields)
    return prepared


# ------------------------------------------------------------
#  Orders
# ------------------------------------------------------------
def create_order(payload, actor=None):
    payload = payload or {}

    if payload.get("freelancer_id") in (None, "") and actor is not None:
        freelancer_id = actor.id
    else:
        freelancer_id = normalize_id(payload.get("freelancer_id"), "freelancer_id")
    if actor is not None and not actor.is_admin and freelancer_id != actor.id:
        raise AuthorizationError("Freelancers can only create their own orders.")

    client_name = _clean_text(payload.get("client_name"), "client_name", 180, required=True)

    explicit_stage = payload.get("pipeline_stage")
    pipeline_stage = ensure_from_set(
        explicit_stage or DEFAULT_PIPELINE_STAGE, PIPELINE_STAGES, "pipeline_stage"
    )
    explicit_status = payload.get("workflow_status")
    if explicit_status is not None:
        workflow_status = ensure_from_set(explicit_status, WORKFLOW_STATUSES, "workflow_status")
    else:
        workflow_status = pipeline_stage_to_workflow_status(pipeline_stage)

    value_currency = normalize_currency(
        payload.get("value_currency", payload.get("currency")),
        current_app.config.get("DEFAULT_CURRENCY", "USD"),
    )
    value_amount = normalize_amount(payload.get("value_amount", payload.get("amount")), "value_amount")

    patch = build_metadata_patch(
        payload,
        enums=METADATA_ENUMS,
        fallbacks={
            "escrow_total_amount": value_amount,
            "escrow_currency": value_currency,
        },
    )
    metadata = OrderMetadata().merged(patch)
    # an explicit workflow status without a stage leaves the stage to inference
    if explicit_stage is not None or explicit_status is None:
        metadata = metadata.with_values(pipeline_stage=pipeline_stage)

    fields = {
        "freelancer_id": freelancer_id,
        "client_id": _optional_id(payload.get("client_id"), "client_id"),
        "gig_id": _optional_id(payload.get("gig_id"), "gig_id"),
        "title": _clean_text(payload.get("title"), "title"),
        "client_name": client_name,
        "client_email": _clean_text(payload.get("client_email"), "client_email"),
        "client_organization": _clean_text(payload.get("client_organization"), "client_organization", 180),
        "workflow_status": workflow_status,
        "value_amount": value_amount,
        "value_currency": value_currency,
        "progress_percent": normalize_progress(payload.get("progress_percent")),
        "order_metadata": metadata.to_bag(),
    }
    for key in ORDER_DATE_FIELDS:
        fields[key] = sanitize_date(payload.get(key), key)
    if workflow_status == "completed" and fields["completed_at"] is None:
        fields["completed_at"] = utcnow()

    order_number = _clean_text(payload.get("order_number"), "order_number", 32)
    if order_number:
        fields["order_number"] = order_number

    requirements = [prepare_requirement_fields(p) for p in _as_list(payload, "requirements")]
    revisions = _number_revisions(_as_list(payload, "revisions"))
    checkpoints = [
        prepare_payout_fields(p, default_currency=value_currency)
        for p in _as_list(payload, "escrow_checkpoints")
    ]

    with transaction():
        order = repo.create_order(fields)
        if requirements:
            repo.bulk_create_children(order.id, OrderRequirement, requirements)
        if revisions:
            repo.bulk_create_children(order.id, OrderRevision, revisions)
        if checkpoints:
            repo.bulk_create_children(order.id, OrderPayout, checkpoints)
        order_id = order.id

    logger.info(
        "Created order %s for freelancer %s (stage=%s, workflow=%s)",
        order_id, freelancer_id, pipeline_stage, workflow_status,
    )
    return _order_response(order_id)


def update_order(order_id, payload, actor=None):
    payload = payload or {}
    order = repo.find_order_by_id(normalize_id(order_id, "order_id"))
    _authorize(order, actor)

    updates = {}
    stage_override = None
    touch_stage = False

    if payload.get("pipeline_stage") is not None:
        stage = ensure_from_set(payload["pipeline_stage"], PIPELINE_STAGES, "pipeline_stage")
        updates["workflow_status"] = pipeline_stage_to_workflow_status(stage)
        stage_override, touch_stage = stage, True
    if payload.get("workflow_status") is not None:
        updates["workflow_status"] = ensure_from_set(
            payload["workflow_status"], WORKFLOW_STATUSES, "workflow_status"
        )
        if not touch_stage:
            # clear a stale stage override so the stage follows the new status
            stage_override, touch_stage = None, True

    if "client_name" in payload:
        updates["client_name"] = _clean_text(payload["client_name"], "client_name", 180, required=True)
    if "client_email" in payload:
        updates["client_email"] = _clean_text(payload["client_email"], "client_email")
    if "client_organization" in payload:
        updates["client_organization"] = _clean_text(payload["client_organization"], "client_organization", 180)
    if "title" in payload:
        updates["title"] = _clean_text(payload["title"], "title")
    if "client_id" in payload:
        updates["client_id"] = _optional_id(payload["client_id"], "client_id")

    if "value_amount" in payload:
        updates["value_amount"] = normalize_amount(payload["value_amount"], "value_amount")
    if "value_currency" in payload:
        updates["value_currency"] = normalize_currency(payload["value_currency"], order.value_currency)
    if "progress_percent" in payload:
        updates["progress_percent"] = normalize_progress(payload["progress_percent"])
    for key in ORDER_DATE_FIELDS:
        if key in payload:
            updates[key] = sanitize_date(payload[key], key)

    if (
        updates.get("workflow_status") == "completed"
        and "completed_at" not in payload
        and order.completed_at is None
    ):
        updates["completed_at"] = utcnow()

    patch = build_metadata_patch(payload, enums=METADATA_ENUMS)
    if touch_stage:
        patch = patch.with_values(pipeline_stage=stage_override)
    merged = OrderMetadata.from_bag(order.order_metadata).merged(patch)
    updates["order_metadata"] = merged.to_bag()

    with transaction():
        repo.update_order(order, updates)

    logger.info("Updated order %s (%s)", order.id, ", ".join(sorted(updates)))
    return _order_response(order.id)


# ------------------------------------------------------------
#  Requirement forms
# ------------------------------------------------------------
def create_requirement(order_id, payload, actor=None):
    order = repo.find_order_by_id(normalize_id(order_id, "order_id"))
    _authorize(order, actor)
    fields = prepare_requirement_fields(payload or {})

    with transaction():
        requirement = repo.create_child(OrderRequirement, order.id, fields)

    return {
        "order": _order_response(order.id),
        "requirement": requirement_view(requirement),
    }


def update_requirement(requirement_id, payload, actor=None):
    requirement = repo.find_child(OrderRequirement, normalize_id(requirement_id, "requirement_id"))
    _authorize(requirement.order, actor)
    fields = prepare_requirement_fields(payload or {}, existing=requirement)

    with transaction():
        repo.update_child(requirement, fields)

    return {
        "order": _order_response(requirement.order_id),
        "requirement": requirement_view(requirement),
    }


# ------------------------------------------------------------
#  Revisions
# ------------------------------------------------------------
def create_revision(order_id, payload, actor=None):
    order = repo.find_order_by_id(normalize_id(order_id, "order_id"))
    _authorize(order, actor)
    fields = prepare_revision_fields(payload or {})
    if "round_number" not in fields:
        fields["round_number"] = repo.max_revision_round(order.id) + 1

    with transaction():
        revision = repo.create_child(OrderRevision, order.id, fields)

    logger.info("Revision round %s opened on order %s", fields["round_number"], order.id)
    return {
        "order": _order_response(order.id),
        "revision": revision_view(revision),
    }


def update_revision(revision_id, payload, actor=None):
    revision = repo.find_child(OrderRevision, normalize_id(revision_id, "revision_id"))
    _authorize(revision.order, actor)
    fields = prepare_revision_fields(payload or {}, existing=revision)

    with transaction():
        repo.update_child(revision, fields)

    return {
        "order": _order_response(revision.order_id),
        "revision": revision_view(revision),
    }


# ------------------------------------------------------------
#  Escrow checkpoints
# ------------------------------------------------------------
def create_escrow_checkpoint(order_id, payload, actor=None):
    order = repo.find_order_by_id(normalize_id(order_id, "order_id"))
    _authorize(order, actor)
    fields = prepare_payout_fields(payload or {}, default_currency=order.value_currency or "USD")

    with transaction():
        payout = repo.create_child(OrderPayout, order.id, fields)

    return {
        "order": _order_response(order.id),
        "checkpoint": escrow_checkpoint_view(payout),
    }


def update_escrow_checkpoint(checkpoint_id, payload, actor=None):
    payout = repo.find_child(OrderPayout, normalize_id(checkpoint_id, "checkpoint_id"))
    _authorize(payout.order, actor)
    fields = prepare_payout_fields(
        payload or {}, default_currency=payout.currency or "USD", existing=payout
    )

    with transaction():
        repo.update_child(payout, fields)

    if payout.status in ("at_risk", "on_hold"):
        logger.warning("Escrow checkpoint %s on order %s is %s", payout.id, payout.order_id, payout.status)
    return {
        "order": _order_response(payout.order_id),
        "checkpoint": escrow_checkpoint_view(payout),
    }


# ------------------------------------------------------------
#  Reads
# ------------------------------------------------------------
def clamp_lookback_days(value, default=120, maximum=365):
    if value is None or value == "":
        return default
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return default
    if numeric != numeric or numeric <= 0:
        return default
    return min(int(round(numeric)), maximum)


def get_order(order_id, actor=None, now=None):
    order = repo.find_order_by_id(normalize_id(order_id, "order_id"))
    _authorize(order, actor)
    return with_metrics(build_order_view(order, now=now), now=now, **_pipeline_settings())


def get_order_pipeline(owner_id=None, lookback_days=None, now=None):
    """Every order in the lookback window, with metrics, plus the fleet summary."""
    cfg = current_app.config
    now = now or utcnow()
    where_owner = _optional_id(owner_id, "owner_id")
    lookback = clamp_lookback_days(
        lookback_days,
        default=cfg.get("PIPELINE_DEFAULT_LOOKBACK_DAYS", 120),
        maximum=cfg.get("PIPELINE_MAX_LOOKBACK_DAYS", 365),
    )
    cutoff = now - timedelta(days=lookback)

    settings = _pipeline_settings()
    orders = [
        with_metrics(build_order_view(order, now=now), now=now, **settings)
        for order in repo.list_orders(owner_id=where_owner, created_after=cutoff)
    ]

    return {
        "summary": build_pipeline_summary(orders, now=now, **settings),
        "orders": orders,
        "meta": {
            "lookback_days": lookback,
            "fetched_at": now,
            "filters": {"owner_id": where_owner},
        },
    }
