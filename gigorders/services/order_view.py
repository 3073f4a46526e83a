"""
Builds the augmented order view from one stored order and its children.

Nothing here is cached or persisted. Pipeline stage, intake/kickoff status,
child UI statuses and escrow totals are all derived again on every call, so
a view can never disagree with the rows it was built from.
"""

from datetime import datetime, timezone
from decimal import Decimal

from gigorders.services.metadata_normalizer import (
    MISSING,
    OrderMetadata,
    format_money,
    to_decimal,
)
from gigorders.services.status_maps import (
    INTAKE_STATUSES,
    KICKOFF_STATUSES,
    PIPELINE_STAGES,
    payout_status_to_escrow_status,
    requirement_form_status,
    revision_ui_status,
    status_type_for,
    workflow_status_to_pipeline_stage,
)
from gigorders.utils.dates import as_utc, utcnow

OUTSTANDING_ESCROW_STATUSES = frozenset({"funded", "pending_release", "held", "disputed"})
AT_RISK_ESCROW_STATUSES = frozenset({"held", "disputed"})

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _require(kind, record, names):
    missing = [name for name in names if getattr(record, name, None) is None]
    if missing:
        raise ValueError(f"{kind} is missing required fields: {', '.join(missing)}")


def requirement_view(requirement):
    _require("Requirement", requirement, ("id", "order_id", "status"))
    return {
        "id": requirement.id,
        "order_id": requirement.order_id,
        "title": requirement.title,
        "status": requirement_form_status(requirement.status),
        "source_status": requirement.status,
        "priority": requirement.priority or "medium",
        "questions": requirement.questions,
        "responses": requirement.responses,
        "notes": requirement.notes,
        "requested_at": as_utc(requirement.requested_at),
        "due_at": as_utc(requirement.due_at),
        "received_at": as_utc(requirement.received_at),
        "created_at": as_utc(requirement.created_at),
        "updated_at": as_utc(requirement.updated_at),
    }


def revision_view(revision):
    _require("Revision", revision, ("id", "order_id", "round_number", "status"))
    return {
        "id": revision.id,
        "order_id": revision.order_id,
        "round_number": int(revision.round_number),
        "status": revision_ui_status(revision.status),
        "source_status": revision.status,
        "severity": revision.severity or "medium",
        "summary": revision.summary,
        "requested_at": as_utc(revision.requested_at),
        "due_at": as_utc(revision.due_at),
        "submitted_at": as_utc(revision.submitted_at),
        "approved_at": as_utc(revision.approved_at),
        "created_at": as_utc(revision.created_at),
        "updated_at": as_utc(revision.updated_at),
    }


def escrow_checkpoint_view(payout):
    _require("Escrow checkpoint", payout, ("id", "order_id", "status"))
    meta = payout.payout_metadata if isinstance(payout.payout_metadata, dict) else {}
    csat_threshold = meta.get("csat_threshold")
    return {
        "id": payout.id,
        "order_id": payout.order_id,
        "label": payout.milestone_label or "Milestone",
        "amount": format_money(payout.amount or 0),
        "currency": payout.currency,
        "status": payout_status_to_escrow_status(payout.status),
        "source_status": payout.status,
        "expected_at": as_utc(payout.expected_at),
        "released_at": as_utc(payout.released_at),
        "risk_note": payout.risk_note,
        "approval_requirement": meta.get("approval_requirement"),
        "csat_threshold": None if csat_threshold is None else format_money(csat_threshold),
        "payout_reference": meta.get("payout_reference"),
        "released_by_id": meta.get("released_by_id"),
        "created_at": as_utc(payout.created_at),
        "updated_at": as_utc(payout.updated_at),
    }


def sort_requirements(views):
    return sorted(
        views,
        key=lambda v: v["requested_at"] or v["created_at"] or _EPOCH,
        reverse=True,
    )


def sort_revisions(views):
    return sorted(views, key=lambda v: v["round_number"], reverse=True)


def sort_checkpoints(views):
    return sorted(views, key=lambda v: (v["created_at"] or _EPOCH, v["id"]))


def resolve_pipeline_stage(workflow_status, metadata):
    override = metadata.get("pipeline_stage")
    if override in PIPELINE_STAGES:
        return override
    return workflow_status_to_pipeline_stage(workflow_status)


def resolve_intake_status(metadata, requirements):
    """Explicit override first, then inference from the requirement rows."""
    override = metadata.get("intake_status")
    if override in INTAKE_STATUSES:
        return override
    if not requirements:
        return "not_started"
    pending = sum(1 for r in requirements if r.status == "pending")
    received = sum(1 for r in requirements if r.status == "received")
    if not pending and received:
        return "completed"
    return "in_progress"


def resolve_kickoff_status(metadata, kickoff_at, now=None):
    override = metadata.get("kickoff_status")
    if override in KICKOFF_STATUSES:
        return override
    if kickoff_at is None:
        return "not_scheduled"
    if metadata.date("kickoff_completed_at") is not None:
        return "completed"
    now = now or utcnow()
    if as_utc(kickoff_at) < now:
        return "needs_reschedule"
    return "scheduled"


def escrow_totals(checkpoints):
    """Full-precision escrow sums for a list of checkpoint views."""
    totals = {
        "total_funded": Decimal("0"),
        "outstanding": Decimal("0"),
        "released": Decimal("0"),
        "at_risk": Decimal("0"),
        "next_release_at": None,
    }
    for checkpoint in checkpoints:
        amount = to_decimal(checkpoint["amount"])
        status = checkpoint["status"]
        totals["total_funded"] += amount
        if status == "released":
            totals["released"] += amount
        if status in OUTSTANDING_ESCROW_STATUSES:
            totals["outstanding"] += amount
            expected = checkpoint["expected_at"]
            if expected and (totals["next_release_at"] is None or expected < totals["next_release_at"]):
                totals["next_release_at"] = expected
        if status in AT_RISK_ESCROW_STATUSES:
            totals["at_risk"] += amount
    return totals


def _projection(user):
    return user.to_projection() if user is not None else None


def build_order_view(order, now=None):
    _require("Order", order, ("id", "freelancer_id", "workflow_status"))
    now = now or utcnow()

    metadata = OrderMetadata.from_bag(order.order_metadata)
    requirements = list(order.requirements or [])
    revisions = list(order.revisions or [])
    payouts = list(order.payouts or [])

    requirement_views = sort_requirements([requirement_view(r) for r in requirements])
    revision_views = sort_revisions([revision_view(r) for r in revisions])
    checkpoint_views = sort_checkpoints([escrow_checkpoint_view(p) for p in payouts])

    escrow = escrow_totals(checkpoint_views)
    escrow_total = (
        to_decimal(metadata.get("escrow_total_amount"))
        if metadata.has("escrow_total_amount")
        else escrow["total_funded"]
    )
    escrow_currency = metadata.get("escrow_currency") or order.value_currency or "USD"

    # stored caches are stale by definition; metrics are recomputed instead
    merged = metadata.with_values(
        escrow_total_amount=format_money(escrow_total),
        escrow_currency=escrow_currency,
        **{key: MISSING for key in OrderMetadata.CACHE_KEYS},
    )

    csat = metadata.get("csat_score")
    tags = metadata.get("tags")

    return {
        "id": order.id,
        "order_number": order.order_number,
        "freelancer_id": order.freelancer_id,
        "client_id": order.client_id,
        "gig_id": order.gig_id,
        "title": order.title,
        "client_name": order.client_name,
        "client_email": order.client_email,
        "client_organization": order.client_organization,
        "workflow_status": order.workflow_status,
        "pipeline_stage": resolve_pipeline_stage(order.workflow_status, metadata),
        "status": status_type_for(order.workflow_status),
        "intake_status": resolve_intake_status(metadata, requirements),
        "kickoff_status": resolve_kickoff_status(metadata, order.kickoff_at, now),
        "value_amount": format_money(order.value_amount or 0),
        "value_currency": order.value_currency or "USD",
        "escrow_total_amount": format_money(escrow_total),
        "escrow_currency": escrow_currency,
        "progress_percent": format_money(order.progress_percent or 0),
        "csat_score": None if csat is None else format_money(csat),
        "tags": list(tags) if isinstance(tags, list) else [],
        "notes": metadata.get("notes"),
        "submitted_at": as_utc(order.submitted_at),
        "kickoff_at": as_utc(order.kickoff_at),
        "due_at": as_utc(order.due_at),
        "completed_at": as_utc(order.completed_at),
        "last_client_contact_at": metadata.date("last_client_contact_at"),
        "next_client_touchpoint_at": metadata.date("next_client_touchpoint_at"),
        "created_at": as_utc(order.created_at),
        "updated_at": as_utc(order.updated_at),
        "freelancer": _projection(order.freelancer),
        "client": _projection(order.client),
        "gig": _projection(order.gig),
        "requirements": requirement_views,
        "revisions": revision_views,
        "escrow_checkpoints": checkpoint_views,
        "escrow": {
            "total_funded": format_money(escrow["total_funded"]),
            "outstanding": format_money(escrow["outstanding"]),
            "released": format_money(escrow["released"]),
            "at_risk": format_money(escrow["at_risk"]),
            "next_release_at": escrow["next_release_at"],
            "currency": escrow_currency,
        },
        "metadata": merged.to_bag(),
    }
