"""
Fleet-wide rollup of augmented order views.

The fold is a single pass over the views and never mutates them. Money is
accumulated as Decimal and rounded once, when the summary is emitted.
Orders in different currencies are summed as-is; the summary reports the
first order's currency.
"""

from decimal import Decimal, ROUND_HALF_UP

from gigorders.services.metadata_normalizer import format_money, to_decimal
from gigorders.services.order_metrics import (
    DELIVERY_SOON_DAYS,
    REQUIREMENT_OVERDUE_DAYS,
    derive_order_metrics,
    is_requirement_overdue,
)
from gigorders.services.order_view import escrow_totals
from gigorders.services.status_maps import ESCROW_STATUSES, PIPELINE_STAGES
from gigorders.utils.dates import utcnow


def percentage(count, total, precision=1):
    if not total:
        return None
    value = Decimal(count) * 100 / Decimal(total)
    return float(value.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP))


def _average(total, count):
    if not count:
        return None
    return format_money(total / count)


def build_pipeline_summary(orders, now=None, overdue_days=REQUIREMENT_OVERDUE_DAYS,
                           due_soon_days=DELIVERY_SOON_DAYS):
    now = now or utcnow()

    stage_buckets = {stage: 0 for stage in PIPELINE_STAGES}
    requirement_stats = {
        "pending": 0,
        "submitted": 0,
        "approved": 0,
        "needs_revision": 0,
        "overdue": 0,
    }
    revision_stats = {
        "active": 0,
        "awaiting_review": 0,
        "completed": 0,
        "declined": 0,
    }
    escrow_counts = {status: 0 for status in ESCROW_STATUSES}
    escrow_amounts = {
        "total_funded": Decimal("0"),
        "outstanding": Decimal("0"),
        "released_value": Decimal("0"),
    }

    value = {"total": Decimal("0"), "open": Decimal("0"), "completed": Decimal("0")}
    counts = {"open": 0, "completed": 0, "closed": 0}
    csat_sum = Decimal("0")
    csat_count = 0
    kickoff_scheduled = 0
    delivery_due_soon = 0

    for order in orders:
        metrics = order.get("metrics") or derive_order_metrics(
            order, now=now, overdue_days=overdue_days, due_soon_days=due_soon_days
        )

        stage = order["pipeline_stage"]
        stage_buckets[stage] = stage_buckets.get(stage, 0) + 1

        amount = to_decimal(order["value_amount"])
        value["total"] += amount
        if order["status"] == "open":
            counts["open"] += 1
            value["open"] += amount
        else:
            counts["closed"] += 1
        if order["status"] == "completed":
            counts["completed"] += 1
            value["completed"] += amount

        if order["csat_score"] is not None:
            csat_sum += to_decimal(order["csat_score"])
            csat_count += 1

        kickoff_scheduled += metrics["kickoff_scheduled"]
        delivery_due_soon += metrics["delivery_due_soon"]

        for form in order["requirements"]:
            status = form["status"]
            if status == "submitted":
                requirement_stats["submitted"] += 1
            elif status == "approved":
                requirement_stats["approved"] += 1
            elif status == "needs_revision":
                requirement_stats["needs_revision"] += 1
            elif status in ("pending_client", "in_progress"):
                requirement_stats["pending"] += 1
            if (
                status not in ("approved", "submitted")
                and form["received_at"] is None
                and is_requirement_overdue(form, now, overdue_days)
            ):
                requirement_stats["overdue"] += 1

        for revision in order["revisions"]:
            status = revision["status"]
            if status in ("open", "requested"):
                revision_stats["active"] += 1
            elif status == "submitted":
                revision_stats["awaiting_review"] += 1
            elif status == "approved":
                revision_stats["completed"] += 1
            elif status == "declined":
                revision_stats["declined"] += 1

        checkpoints = order["escrow_checkpoints"]
        for checkpoint in checkpoints:
            escrow_counts[checkpoint["status"]] = escrow_counts.get(checkpoint["status"], 0) + 1
        totals = escrow_totals(checkpoints)
        escrow_amounts["total_funded"] += totals["total_funded"]
        escrow_amounts["outstanding"] += totals["outstanding"]
        escrow_amounts["released_value"] += totals["released"]

    total_orders = len(orders)
    first = orders[0] if orders else None
    currency = first["value_currency"] if first else "USD"
    escrow_currency = (first.get("escrow_currency") or currency) if first else "USD"

    cancelled = stage_buckets.get("cancelled", 0)
    active = total_orders - cancelled
    qualified = total_orders - (stage_buckets.get("inquiry", 0) + cancelled)
    kicked_off = sum(
        stage_buckets.get(stage, 0)
        for stage in ("kickoff_scheduled", "production", "delivery", "completed")
    )
    delivered = stage_buckets.get("delivery", 0) + stage_buckets.get("completed", 0)
    won = stage_buckets.get("completed", 0)

    return {
        "totals": {
            "orders": total_orders,
            "open_orders": counts["open"],
            "closed_orders": counts["closed"],
            "total_value": format_money(value["total"]),
            "open_value": format_money(value["open"]),
            "completed_value": format_money(value["completed"]),
            "average_value": _average(value["total"], total_orders),
            "average_open_value": _average(value["open"], counts["open"]),
            "average_completed_value": _average(value["completed"], counts["completed"]),
            "currency": currency,
        },
        "pipeline": stage_buckets,
        "requirement_forms": requirement_stats,
        "revisions": revision_stats,
        "escrow": {
            "counts": escrow_counts,
            "amounts": {
                "total_funded": format_money(escrow_amounts["total_funded"]),
                "outstanding": format_money(escrow_amounts["outstanding"]),
                "released_value": format_money(escrow_amounts["released_value"]),
                "currency": escrow_currency,
            },
        },
        "health": {
            "csat_average": _average(csat_sum, csat_count),
            "kickoff_scheduled": kickoff_scheduled,
            "delivery_due_soon": delivery_due_soon,
        },
        "conversion": {
            "qualification_rate": percentage(qualified, total_orders),
            "kickoff_rate": percentage(kicked_off, total_orders),
            "delivery_rate": percentage(delivered, total_orders),
            "win_rate": percentage(won, active if active > 0 else total_orders),
            "cancellation_rate": percentage(cancelled, total_orders),
        },
    }
