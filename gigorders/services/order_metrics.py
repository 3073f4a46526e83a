from gigorders.services.metadata_normalizer import format_money, to_decimal
from gigorders.services.order_view import OUTSTANDING_ESCROW_STATUSES
from gigorders.utils.dates import days_between, utcnow

REQUIREMENT_OVERDUE_DAYS = 3
DELIVERY_SOON_DAYS = 3

PENDING_REQUIREMENT_STATUSES = frozenset({"pending_client", "in_progress"})
OPEN_REVISION_STATUSES = frozenset({"requested", "open", "in_progress", "submitted", "declined"})


def is_requirement_overdue(requirement, now, overdue_days=REQUIREMENT_OVERDUE_DAYS):
    requested_at = requirement["requested_at"]
    if requested_at is None:
        return False
    return days_between(now, requested_at) > overdue_days


def is_delivery_due_soon(due_at, now, window_days=DELIVERY_SOON_DAYS):
    if due_at is None:
        return False
    remaining = days_between(due_at, now)
    return 0 <= remaining <= window_days


def next_action_for(view, pending_requirements, open_revisions, outstanding_escrow):
    stage = view["pipeline_stage"]
    if stage == "qualification":
        return "Awaiting client requirement form." if pending_requirements else "Schedule kickoff call."
    if stage == "kickoff_scheduled":
        return "Prepare kickoff agenda." if view["kickoff_status"] == "scheduled" else "Schedule kickoff call."
    if stage == "production":
        return "Address open revision requests." if open_revisions else "Work towards delivery milestone."
    if stage == "delivery":
        if outstanding_escrow:
            return "Collect client approval and trigger escrow release."
        return "Confirm final acceptance."
    if stage == "completed":
        return "Capture testimonial and close out project."
    if stage == "cancelled":
        return "Archive supporting notes and inform stakeholders."
    if stage == "on_hold":
        return "Check in with the client before resuming work."
    return "Review inquiry and confirm requirements."


def derive_order_metrics(view, now=None, overdue_days=REQUIREMENT_OVERDUE_DAYS,
                         due_soon_days=DELIVERY_SOON_DAYS):
    """Scalar health indicators for one augmented order view."""
    now = now or utcnow()

    pending = [r for r in view["requirements"] if r["status"] in PENDING_REQUIREMENT_STATUSES]
    overdue = [r for r in pending if is_requirement_overdue(r, now, overdue_days)]
    open_revisions = sum(1 for r in view["revisions"] if r["status"] in OPEN_REVISION_STATUSES)

    outstanding = sum(
        (to_decimal(c["amount"]) for c in view["escrow_checkpoints"]
         if c["status"] in OUTSTANDING_ESCROW_STATUSES),
        to_decimal(0),
    )

    metrics = {
        "pending_requirements": len(pending),
        "overdue_requirements": len(overdue),
        "open_revisions": open_revisions,
        "outstanding_escrow": format_money(outstanding),
        "kickoff_scheduled": 1 if view["kickoff_status"] == "scheduled" else 0,
        "delivery_due_soon": 1 if is_delivery_due_soon(view["due_at"], now, due_soon_days) else 0,
    }
    metrics["next_action"] = next_action_for(
        view, metrics["pending_requirements"], open_revisions, outstanding
    )
    return metrics


def with_metrics(view, now=None, **kwargs):
    return {**view, "metrics": derive_order_metrics(view, now=now, **kwargs)}
