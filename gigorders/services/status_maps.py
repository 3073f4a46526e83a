"""
Fixed lookup tables between the persisted status vocabularies and the
derived, UI-facing ones.

Two pairs are kept in sync here:

* workflow status (persisted on the order)  <->  pipeline stage (derived)
* payout status (persisted on the payout)    <->  escrow status (derived)

Neither pair is an algebraic inverse. ``delivery`` is reached from two
workflow statuses, and ``held``/``disputed``/``cancelled`` escrow states all
collapse onto a single payout status on the way back. Callers must not
assume a round trip returns the original value.
"""

WORKFLOW_STATUSES = (
    "awaiting_requirements",
    "in_progress",
    "revision_requested",
    "ready_for_payout",
    "completed",
    "paused",
    "cancelled",
)

PIPELINE_STAGES = (
    "inquiry",
    "qualification",
    "kickoff_scheduled",
    "production",
    "delivery",
    "completed",
    "cancelled",
    "on_hold",
)

STATUS_TYPES = ("open", "completed", "cancelled")
INTAKE_STATUSES = ("not_started", "in_progress", "completed")
KICKOFF_STATUSES = ("not_scheduled", "scheduled", "completed", "needs_reschedule")

REQUIREMENT_STATUSES = ("pending", "received", "waived")
REQUIREMENT_PRIORITIES = ("low", "medium", "high")
REQUIREMENT_FORM_STATUSES = (
    "pending_client",
    "in_progress",
    "submitted",
    "approved",
    "needs_revision",
)

REVISION_STATUSES = ("requested", "in_progress", "submitted", "approved", "rejected")
REVISION_SEVERITIES = ("low", "medium", "high")
REVISION_UI_STATUSES = ("open", "submitted", "approved", "declined")

PAYOUT_STATUSES = ("pending", "scheduled", "released", "at_risk", "on_hold")
ESCROW_STATUSES = ("funded", "pending_release", "released", "held", "disputed", "cancelled")

DEFAULT_PIPELINE_STAGE = "inquiry"
DEFAULT_WORKFLOW_STATUS = "awaiting_requirements"

WORKFLOW_TO_PIPELINE = {
    "awaiting_requirements": "qualification",
    "in_progress": "production",
    "revision_requested": "delivery",
    "ready_for_payout": "delivery",
    "completed": "completed",
    "paused": "on_hold",
    "cancelled": "cancelled",
}

PIPELINE_TO_WORKFLOW = {
    "inquiry": "awaiting_requirements",
    "qualification": "awaiting_requirements",
    "kickoff_scheduled": "in_progress",
    "production": "in_progress",
    "delivery": "ready_for_payout",
    "completed": "completed",
    "cancelled": "cancelled",
    "on_hold": "paused",
}

PAYOUT_TO_ESCROW = {
    "pending": "funded",
    "scheduled": "pending_release",
    "released": "released",
    "at_risk": "held",
    "on_hold": "held",
}

ESCROW_TO_PAYOUT = {
    "funded": "pending",
    "pending_release": "scheduled",
    "released": "released",
    "held": "on_hold",
    "disputed": "at_risk",
    "cancelled": "on_hold",
}

REQUIREMENT_TO_FORM_STATUS = {
    "pending": "pending_client",
    "received": "submitted",
    "waived": "approved",
}

REVISION_TO_UI_STATUS = {
    "requested": "open",
    "in_progress": "open",
    "submitted": "submitted",
    "approved": "approved",
    "rejected": "declined",
}


def workflow_status_to_pipeline_stage(workflow_status):
    return WORKFLOW_TO_PIPELINE.get(workflow_status, DEFAULT_PIPELINE_STAGE)


def pipeline_stage_to_workflow_status(pipeline_stage):
    return PIPELINE_TO_WORKFLOW.get(pipeline_stage, DEFAULT_WORKFLOW_STATUS)


def payout_status_to_escrow_status(payout_status):
    # Unknown rows are treated as freshly funded milestones
    return PAYOUT_TO_ESCROW.get(payout_status, "funded")


def escrow_status_to_payout_status(escrow_status):
    return ESCROW_TO_PAYOUT.get(escrow_status, "pending")


def requirement_form_status(status):
    return REQUIREMENT_TO_FORM_STATUS.get(status, "pending_client")


def revision_ui_status(status):
    return REVISION_TO_UI_STATUS.get(status, "open")


def status_type_for(workflow_status):
    if workflow_status == "completed":
        return "completed"
    if workflow_status == "cancelled":
        return "cancelled"
    return "open"
