from marshmallow import fields

from gigorders.extensions import ma


class RequirementSchema(ma.Schema):
    id = fields.Integer()
    order_id = fields.Integer()
    title = fields.String()
    status = fields.String()
    source_status = fields.String()
    priority = fields.String()
    questions = fields.Raw(allow_none=True)
    responses = fields.Raw(allow_none=True)
    notes = fields.String(allow_none=True)
    requested_at = fields.DateTime(allow_none=True)
    due_at = fields.DateTime(allow_none=True)
    received_at = fields.DateTime(allow_none=True)
    created_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)


class RevisionSchema(ma.Schema):
    id = fields.Integer()
    order_id = fields.Integer()
    round_number = fields.Integer()
    status = fields.String()
    source_status = fields.String()
    severity = fields.String()
    summary = fields.String(allow_none=True)
    requested_at = fields.DateTime(allow_none=True)
    due_at = fields.DateTime(allow_none=True)
    submitted_at = fields.DateTime(allow_none=True)
    approved_at = fields.DateTime(allow_none=True)
    created_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)


class EscrowCheckpointSchema(ma.Schema):
    id = fields.Integer()
    order_id = fields.Integer()
    label = fields.String()
    amount = fields.Float()
    currency = fields.String()
    status = fields.String()
    source_status = fields.String()
    expected_at = fields.DateTime(allow_none=True)
    released_at = fields.DateTime(allow_none=True)
    risk_note = fields.String(allow_none=True)
    approval_requirement = fields.Raw(allow_none=True)
    csat_threshold = fields.Float(allow_none=True)
    payout_reference = fields.Raw(allow_none=True)
    released_by_id = fields.Raw(allow_none=True)
    created_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)


class EscrowSnapshotSchema(ma.Schema):
    total_funded = fields.Float()
    outstanding = fields.Float()
    released = fields.Float()
    at_risk = fields.Float()
    next_release_at = fields.DateTime(allow_none=True)
    currency = fields.String()


class OrderMetricsSchema(ma.Schema):
    pending_requirements = fields.Integer()
    overdue_requirements = fields.Integer()
    open_revisions = fields.Integer()
    outstanding_escrow = fields.Float()
    kickoff_scheduled = fields.Integer()
    delivery_due_soon = fields.Integer()
    next_action = fields.String()


class OrderSchema(ma.Schema):
    id = fields.Integer()
    order_number = fields.String()
    freelancer_id = fields.Integer()
    client_id = fields.Integer(allow_none=True)
    gig_id = fields.Integer(allow_none=True)
    title = fields.String(allow_none=True)
    client_name = fields.String()
    client_email = fields.String(allow_none=True)
    client_organization = fields.String(allow_none=True)
    workflow_status = fields.String()
    pipeline_stage = fields.String()
    status = fields.String()
    intake_status = fields.String()
    kickoff_status = fields.String()
    value_amount = fields.Float()
    value_currency = fields.String()
    escrow_total_amount = fields.Float()
    escrow_currency = fields.String()
    progress_percent = fields.Float()
    csat_score = fields.Float(allow_none=True)
    tags = fields.List(fields.String())
    notes = fields.Raw(allow_none=True)
    submitted_at = fields.DateTime(allow_none=True)
    kickoff_at = fields.DateTime(allow_none=True)
    due_at = fields.DateTime(allow_none=True)
    completed_at = fields.DateTime(allow_none=True)
    last_client_contact_at = fields.DateTime(allow_none=True)
    next_client_touchpoint_at = fields.DateTime(allow_none=True)
    created_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)
    freelancer = fields.Dict(allow_none=True)
    client = fields.Dict(allow_none=True)
    gig = fields.Dict(allow_none=True)
    requirements = fields.List(fields.Nested(RequirementSchema))
    revisions = fields.List(fields.Nested(RevisionSchema))
    escrow_checkpoints = fields.List(fields.Nested(EscrowCheckpointSchema))
    escrow = fields.Nested(EscrowSnapshotSchema)
    metadata = fields.Dict()
    metrics = fields.Nested(OrderMetricsSchema)


class PipelineMetaSchema(ma.Schema):
    lookback_days = fields.Integer()
    fetched_at = fields.DateTime()
    filters = fields.Dict()


class PipelineSchema(ma.Schema):
    summary = fields.Dict()
    orders = fields.List(fields.Nested(OrderSchema))
    meta = fields.Nested(PipelineMetaSchema)


order_schema = OrderSchema()
orders_schema = OrderSchema(many=True)
requirement_schema = RequirementSchema()
revision_schema = RevisionSchema()
checkpoint_schema = EscrowCheckpointSchema()
pipeline_schema = PipelineSchema()
