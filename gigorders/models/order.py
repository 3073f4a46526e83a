from gigorders.extensions import db
from datetime import datetime, timezone
import uuid

from gigorders.models.metadata_bag import MetadataBag


def gen_order_number():
    return f"ORD-{uuid.uuid4().hex[:8].upper()}"


class Order(db.Model):
    __tablename__ = "orders"

    __table_args__ = (
        db.Index("idx_orders_freelancer_created", "freelancer_id", "created_at"),
        db.Index("idx_orders_workflow_status", "workflow_status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), unique=True, nullable=False, default=gen_order_number)

    freelancer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    gig_id = db.Column(db.Integer, db.ForeignKey("gigs.id"), nullable=True)

    title = db.Column(db.String(255))
    client_name = db.Column(db.String(180), nullable=False)
    client_email = db.Column(db.String(255))
    client_organization = db.Column(db.String(180))

    workflow_status = db.Column(db.String(40), nullable=False, default="awaiting_requirements")

    value_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    value_currency = db.Column(db.String(3), nullable=False, default="USD")
    progress_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    submitted_at = db.Column(db.DateTime(timezone=True))
    kickoff_at = db.Column(db.DateTime(timezone=True))
    due_at = db.Column(db.DateTime(timezone=True))
    completed_at = db.Column(db.DateTime(timezone=True))

    # "metadata" is reserved on declarative models
    order_metadata = db.Column("metadata", MetadataBag, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    freelancer = db.relationship("User", foreign_keys=[freelancer_id], lazy=True)
    client = db.relationship("User", foreign_keys=[client_id], lazy=True)
    gig = db.relationship("Gig", lazy=True)
