from gigorders.extensions import db
from datetime import datetime, timezone

from gigorders.models.metadata_bag import MetadataBag


class OrderPayout(db.Model):
    """Milestone payment held in escrow. Surfaced to the UI as an escrow checkpoint."""

    __tablename__ = "order_payouts"

    __table_args__ = (
        db.Index("idx_order_payouts_status", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    milestone_label = db.Column(db.String(180), nullable=False, default="Milestone")
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    status = db.Column(db.String(20), nullable=False, default="pending")

    expected_at = db.Column(db.DateTime(timezone=True))
    released_at = db.Column(db.DateTime(timezone=True))
    risk_note = db.Column(db.Text, nullable=True)

    # approval_requirement, csat_threshold, payout_reference, released_by_id
    payout_metadata = db.Column("metadata", MetadataBag, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), onupdate=lambda: datetime.now(timezone.utc))

    order = db.relationship(
        "Order",
        backref=db.backref("payouts", lazy="selectin", cascade="all, delete-orphan")
    )
