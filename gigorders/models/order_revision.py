from gigorders.extensions import db
from datetime import datetime, timezone


class OrderRevision(db.Model):
    __tablename__ = "order_revisions"

    __table_args__ = (
        db.UniqueConstraint("order_id", "round_number", name="uq_order_revisions_round"),
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    round_number = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(20), nullable=False, default="requested")
    severity = db.Column(db.String(10), nullable=False, default="medium")
    summary = db.Column(db.Text, nullable=True)

    requested_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    due_at = db.Column(db.DateTime(timezone=True))
    submitted_at = db.Column(db.DateTime(timezone=True))
    approved_at = db.Column(db.DateTime(timezone=True))

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), onupdate=lambda: datetime.now(timezone.utc))

    order = db.relationship(
        "Order",
        backref=db.backref("revisions", lazy="selectin", cascade="all, delete-orphan")
    )
