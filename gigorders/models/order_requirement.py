from gigorders.extensions import db
from datetime import datetime, timezone


class OrderRequirement(db.Model):
    """Intake form sent to the client before work starts."""

    __tablename__ = "order_requirements"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    title = db.Column(db.String(180), nullable=False, default="Requirements")
    status = db.Column(db.String(20), nullable=False, default="pending")
    priority = db.Column(db.String(10), nullable=False, default="medium")

    questions = db.Column(db.JSON, nullable=True)
    responses = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    requested_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    due_at = db.Column(db.DateTime(timezone=True))
    received_at = db.Column(db.DateTime(timezone=True))

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), onupdate=lambda: datetime.now(timezone.utc))

    order = db.relationship(
        "Order",
        backref=db.backref("requirements", lazy="selectin", cascade="all, delete-orphan")
    )
