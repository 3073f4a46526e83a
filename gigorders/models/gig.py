from gigorders.extensions import db
from datetime import datetime, timezone


class Gig(db.Model):
    """Catalog item an order was purchased from. Managed elsewhere; read-only here."""

    __tablename__ = "gigs"

    id = db.Column(db.Integer, primary_key=True)
    freelancer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    freelancer = db.relationship("User", lazy=True)

    def to_projection(self):
        return {"id": self.id, "title": self.title}
