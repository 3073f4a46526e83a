from gigorders.extensions import db
from datetime import datetime, timezone

USER_ROLES = ("freelancer", "client", "admin")


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(255))
    role = db.Column(db.String(50), nullable=False, default="freelancer")
    joined_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def is_admin(self):
        return self.role == "admin"

    def to_projection(self):
        """Lightweight shape embedded in order views."""
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
        }
