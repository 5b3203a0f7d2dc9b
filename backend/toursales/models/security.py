from __future__ import annotations

from ..extensions import db
from toursales.time_utils import to_utc_z, utcnow


class LoginAttempt(db.Model):
    """
    Login attempt log used for brute-force throttling.

    WHY: Login is delegated to the identity service, so there is no local user
    table to hang a failure counter on. Attempts are keyed by the submitted
    email instead.

    IMMUTABLE: Append-only. Old rows are removed by the maintenance command.
    """
    __tablename__ = "login_attempts"
    __table_args__ = (
        db.Index("ix_login_attempts_identifier_success", "identifier", "success"),
        db.Index("ix_login_attempts_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    identifier = db.Column(db.String(255), nullable=False, index=True)  # lower-cased email
    success = db.Column(db.Boolean, nullable=False)
    reason = db.Column(db.Text, nullable=True)

    # Client context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "identifier": self.identifier,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
