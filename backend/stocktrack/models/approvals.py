from __future__ import annotations

from ..extensions import db
from stocktrack.time_utils import to_utc_z


DECISIONS = ("pending", "approved", "rejected")


class PendingUpdate(db.Model):
    """
    A change intent proposed by a non-privileged actor, awaiting review.

    The unit snapshot (smartcard, serial_number, kind, status_at_request) is
    for display only. Approval replays `intent` against the live unit, it
    never writes snapshot values back.

    LIFECYCLE: pending -> approved | rejected. Decided rows are immutable.
    """
    __tablename__ = "pending_updates"
    __table_args__ = (
        db.Index("ix_pending_updates_decision_requested", "decision", "requested_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)

    # Snapshot at request time
    smartcard = db.Column(db.String(64), nullable=True)
    serial_number = db.Column(db.String(64), nullable=True)
    kind = db.Column(db.String(16), nullable=True)
    status_at_request = db.Column(db.String(16), nullable=False)

    # Serialized ChangeIntent (present fields only)
    intent = db.Column(db.JSON, nullable=False)

    requested_by = db.Column(db.String(64), nullable=False, index=True)
    requested_by_name = db.Column(db.String(255), nullable=True)
    requested_at = db.Column(db.DateTime(timezone=True), nullable=False)

    decision = db.Column(db.String(16), nullable=False, default="pending")
    decided_by = db.Column(db.String(64), nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decision_note = db.Column(db.String(255), nullable=True)

    # Most recent engine refusal on approve (request stays pending)
    last_error = db.Column(db.String(255), nullable=True)

    unit = db.relationship("Unit", backref=db.backref("pending_updates", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unit_id": self.unit_id,
            "smartcard": self.smartcard,
            "serial_number": self.serial_number,
            "kind": self.kind,
            "status_at_request": self.status_at_request,
            "intent": self.intent,
            "requested_by": self.requested_by,
            "requested_by_name": self.requested_by_name,
            "requested_at": to_utc_z(self.requested_at),
            "decision": self.decision,
            "decided_by": self.decided_by,
            "decided_at": to_utc_z(self.decided_at) if self.decided_at else None,
            "decision_note": self.decision_note,
            "last_error": self.last_error,
        }
