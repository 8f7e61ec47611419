from __future__ import annotations

from ..extensions import db
from stocktrack.time_utils import to_utc_z


# Lifecycle states (must match transition_service)
UNIT_STATUSES = ("in_store", "in_hand", "sold")
UNIT_KINDS = ("full_set", "decoder_only")


class Unit(db.Model):
    """
    One physical tracked item (decoder or smartcard set).

    LIFECYCLE: status moves in_store -> in_hand -> sold. Only the transition
    service writes status; a Sale row exists iff status == "sold".

    IDENTIFIERS: smartcard and serial_number are indexed but NOT unique.
    Field imports occasionally carry duplicates and the stock team corrects
    them by hand, so lookups return the oldest match.
    """
    __tablename__ = "units"
    __table_args__ = (
        db.Index("ix_units_status_kind", "status", "kind"),
        db.Index("ix_units_team_status", "assigned_team_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    batch_number = db.Column(db.String(64), nullable=True, index=True)
    smartcard = db.Column(db.String(64), nullable=False, index=True)
    serial_number = db.Column(db.String(64), nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False, default="full_set")

    status = db.Column(db.String(16), nullable=False, default="in_store", index=True)

    # Placement. assigned_* mirror unit_assignments (written together).
    region_id = db.Column(db.String(64), nullable=True, index=True)
    assigned_team_id = db.Column(db.String(64), nullable=True)
    assigned_user_id = db.Column(db.String(64), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Unit id={self.id} smartcard={self.smartcard!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_number": self.batch_number,
            "smartcard": self.smartcard,
            "serial_number": self.serial_number,
            "kind": self.kind,
            "status": self.status,
            "region_id": self.region_id,
            "assigned_team_id": self.assigned_team_id,
            "assigned_user_id": self.assigned_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class UnitAssignment(db.Model):
    """
    Who is responsible for a unit: a team (team leader) and/or a field user.

    One row per unit. Writes merge field-by-field; the team side and the
    user side are set and cleared independently.
    """
    __tablename__ = "unit_assignments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, unique=True)

    team_id = db.Column(db.String(64), nullable=True, index=True)
    team_name = db.Column(db.String(255), nullable=True)
    user_id = db.Column(db.String(64), nullable=True, index=True)
    user_name = db.Column(db.String(255), nullable=True)

    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False)
    user_assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    unit = db.relationship("Unit", backref=db.backref("assignment", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "team_id": self.team_id,
            "team_name": self.team_name,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "assigned_at": to_utc_z(self.assigned_at),
            "user_assigned_at": to_utc_z(self.user_assigned_at),
        }
