from __future__ import annotations

from ..extensions import db
from stocktrack.time_utils import to_utc_z


class Sale(db.Model):
    """
    Completed transaction for exactly one unit.

    Created once by the transition service when a unit moves to "sold".
    unit_id is unique: a second sale for the same unit is refused by the
    database even if two writers race past the service checks.

    PAYMENT: is_paid only moves False -> True (see sales_service.mark_paid);
    paid_at is stamped on that flip and never rewritten.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("unit_id", name="uq_sales_unit"),
        db.UniqueConstraint("sale_code", name="uq_sales_sale_code"),
        db.Index("ix_sales_paid_sold_at", "is_paid", "sold_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable code (e.g., "SL-000123")
    sale_code = db.Column(db.String(32), nullable=False)

    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False)
    sold_by_user_id = db.Column(db.String(64), nullable=False, index=True)

    customer_phone = db.Column(db.String(32), nullable=True)
    has_package = db.Column(db.Boolean, nullable=False, default=False)
    package_type = db.Column(db.String(64), nullable=True)
    is_paid = db.Column(db.Boolean, nullable=False, default=False)

    sold_at = db.Column(db.DateTime(timezone=True), nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    unit = db.relationship("Unit", backref=db.backref("sale", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Sale id={self.id} code={self.sale_code!r} unit_id={self.unit_id} paid={self.is_paid}>"

    def to_dict(self, include_unit: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_code": self.sale_code,
            "unit_id": self.unit_id,
            "sold_by_user_id": self.sold_by_user_id,
            "customer_phone": self.customer_phone,
            "has_package": self.has_package,
            "package_type": self.package_type,
            "is_paid": self.is_paid,
            "sold_at": to_utc_z(self.sold_at),
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "version_id": self.version_id,
        }
        if include_unit and self.unit is not None:
            data["unit"] = {
                "smartcard": self.unit.smartcard,
                "serial_number": self.unit.serial_number,
                "kind": self.unit.kind,
            }
        return data
