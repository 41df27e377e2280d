from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class Promotion(db.Model):
    """
    Shop promotion: either a percentage or a fixed amount off the eligible
    part of a sale.

    - percentage and amount are mutually exclusive; when both are set the
      percentage wins (services.promotions_service.compute_discount).
    - starts_at / ends_at form an inclusive date window, NULL = unbounded.
    - days_of_week restricts the promotion to weekdays, 0=Sunday..6=Saturday.
      NULL or [] means every day.
    """
    __tablename__ = "promotions"
    __table_args__ = (
        db.Index("ix_promotions_shop_active", "shop_id", "active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)

    percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    days_of_week = db.Column(db.JSON, nullable=True)

    active = db.Column(db.Boolean, nullable=False, default=True)
    applicable_to_products = db.Column(db.Boolean, nullable=False, default=True)
    applicable_to_services = db.Column(db.Boolean, nullable=False, default=True)

    starts_at = db.Column(db.Date, nullable=True)
    ends_at = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("promotions", lazy=True))

    @property
    def weekdays(self) -> set[int]:
        """days_of_week as a set of valid weekday numbers; junk entries are dropped."""
        days = set()
        for raw in self.days_of_week or []:
            try:
                day = int(raw)
            except (TypeError, ValueError):
                continue
            if 0 <= day <= 6:
                days.add(day)
        return days

    def __repr__(self) -> str:
        return f"<Promotion id={self.id} name={self.name!r} shop_id={self.shop_id}>"

    def to_dict(self):
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "percentage": money_str(self.percentage),
            "amount": money_str(self.amount),
            "days_of_week": sorted(self.weekdays) if self.days_of_week is not None else None,
            "active": self.active,
            "applicable_to_products": self.applicable_to_products,
            "applicable_to_services": self.applicable_to_services,
            "starts_at": self.starts_at.isoformat() if self.starts_at else None,
            "ends_at": self.ends_at.isoformat() if self.ends_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
