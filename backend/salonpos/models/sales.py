from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z

SALE_STATUSES = ("En attente", "Attribué")
PAYMENT_METHODS = ("caisse", "orange_money")


class Sale(db.Model):
    """
    Checkout document for one customer visit.

    TOTALS: total_amount = max(0, gross - discount_amount) where gross is the
    sum of all line subtotals. discount_amount is NULL when no promotion is
    attached and 0.00 when an explicitly chosen promotion yields nothing.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_shop_date", "shop_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), nullable=False, unique=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(30), nullable=False)
    sale_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUSES[0])
    payment_method = db.Column(db.String(16), nullable=False, default=PAYMENT_METHODS[0], index=True)

    hairdresser_id = db.Column(db.Integer, db.ForeignKey("hairdressers.id"), nullable=True, index=True)
    promotion_id = db.Column(db.Integer, db.ForeignKey("promotions.id"), nullable=True, index=True)

    discount_amount = db.Column(db.Numeric(10, 2), nullable=True)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    shop = db.relationship("Shop", backref=db.backref("sales", lazy=True))
    hairdresser = db.relationship("Hairdresser")
    promotion = db.relationship("Promotion")
    product_lines = db.relationship(
        "ProductSale",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="ProductSale.id",
    )
    service_lines = db.relationship(
        "ServiceSale",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="ServiceSale.id",
    )
    receipt = db.relationship("Receipt", back_populates="sale", uselist=False, cascade="all, delete-orphan")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def products_total(self):
        return sum((line.subtotal for line in self.product_lines), start=0)

    @property
    def services_total(self):
        return sum((line.subtotal for line in self.service_lines), start=0)

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "uuid": self.uuid,
            "shop_id": self.shop_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "sale_date": self.sale_date.isoformat() if self.sale_date else None,
            "status": self.status,
            "payment_method": self.payment_method,
            "hairdresser_id": self.hairdresser_id,
            "promotion_id": self.promotion_id,
            "discount_amount": money_str(self.discount_amount),
            "total_amount": money_str(self.total_amount),
            "receipt_number": self.receipt.receipt_number if self.receipt else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["products"] = [line.to_dict() for line in self.product_lines]
            data["services"] = [line.to_dict() for line in self.service_lines]
        return data


class ProductSale(db.Model):
    """
    Product line of a sale (pivot).

    unit_price is a snapshot of Product.price at checkout; later catalog
    price changes never touch it.
    """
    __tablename__ = "product_sales"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "product_id", name="uq_product_sales_sale_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    subtotal = db.Column(db.Numeric(10, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="product_lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "subtotal": money_str(self.subtotal),
        }


class ServiceSale(db.Model):
    """Service line of a sale (pivot). quantity defaults to 1."""
    __tablename__ = "service_sales"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "service_id", name="uq_service_sales_sale_service"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    subtotal = db.Column(db.Numeric(10, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="service_lines")
    service = db.relationship("Service")

    def to_dict(self) -> dict:
        return {
            "service_id": self.service_id,
            "name": self.service.name if self.service else None,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "subtotal": money_str(self.subtotal),
        }


class Receipt(db.Model):
    """Printed receipt; exactly one per sale."""
    __tablename__ = "receipts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, unique=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    receipt_number = db.Column(db.String(64), nullable=False, unique=True)
    generated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    sale = db.relationship("Sale", back_populates="receipt")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "shop_id": self.shop_id,
            "receipt_number": self.receipt_number,
            "generated_at": to_utc_z(self.generated_at),
        }
