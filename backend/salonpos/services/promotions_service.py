# Overview: Promotion evaluator (eligibility + discount) and promotion management.

"""
Promotion rules

Eligibility for a date (is_active_for_date):
- the active flag must be set;
- starts_at / ends_at bound an inclusive window, NULL = unbounded;
- a non-empty days_of_week restricts to those weekdays (0=Sunday..6=Saturday).

Origin of a promotion on a sale (apply_promotion):
- explicit: passed by the caller or already referenced by the sale. An
  inactive explicit promotion is an error the user must see.
- auto: best active promotion of the shop (select_auto_promotion). An
  inactive auto promotion is dropped silently.

Discount:
- eligible base = product subtotals (applicable_to_products)
                + service subtotals (applicable_to_services);
  a base <= 0 is an error whatever the origin;
- percentage > 0 wins: round(base * pct / 100, 2);
- else a fixed amount, capped at the base so totals never go negative;
- else 0 (kept attached only when explicit).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from ..extensions import db
from ..models import Promotion, Sale
from ..money import ZERO, round_money, to_decimal
from ..time_utils import parse_iso_date, sunday_based_weekday, today
from ..validation import ValidationError, enforce_rules_promotion, validate_promotion_payload


class PromotionNotActive(ValidationError):
    """An explicitly selected promotion does not run on the sale date."""

    def __init__(self, promotion: Promotion, day: date):
        self.promotion_id = promotion.id
        self.day = day
        super().__init__("This promotion is not active for the selected date.", field="promotion")


class PromotionNotApplicable(ValidationError):
    """The sale has nothing the promotion is allowed to discount."""

    def __init__(self, promotion: Promotion):
        self.promotion_id = promotion.id
        super().__init__("This promotion cannot be applied to this sale.", field="promotion")


class PromotionError(Exception):
    """Raised when a promotion cannot be found for the shop."""


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------

def is_active_for_date(promotion: Promotion, day) -> bool:
    day = parse_iso_date(day) or today()

    if not promotion.active:
        return False

    if promotion.starts_at and day < promotion.starts_at:
        return False
    if promotion.ends_at and day > promotion.ends_at:
        return False

    days = promotion.weekdays
    if days:
        return sunday_based_weekday(day) in days

    return True


def select_auto_promotion(shop_id: int, day) -> Promotion | None:
    """
    Highest-percentage promotion of the shop that is active on `day`.
    Ties go to the lowest id.
    """
    day = parse_iso_date(day) or today()
    candidates = [
        p
        for p in db.session.query(Promotion).filter_by(shop_id=shop_id).order_by(Promotion.id).all()
        if is_active_for_date(p, day)
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda p: (to_decimal(p.percentage or 0), -p.id))


def eligible_base(promotion: Promotion, products_total, services_total) -> Decimal:
    base = Decimal("0")
    if promotion.applicable_to_products:
        base += to_decimal(products_total or 0)
    if promotion.applicable_to_services:
        base += to_decimal(services_total or 0)
    return base


def compute_discount(promotion: Promotion, base) -> Decimal:
    base = max(Decimal("0"), to_decimal(base))
    pct = to_decimal(promotion.percentage or 0)
    amt = to_decimal(promotion.amount or 0)

    if pct > 0:
        return round_money(base * pct / 100)
    if amt > 0:
        return round_money(min(amt, base))
    return ZERO


def clear_promotion(sale: Sale) -> None:
    sale.promotion_id = None
    sale.discount_amount = None


def apply_promotion(sale: Sale, promotion: Promotion | None = None) -> Decimal | None:
    """
    Resolve and apply a promotion on `sale`, setting promotion_id and
    discount_amount. Returns the discount, or None when nothing applies.

    Line subtotals are read from the sale's current product/service lines,
    so callers must have synced the lines first.
    """
    day = sale.sale_date or today()
    explicit = promotion is not None

    if promotion is None and sale.promotion_id:
        promotion = (
            db.session.query(Promotion)
            .filter_by(id=sale.promotion_id, shop_id=sale.shop_id)
            .one_or_none()
        )
        explicit = promotion is not None

    if promotion is None:
        promotion = select_auto_promotion(sale.shop_id, day)
        explicit = False

    if promotion is None:
        clear_promotion(sale)
        return None

    if not is_active_for_date(promotion, day):
        if explicit:
            raise PromotionNotActive(promotion, day)
        clear_promotion(sale)
        return None

    base = eligible_base(promotion, sale.products_total, sale.services_total)
    if base <= 0:
        raise PromotionNotApplicable(promotion)

    discount = compute_discount(promotion, base)
    if discount > 0 or explicit:
        sale.promotion_id = promotion.id
        sale.discount_amount = discount
        return discount

    clear_promotion(sale)
    return None


# ---------------------------------------------------------------------------
# Management
# ---------------------------------------------------------------------------

def get_promotion(shop_id: int, promotion_id: int) -> Promotion | None:
    """Shop-scoped lookup; a promotion of another shop is reported as missing."""
    return db.session.query(Promotion).filter_by(id=promotion_id, shop_id=shop_id).one_or_none()


def list_promotions(shop_id: int, active_only: bool = False) -> list[dict]:
    q = db.session.query(Promotion).filter_by(shop_id=shop_id)
    if active_only:
        q = q.filter_by(active=True)
    return [p.to_dict() for p in q.order_by(Promotion.name, Promotion.id).all()]


def active_promotions_for_date(shop_id: int, day) -> list[dict]:
    day = parse_iso_date(day) or today()
    promotions = db.session.query(Promotion).filter_by(shop_id=shop_id).order_by(Promotion.id).all()
    return [p.to_dict() for p in promotions if is_active_for_date(p, day)]


def _merged_values(promo: Promotion | None, patch: dict) -> dict:
    values = {
        "percentage": Decimal("0"),
        "amount": Decimal("0"),
        "applicable_to_products": True,
        "applicable_to_services": True,
        "starts_at": None,
        "ends_at": None,
    }
    if promo is not None:
        for key in values:
            values[key] = getattr(promo, key)
    values.update(patch)
    return values


def create_promotion(shop_id: int, data: dict) -> dict:
    patch = validate_promotion_payload(data, partial=False)
    enforce_rules_promotion(_merged_values(None, patch))

    promo = Promotion(shop_id=shop_id, **patch)
    db.session.add(promo)
    db.session.commit()
    return promo.to_dict()


def update_promotion(shop_id: int, promotion_id: int, data: dict) -> dict:
    promo = get_promotion(shop_id, promotion_id)
    if not promo:
        raise PromotionError("Promotion not found")

    patch = validate_promotion_payload(data, partial=True)
    enforce_rules_promotion(_merged_values(promo, patch))

    for key, value in patch.items():
        setattr(promo, key, value)
    db.session.commit()
    return promo.to_dict()
