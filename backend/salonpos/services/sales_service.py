"""
Sale transaction coordinator.

Every mutation (create / update / delete) runs inside one transaction():
stock rows are locked and checked before anything is written, so a
validation failure only has to roll back. Nothing partial is ever committed:
no half-deducted stock, no orphan lines, no stale totals.

Order of work inside a create:
    resolve lines -> lock stock -> check stock -> write sale + lines
    -> deduct stock -> promotion -> totals -> receipt
"""

from __future__ import annotations

import re
import secrets
import string
import uuid
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Hairdresser, Product, ProductSale, Receipt, Sale, Service, ServiceSale, Shop
from ..money import round_money, to_decimal
from ..time_utils import parse_iso_date, today, utcnow
from ..validation import (
    SaleDraft,
    SalePatch,
    ValidationError,
    is_set,
    validate_sale_create,
    validate_sale_update,
)
from . import stock_service
from .concurrency import lock_for_update, run_with_retry, transaction
from .promotions_service import apply_promotion, clear_promotion, get_promotion

RECEIPT_NUMBER_ATTEMPTS = 5


class SaleError(Exception):
    """Raised when a sale or shop cannot be found for the caller."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class ResolvedLine:
    item_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


# ---------------------------------------------------------------------------
# Line resolution
# ---------------------------------------------------------------------------

def _aggregate(items) -> dict[int, int]:
    """Sum quantities per id; repeated ids in a payload become one line."""
    totals: dict[int, int] = defaultdict(int)
    for item in items:
        totals[item.item_id] += item.quantity
    return dict(totals)


def _resolve_lines(model, shop_id: int, items, kept_prices: dict | None = None) -> dict[int, ResolvedLine]:
    """
    Price requested lines from the shop catalog.

    Ids that do not resolve to a catalog row of this shop are skipped, not
    rejected. kept_prices holds unit prices already snapshotted on the sale;
    those win over the current catalog price.
    """
    requested = _aggregate(items)
    if not requested:
        return {}

    kept_prices = kept_prices or {}
    rows = (
        db.session.query(model.id, model.price)
        .filter(model.id.in_(list(requested)), model.shop_id == shop_id)
        .all()
    )
    prices = {row.id: row.price for row in rows}

    resolved = {}
    for item_id, qty in requested.items():
        if item_id not in prices:
            current_app.logger.debug(
                "Skipping unknown %s id %s for shop %s", model.__tablename__, item_id, shop_id
            )
            continue
        unit = round_money(kept_prices.get(item_id, prices[item_id]))
        resolved[item_id] = ResolvedLine(
            item_id=item_id,
            quantity=qty,
            unit_price=unit,
            subtotal=round_money(unit * qty),
        )
    return resolved


def _sync_lines(current: list, resolved: dict[int, ResolvedLine], key: str, factory) -> None:
    """
    Make `current` (a sale relationship list) match `resolved` exactly.
    Existing rows are updated in place, missing ones removed (delete-orphan),
    new ones appended.
    """
    existing = {getattr(line, key): line for line in current}
    for item_id, line in existing.items():
        if item_id not in resolved:
            current.remove(line)
    for item_id, res in resolved.items():
        line = existing.get(item_id)
        if line is None:
            current.append(factory(res))
        else:
            line.quantity = res.quantity
            line.unit_price = res.unit_price
            line.subtotal = res.subtotal


def _product_line(res: ResolvedLine) -> ProductSale:
    return ProductSale(
        product_id=res.item_id,
        quantity=res.quantity,
        unit_price=res.unit_price,
        subtotal=res.subtotal,
    )


def _service_line(res: ResolvedLine) -> ServiceSale:
    return ServiceSale(
        service_id=res.item_id,
        quantity=res.quantity,
        unit_price=res.unit_price,
        subtotal=res.subtotal,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_shop(shop_id: int) -> Shop:
    shop = db.session.get(Shop, shop_id)
    if shop is None:
        raise SaleError("Shop not found")
    return shop


def _ensure_hairdresser(shop_id: int, hairdresser_id: int | None) -> None:
    if hairdresser_id is None:
        return
    exists = (
        db.session.query(Hairdresser.id)
        .filter_by(id=hairdresser_id, shop_id=shop_id)
        .first()
    )
    if not exists:
        raise ValidationError("Unknown hairdresser for this shop.", field="hairdresser_id")


def _lock_sale(shop_id: int, sale_id: int) -> Sale:
    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).one_or_none()
    if sale is None or sale.shop_id != shop_id:
        raise SaleError("Sale not found")
    return sale


def _auto_promotion_enabled() -> bool:
    return bool(current_app.config.get("SALES_AUTO_PROMOTION", False))


def _apply_requested_promotion(sale: Sale, promotion_id: int | None, *, allow_auto: bool = True) -> None:
    """
    Explicit promotion id: evaluate the shop's promotion, or drop it when it
    does not exist in this shop. No id: auto-select when enabled and
    allow_auto is set; an explicit null from an edit only clears.
    """
    if promotion_id:
        promotion = get_promotion(sale.shop_id, promotion_id)
        if promotion is not None:
            apply_promotion(sale, promotion)
            return
        clear_promotion(sale)
        return

    clear_promotion(sale)
    if allow_auto and _auto_promotion_enabled():
        apply_promotion(sale)


def _finalize_totals(sale: Sale) -> None:
    gross = round_money(to_decimal(sale.products_total) + to_decimal(sale.services_total))
    discount = to_decimal(sale.discount_amount or 0)
    sale.total_amount = round_money(max(Decimal("0"), gross - discount))


def _generate_receipt_number(shop_id: int) -> str:
    prefix = current_app.config.get("RECEIPT_PREFIX", "RC")
    alphabet = string.ascii_uppercase + string.digits
    for _ in range(RECEIPT_NUMBER_ATTEMPTS):
        random_part = "".join(secrets.choice(alphabet) for _ in range(5))
        candidate = f"{prefix}-{utcnow():%Y%m%d}-{shop_id:02d}-{random_part}"
        taken = db.session.query(Receipt.id).filter_by(receipt_number=candidate).first()
        if not taken:
            return candidate
    return str(uuid.uuid4())


def _issue_receipt(sale: Sale) -> Receipt:
    receipt = Receipt(
        shop_id=sale.shop_id,
        receipt_number=_generate_receipt_number(sale.shop_id),
        generated_at=utcnow(),
    )
    sale.receipt = receipt
    return receipt


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_sale(shop_id: int, payload: SaleDraft | dict) -> Sale:
    """
    Check out a new sale.

    Stock for every requested product is locked and checked before the sale
    row is written; InsufficientStock aborts the whole checkout.
    """
    draft = payload if isinstance(payload, SaleDraft) else validate_sale_create(payload)

    def _op() -> Sale:
        with transaction():
            _get_shop(shop_id)
            _ensure_hairdresser(shop_id, draft.hairdresser_id)

            product_lines = _resolve_lines(Product, shop_id, draft.products)
            service_lines = _resolve_lines(Service, shop_id, draft.services)

            requested = {pid: line.quantity for pid, line in product_lines.items()}
            locked = stock_service.lock_and_fetch(requested.keys(), shop_id)
            stock_service.check_availability(requested, locked)

            sale = Sale(
                uuid=str(uuid.uuid4()),
                shop_id=shop_id,
                customer_name=draft.customer_name,
                customer_phone=draft.customer_phone,
                sale_date=draft.sale_date,
                status=draft.status,
                payment_method=draft.payment_method,
                hairdresser_id=draft.hairdresser_id,
            )
            sale.product_lines = [_product_line(res) for res in product_lines.values()]
            sale.service_lines = [_service_line(res) for res in service_lines.values()]
            _finalize_totals(sale)
            db.session.add(sale)
            db.session.flush()

            for product_id, qty in requested.items():
                stock_service.apply_delta(product_id, shop_id, qty)

            _apply_requested_promotion(sale, draft.promotion_id)
            _finalize_totals(sale)
            _issue_receipt(sale)
            db.session.flush()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info(
        "Sale %s created for shop %s (total=%s, discount=%s)",
        sale.id, shop_id, sale.total_amount, sale.discount_amount,
    )
    return sale


def _reconcile_products(sale: Sale, items) -> None:
    """
    Replace the product lines of `sale`, moving stock by the difference.

    The union of old and new product ids is locked once; every increase is
    validated against current stock before any quantity is written.
    """
    old_qty: dict[int, int] = defaultdict(int)
    kept_prices = {}
    for line in sale.product_lines:
        old_qty[line.product_id] += line.quantity
        kept_prices[line.product_id] = line.unit_price

    new_lines = _resolve_lines(Product, sale.shop_id, items, kept_prices=kept_prices)
    new_qty = {pid: line.quantity for pid, line in new_lines.items()}

    union = set(old_qty) | set(new_qty)
    locked = stock_service.lock_and_fetch(union, sale.shop_id)

    deltas = {pid: new_qty.get(pid, 0) - old_qty.get(pid, 0) for pid in sorted(union)}
    increases = {pid: delta for pid, delta in deltas.items() if delta > 0}
    stock_service.check_availability(increases, locked)

    for product_id, delta in deltas.items():
        if delta == 0 or product_id not in locked:
            continue
        stock_service.apply_delta(product_id, sale.shop_id, delta)

    _sync_lines(sale.product_lines, new_lines, "product_id", _product_line)


def update_sale(shop_id: int, sale_id: int, payload: SalePatch | dict) -> Sale:
    """
    Edit a sale with patch semantics.

    Fields absent from the payload are left untouched; a present line list
    (even empty) replaces the lines of that type. The promotion is
    re-resolved whenever lines, the sale date or promotion_id change.
    """
    patch = payload if isinstance(payload, SalePatch) else validate_sale_update(payload)

    def _op() -> Sale:
        with transaction():
            sale = _lock_sale(shop_id, sale_id)

            for name in ("customer_name", "customer_phone", "sale_date", "payment_method", "status"):
                value = getattr(patch, name)
                if is_set(value):
                    setattr(sale, name, value)

            if is_set(patch.hairdresser_id):
                _ensure_hairdresser(shop_id, patch.hairdresser_id)
                sale.hairdresser_id = patch.hairdresser_id

            if is_set(patch.products):
                _reconcile_products(sale, patch.products)

            if is_set(patch.services):
                kept_prices = {line.service_id: line.unit_price for line in sale.service_lines}
                new_lines = _resolve_lines(Service, shop_id, patch.services, kept_prices=kept_prices)
                _sync_lines(sale.service_lines, new_lines, "service_id", _service_line)

            if is_set(patch.promotion_id):
                _apply_requested_promotion(sale, patch.promotion_id, allow_auto=False)
            elif any(is_set(v) for v in (patch.products, patch.services, patch.sale_date)):
                existing = get_promotion(shop_id, sale.promotion_id) if sale.promotion_id else None
                if existing is not None:
                    apply_promotion(sale, existing)
                else:
                    _apply_requested_promotion(sale, None)

            _finalize_totals(sale)
            db.session.flush()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info(
        "Sale %s updated for shop %s (total=%s, discount=%s)",
        sale.id, shop_id, sale.total_amount, sale.discount_amount,
    )
    return sale


def delete_sale(shop_id: int, sale_id: int) -> None:
    """Delete a sale and put the stock of its product lines back."""

    def _op() -> None:
        with transaction():
            sale = _lock_sale(shop_id, sale_id)

            restore: dict[int, int] = defaultdict(int)
            for line in sale.product_lines:
                if line.quantity > 0:
                    restore[line.product_id] += line.quantity

            locked = stock_service.lock_and_fetch(restore.keys(), shop_id)
            for product_id, qty in sorted(restore.items()):
                if product_id in locked:
                    stock_service.apply_delta(product_id, shop_id, -qty)

            db.session.delete(sale)
            db.session.flush()

    run_with_retry(_op)
    current_app.logger.info("Sale %s deleted for shop %s, stock restored", sale_id, shop_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_sale(shop_id: int, sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None or sale.shop_id != shop_id:
        raise SaleError("Sale not found")
    return sale


def list_sales(shop_id: int, day=None, q: str | None = None) -> list[dict]:
    """Sales of one day (default today), newest first, optionally searched."""
    day = parse_iso_date(day) or today()
    query = (
        db.session.query(Sale)
        .outerjoin(Receipt, Receipt.sale_id == Sale.id)
        .filter(Sale.shop_id == shop_id, Sale.sale_date == day)
    )
    q = (q or "").strip()
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Sale.customer_name.ilike(like), Receipt.receipt_number.ilike(like)))
    return [s.to_dict() for s in query.order_by(Sale.id.desc()).all()]


def customer_suggestions(shop_id: int, q: str | None = None, limit: int | None = 10) -> list[dict]:
    """
    Recent distinct customers of a shop for the checkout autocomplete.
    Duplicates are detected on lowercased name + digits of the phone.
    """
    limit = limit if limit and 0 < limit <= 50 else 10
    query = (
        db.session.query(Sale.customer_name, Sale.customer_phone)
        .filter(Sale.shop_id == shop_id)
        .order_by(Sale.id.desc())
    )
    q = (q or "").strip()
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Sale.customer_name.ilike(like), Sale.customer_phone.ilike(like)))

    seen = set()
    out = []
    for name, phone in query.limit(200).all():
        name = name or ""
        phone = phone or ""
        if not name and not phone:
            continue
        key = (name.lower(), re.sub(r"\D+", "", phone))
        if key in seen:
            continue
        seen.add(key)
        out.append({"name": name, "phone": phone})
        if len(out) >= limit:
            break
    return out
