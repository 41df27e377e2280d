# Overview: Flask CLI command groups for bootstrap and stock inspection.

# backend/salonpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "salonpos:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Shops:
# - python -m flask shops create --name "Salon Centre"
#
# Stock:
# - python -m flask stock show --shop-id 1
#   List products with their stock count.
# - python -m flask stock restock --shop-id 1 --product-id 3 --quantity 12
#   Add received units to a product.
#
# Promotions:
# - python -m flask promotions active --shop-id 1 [--date 2026-01-13]
#   Show promotions running on a date and the one checkout would auto-select.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, Shop
from .services import stock_service
from .services.concurrency import transaction
from .services.promotions_service import active_promotions_for_date, select_auto_promotion
from .time_utils import parse_iso_date, today
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes and not click.confirm("This deletes ALL data. Continue?"):
        click.echo("Aborted")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('shops')
def shops_group():
    """Shop management commands."""


@shops_group.command('create')
@click.option('--name', required=True, help='Shop name')
@click.option('--address', help='Street address')
@click.option('--phone', help='Phone number')
@click.option('--email', help='Contact email')
@with_appcontext
def create_shop(name, address, phone, email):
    shop = Shop(name=name, address=address, phone=phone, email=email)
    db.session.add(shop)
    db.session.commit()
    click.echo(f"PASS Created shop {shop.name} (ID: {shop.id})")


@click.group('stock')
def stock_group():
    """Stock inspection and restocking."""


@stock_group.command('show')
@click.option('--shop-id', type=int, required=True, help='Shop ID')
@with_appcontext
def show_stock(shop_id):
    products = db.session.query(Product).filter_by(shop_id=shop_id).order_by(Product.name).all()
    if not products:
        click.echo("No products")
        return
    for p in products:
        click.echo(f"{p.id:>5}  {p.name:<40} qty={p.quantity:<6} price={p.price}")


@stock_group.command('restock')
@click.option('--shop-id', type=int, required=True, help='Shop ID')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--quantity', type=int, required=True, help='Units received')
@with_appcontext
def restock(shop_id, product_id, quantity):
    try:
        with transaction():
            new_quantity = stock_service.restock(product_id, shop_id, quantity)
    except (ValidationError, stock_service.StockError) as exc:
        raise click.ClickException(str(exc))
    click.echo(f"PASS Product {product_id} now has {new_quantity} in stock")


@click.group('promotions')
def promotions_group():
    """Promotion inspection."""


@promotions_group.command('active')
@click.option('--shop-id', type=int, required=True, help='Shop ID')
@click.option('--date', 'day', help='Date (YYYY-MM-DD), defaults to today')
@with_appcontext
def show_active_promotions(shop_id, day):
    try:
        day = parse_iso_date(day) or today()
    except ValueError:
        raise click.ClickException("date must be YYYY-MM-DD")

    running = active_promotions_for_date(shop_id, day)
    click.echo(f"Promotions active on {day.isoformat()}: {len(running)}")
    for promo in running:
        click.echo(f"  - {promo['id']}: {promo['name']} (pct={promo['percentage']}, amount={promo['amount']})")

    best = select_auto_promotion(shop_id, day)
    click.echo(f"Auto-selected: {best.name if best else 'none'}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(shops_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(promotions_group)
