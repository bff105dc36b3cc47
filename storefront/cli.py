# storefront/cli.py
from decimal import Decimal

import click
from sqlalchemy import select
from werkzeug.security import generate_password_hash

from .extensions import db
from .model import Product, User
from .services.role_service import sync_permissions
from .utils.dates import utcnow

SAMPLE_PRODUCTS = [
    {"title": "Sample Product 1", "price": Decimal("20.99"), "stock_quantity": 100},
    {"title": "Sample Product 2", "price": Decimal("15.99"), "stock_quantity": 150},
    {"title": "Sample Product 3", "price": Decimal("10.50"), "stock_quantity": 200},
    {"title": "Sample Product 4", "price": Decimal("12.75"), "stock_quantity": 50},
    {"title": "Sample Product 5", "price": Decimal("8.99"), "stock_quantity": 120},
    {"title": "Gift Card", "price": Decimal("25.00"), "stock_quantity": None},
]


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
def create_admin(email, password, name):
    email = email.strip().lower()
    if db.session.execute(select(User).where(User.email == email)).scalar_one_or_none():
        click.echo("Email already exists"); return
    u = User(email=email, name=name, password_hash=generate_password_hash(password), role="admin",
             email_verified_at=utcnow())
    db.session.add(u); db.session.commit()
    click.echo(f"Admin created: {u.id} {u.email}")


@click.command("seed-products")
def seed_products():
    for data in SAMPLE_PRODUCTS:
        db.session.add(Product(**data))
    db.session.commit()
    click.echo(f"{len(SAMPLE_PRODUCTS)} sample products have been added to the database successfully.")


@click.command("sync-permissions")
def sync_permissions_cmd():
    created = sync_permissions()
    click.echo(f"Permissions synced ({created} new).")


def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(seed_products)
    app.cli.add_command(sync_permissions_cmd)
