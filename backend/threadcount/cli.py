# Overview: Flask CLI command groups for bootstrap, catalog, stock and orders.

# backend/threadcount/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to threadcount (PowerShell: $env:FLASK_APP="threadcount").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--name "Store Name"] [--email owner@store.local] [--no-sample]
#   Idempotent bootstrap: creates tables, a default account and sample products.
# - python -m flask system seed-sample --account-id 1
#   Add the sample catalog (with initial stock entries) to an account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Account management:
# - python -m flask accounts list [--all]
# - python -m flask accounts create --name "Acme Apparel" --email owner@acme.local
# - python -m flask accounts update --account-id 1 [--name ...] [--email ...] [--deactivate]
#
# Catalog:
# - python -m flask products list --account-id 1 [--category Tops] [--search tee]
# - python -m flask products add --account-id 1 --name "Tee" --description "..." --price 25.99 --stock 50
# - python -m flask products update --account-id 1 --product-id 3 --price 29.99
# - python -m flask products delete --account-id 1 --product-id 3 --yes
# - python -m flask products low-stock --account-id 1
# - python -m flask products summary --account-id 1
#
# Stock ledger:
# - python -m flask stock adjust --account-id 1 --product-id 3 --type restock --amount 20
# - python -m flask stock history --account-id 1 [--product-id 3] [--type sale] [--search tee]
#
# Orders:
# - python -m flask orders create --account-id 1 --item 3:2 --item 5:1:35.00:5
#   Item format: PRODUCT_ID:QUANTITY[:UNIT_PRICE[:DISCOUNT]]; unit price defaults to list price.
# - python -m flask orders list --account-id 1
# - python -m flask orders show --account-id 1 --order-id 4

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Account, Product
from .services import account_service, ledger_service, order_service, products_service
from .validation import NotFoundError, StoreError, TRANSACTION_TYPES, ValidationError

SAMPLE_PRODUCTS = [
    {
        "name": "Classic White Tee",
        "description": "A comfortable and stylish white t-shirt made from premium organic cotton. Perfect for everyday wear.",
        "price": "25.99",
        "stock": 50,
        "low_stock_threshold": 10,
        "category": "Tops",
        "image_url": "https://placehold.co/600x400.png",
        "ai_hint": "white t-shirt",
    },
    {
        "name": "Slim Fit Jeans - Dark Wash",
        "description": "Modern slim fit jeans crafted from stretch denim for maximum comfort and style. Features a classic five-pocket design.",
        "price": "79.50",
        "stock": 5,
        "low_stock_threshold": 5,
        "category": "Bottoms",
        "image_url": "https://placehold.co/600x400.png",
        "ai_hint": "blue jeans",
    },
    {
        "name": "Wool Blend Scarf - Charcoal",
        "description": "A luxurious and warm wool blend scarf in a versatile charcoal grey. Ideal for chilly days.",
        "price": "35.00",
        "stock": 30,
        "low_stock_threshold": 8,
        "category": "Accessories",
        "image_url": "https://placehold.co/600x400.png",
        "ai_hint": "wool scarf",
    },
]

CLI_ERRORS = (ValidationError, NotFoundError, StoreError)


def _money(value) -> str:
    return f"${value:,.2f}" if value is not None else "-"


def _open_store(account_id: int):
    try:
        return account_service.store_for_account(account_id)
    except NotFoundError:
        click.echo(f"FAIL Account ID {account_id} not found")
        return None


def _seed_sample_products(store) -> int:
    created = 0
    existing = {p["name"] for p in store.list("products")}
    for sample in SAMPLE_PRODUCTS:
        if sample["name"] in existing:
            continue
        data = {k: v for k, v in sample.items() if k != "stock"}
        products_service.create_product(store, data, initial_stock=sample["stock"])
        created += 1
    return created


def parse_item_spec(spec: str) -> dict:
    """PRODUCT_ID:QUANTITY[:UNIT_PRICE[:DISCOUNT]] -> order item dict (unit_price may be None)."""
    parts = [p.strip() for p in spec.split(":")]
    if len(parts) < 2 or len(parts) > 4 or not all(parts):
        raise click.BadParameter(
            f"'{spec}' must look like PRODUCT_ID:QUANTITY[:UNIT_PRICE[:DISCOUNT]]",
            param_hint="--item",
        )
    item = {"product_id": parts[0], "quantity": parts[1], "unit_price": None, "discount": "0"}
    if len(parts) >= 3:
        item["unit_price"] = parts[2]
    if len(parts) == 4:
        item["discount"] = parts[3]
    return item


# =============================================================================
# SYSTEM COMMANDS
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--name', 'account_name', default='Threadcount Demo Store', help='Default account name')
@click.option('--email', 'account_email', default='owner@threadcount.local', help='Default account email')
@click.option('--sample/--no-sample', default=True, help='Seed the sample catalog')
@with_appcontext
def init_system(account_name, account_email, sample):
    """
    Initialize the database, a default account and (optionally) the sample catalog.

    Safe to run repeatedly.
    """
    click.echo("START Initializing Threadcount...")

    db.create_all()
    click.echo("PASS Tables ready")

    account = db.session.query(Account).filter_by(email=account_email.strip().lower()).first()
    if not account:
        account = account_service.create_account(name=account_name, email=account_email)
        click.echo(f"PASS Created default account: {account.name} (ID: {account.id})")
    else:
        click.echo(f"PASS Using existing account: {account.name} (ID: {account.id})")

    if sample:
        store = account_service.store_for_account(account.id)
        created = _seed_sample_products(store)
        click.echo(f"PASS Sample catalog: {created} product(s) added")

    click.echo("\nDONE Threadcount initialized.")


@system_group.command('seed-sample')
@click.option('--account-id', type=int, required=True, help='Account ID')
@with_appcontext
def seed_sample(account_id):
    """Add the sample catalog to an account (skips names that already exist)."""
    store = _open_store(account_id)
    if store is None:
        return
    created = _seed_sample_products(store)
    click.echo(f"PASS Added {created} sample product(s) to account {account_id}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


# =============================================================================
# ACCOUNT COMMANDS
# =============================================================================

@click.group('accounts')
def accounts_group():
    """Account (tenant) management commands."""


@accounts_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive accounts too')
@with_appcontext
def list_accounts_cli(show_all):
    """List accounts."""
    accounts = account_service.list_accounts(include_inactive=show_all)

    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Email':<30} {'Active':<8} {'Products'}")
    click.echo("="*80)

    for account in accounts:
        product_count = db.session.query(Product).filter_by(account_id=account.id).count()
        active_str = "Yes" if account.is_active else "No"
        click.echo(f"{account.id:<5} {account.name:<30} {account.email:<30} {active_str:<8} {product_count}")

    click.echo("="*80 + "\n")


@accounts_group.command('create')
@click.option('--name', required=True, help='Account (business) name')
@click.option('--email', required=True, help='Owner email (unique)')
@with_appcontext
def create_account_cli(name, email):
    """Create a new account (tenant)."""
    try:
        account = account_service.create_account(name=name, email=email)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created account: {account.name} (ID: {account.id}, Email: {account.email})")


@accounts_group.command('update')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--name', help='New display name')
@click.option('--email', help='New email')
@click.option('--deactivate', is_flag=True, help='Mark the account inactive')
@with_appcontext
def update_account_cli(account_id, name, email, deactivate):
    """Update account settings."""
    patch = {}
    if name is not None:
        patch["name"] = name
    if email is not None:
        patch["email"] = email
    if deactivate:
        patch["is_active"] = False

    if not patch:
        click.echo("Nothing to update.")
        return

    try:
        account = account_service.update_account(account_id, patch)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return

    if account is None:
        click.echo(f"FAIL Account ID {account_id} not found")
        return

    click.echo(f"PASS Updated account: {account.name} (ID: {account.id}, Email: {account.email})")


# =============================================================================
# PRODUCT COMMANDS
# =============================================================================

@click.group('products')
def products_group():
    """Product catalog commands."""


@products_group.command('list')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--category', help='Filter by category')
@click.option('--search', help='Match name or description')
@with_appcontext
def list_products_cli(account_id, category, search):
    """List products."""
    store = _open_store(account_id)
    if store is None:
        return

    products = products_service.list_products(store, category=category, search=search)
    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<35} {'Category':<15} {'Price':>12} {'Stock':>7} {'Threshold':>10}")
    click.echo("="*100)

    for p in products:
        flag = "  LOW" if p["stock"] <= p["low_stock_threshold"] else ""
        click.echo(
            f"{p['id']:<5} {p['name'][:35]:<35} {(p['category'] or '-'):<15} "
            f"{_money(p['price']):>12} {p['stock']:>7} {p['low_stock_threshold']:>10}{flag}"
        )

    click.echo("="*100 + "\n")


@products_group.command('add')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--name', required=True)
@click.option('--description', required=True)
@click.option('--price', required=True, help='Unit price, e.g. 25.99')
@click.option('--stock', 'initial_stock', type=int, default=0, show_default=True, help='Initial stock')
@click.option('--threshold', type=int, help='Low-stock threshold')
@click.option('--category')
@click.option('--image-url')
@click.option('--ai-hint')
@with_appcontext
def add_product_cli(account_id, name, description, price, initial_stock, threshold, category, image_url, ai_hint):
    """Create a product with its initial stock entry."""
    store = _open_store(account_id)
    if store is None:
        return

    data = {"name": name, "description": description, "price": price}
    for key, value in (("low_stock_threshold", threshold), ("category", category),
                       ("image_url", image_url), ("ai_hint", ai_hint)):
        if value is not None:
            data[key] = value

    try:
        product = products_service.create_product(store, data, initial_stock=initial_stock)
    except CLI_ERRORS as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created product: {product['name']} (ID: {product['id']}, Stock: {product['stock']})")


@products_group.command('update')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--name')
@click.option('--description')
@click.option('--price')
@click.option('--threshold', type=int)
@click.option('--category')
@click.option('--image-url')
@click.option('--ai-hint')
@with_appcontext
def update_product_cli(account_id, product_id, name, description, price, threshold, category, image_url, ai_hint):
    """Update product attributes (stock changes go through 'stock adjust')."""
    store = _open_store(account_id)
    if store is None:
        return

    patch = {}
    for key, value in (("name", name), ("description", description), ("price", price),
                       ("low_stock_threshold", threshold), ("category", category),
                       ("image_url", image_url), ("ai_hint", ai_hint)):
        if value is not None:
            patch[key] = value

    try:
        product = products_service.update_product(store, product_id, patch)
    except CLI_ERRORS as e:
        click.echo(f"FAIL {e}")
        return

    if product is None:
        click.echo(f"FAIL Product ID {product_id} not found")
        return

    click.echo(f"PASS Updated product: {product['name']} (ID: {product['id']})")


@products_group.command('delete')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def delete_product_cli(account_id, product_id, yes):
    """Delete a product and its stock history."""
    store = _open_store(account_id)
    if store is None:
        return

    if not yes:
        click.confirm(f"WARN Delete product {product_id} and its stock history?", abort=True)

    try:
        deleted = products_service.delete_product(store, product_id)
    except StoreError as e:
        click.echo(f"FAIL {e}")
        return

    if not deleted:
        click.echo(f"FAIL Product ID {product_id} not found")
        return

    click.echo(f"PASS Deleted product {product_id}")


@products_group.command('low-stock')
@click.option('--account-id', type=int, required=True, help='Account ID')
@with_appcontext
def low_stock_cli(account_id):
    """List products at or below their low-stock threshold."""
    store = _open_store(account_id)
    if store is None:
        return

    products = products_service.list_low_stock(store)
    if not products:
        click.echo("No low stock items.")
        return

    click.echo(f"\n{len(products)} product(s) at or below their low stock threshold:")
    for p in products:
        click.echo(f"  {p['id']:<5} {p['name'][:40]:<40} stock={p['stock']:<6} threshold={p['low_stock_threshold']}")
    click.echo("")


@products_group.command('summary')
@click.option('--account-id', type=int, required=True, help='Account ID')
@with_appcontext
def summary_cli(account_id):
    """Catalog totals: products, stock value, low-stock count."""
    store = _open_store(account_id)
    if store is None:
        return

    summary = products_service.inventory_summary(store)
    click.echo(f"Total products:    {summary['total_products']}")
    click.echo(f"Total stock value: {_money(summary['total_stock_value'])}")
    click.echo(f"Low stock items:   {summary['low_stock_count']}")


# =============================================================================
# STOCK LEDGER COMMANDS
# =============================================================================

@click.group('stock')
def stock_group():
    """Stock ledger commands."""


@stock_group.command('adjust')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--type', 'tx_type', type=click.Choice(['restock', 'sale', 'adjustment', 'return']), required=True)
@click.option('--amount', type=int, required=True, help='Units; sign is applied from --type except for adjustment')
@click.option('--notes')
@with_appcontext
def adjust_stock_cli(account_id, product_id, tx_type, amount, notes):
    """Apply a stock change and record it in the ledger."""
    store = _open_store(account_id)
    if store is None:
        return

    try:
        product = ledger_service.adjust_stock(store, product_id, amount, tx_type, notes=notes)
    except CLI_ERRORS as e:
        click.echo(f"FAIL {e}")
        return

    if product is None:
        click.echo(f"FAIL Product ID {product_id} not found")
        return

    click.echo(f"PASS {product['name']}: stock is now {product['stock']}")


@stock_group.command('history')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--product-id', type=int, help='Filter by product')
@click.option('--type', 'tx_type', type=click.Choice(list(TRANSACTION_TYPES)), help='Filter by type')
@click.option('--search', help='Match product name or notes')
@click.option('--start', help='ISO date/time (inclusive)')
@click.option('--end', help='ISO date/time (inclusive)')
@click.option('--sort', default='timestamp', show_default=True,
              type=click.Choice(list(ledger_service.SORTABLE_COLUMNS)))
@click.option('--direction', default='desc', show_default=True, type=click.Choice(['asc', 'desc']))
@click.option('--limit', type=int, default=50, show_default=True, help='Max entries to show')
@with_appcontext
def history_cli(account_id, product_id, tx_type, search, start, end, sort, direction, limit):
    """Show the stock ledger."""
    store = _open_store(account_id)
    if store is None:
        return

    try:
        entries = ledger_service.list_transactions(
            store, product_id=product_id, tx_type=tx_type, search=search,
            start=start, end=end, sort=sort, direction=direction,
        )
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return

    if not entries:
        click.echo("No transactions found.")
        return

    click.echo("\n" + "="*120)
    click.echo(f"{'ID':<6} {'When':<21} {'Product':<30} {'Type':<11} {'Change':>7} {'Before':>7} {'After':>7} {'Value':>12}  Notes")
    click.echo("="*120)

    for tx in entries[:limit]:
        click.echo(
            f"{tx['id']:<6} {tx['timestamp']:<21} {tx['product_name'][:30]:<30} {tx['type']:<11} "
            f"{tx['quantity_change']:>+7} {tx['stock_before']:>7} {tx['stock_after']:>7} "
            f"{_money(tx['total_value']):>12}  {(tx['notes'] or '')[:30]}"
        )

    click.echo("="*120 + "\n")


# =============================================================================
# ORDER COMMANDS
# =============================================================================

@click.group('orders')
def orders_group():
    """Order commands."""


def _echo_order(order: dict) -> None:
    click.echo(f"\nOrder {order['order_number']}  ({order['status']}, {order['order_date']})")
    click.echo("-"*90)
    click.echo(f"{'Product':<35} {'Qty':>5} {'Unit':>12} {'Disc/unit':>12} {'Line total':>14}")
    for item in order["items"]:
        click.echo(
            f"{item['product_name'][:35]:<35} {item['quantity']:>5} {_money(item['unit_price']):>12} "
            f"{_money(item['discount']):>12} {_money(item['line_total']):>14}"
        )
    click.echo("-"*90)
    click.echo(f"{'Subtotal':>70} {_money(order['subtotal']):>14}")
    click.echo(f"{'Discount':>70} {_money(order['total_discount']):>14}")
    click.echo(f"{'Grand total':>70} {_money(order['grand_total']):>14}")
    if order.get("notes"):
        click.echo(f"Notes: {order['notes']}")
    click.echo("")


@orders_group.command('create')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--item', 'item_specs', multiple=True, required=True,
              help='PRODUCT_ID:QUANTITY[:UNIT_PRICE[:DISCOUNT]] (repeatable)')
@click.option('--notes')
@with_appcontext
def create_order_cli(account_id, item_specs, notes):
    """Create a completed order and decrement stock for every line."""
    store = _open_store(account_id)
    if store is None:
        return

    items = [parse_item_spec(spec) for spec in item_specs]

    try:
        # unit price defaults to the product's current list price
        for item in items:
            if item["unit_price"] is None:
                product = store.get("products", int(item["product_id"]))
                if product is None:
                    raise NotFoundError(f"Product {item['product_id']} not found")
                item["unit_price"] = product["price"]
        order = order_service.create_order(store, items, notes=notes)
    except (ValueError, NotFoundError, StoreError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created order {order['order_number']}")
    _echo_order(order)


@orders_group.command('list')
@click.option('--account-id', type=int, required=True, help='Account ID')
@with_appcontext
def list_orders_cli(account_id):
    """List orders, newest first."""
    store = _open_store(account_id)
    if store is None:
        return

    orders = order_service.list_orders(store)
    if not orders:
        click.echo("No orders found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Number':<12} {'Date':<22} {'Status':<11} {'Items':>6} {'Grand total':>14}")
    click.echo("="*80)
    for o in orders:
        click.echo(
            f"{o['id']:<5} {o['order_number']:<12} {o['order_date']:<22} {o['status']:<11} "
            f"{len(o['items']):>6} {_money(o['grand_total']):>14}"
        )
    click.echo("="*80 + "\n")


@orders_group.command('show')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--order-id', type=int, required=True, help='Order ID')
@with_appcontext
def show_order_cli(account_id, order_id):
    """Print one order as an invoice."""
    store = _open_store(account_id)
    if store is None:
        return

    order = order_service.get_order(store, order_id)
    if order is None:
        click.echo(f"FAIL Order ID {order_id} not found")
        return
    _echo_order(order)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(products_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(orders_group)
