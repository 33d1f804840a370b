"""Fill an empty database with demo accounts, catalogue, purchases and orders.

Usage (from backend/): python seed.py
"""
import logging
import random
from datetime import datetime, timedelta

from config import get_settings
from database import Database
from models.category import ProductCategory
from models.order import Order
from models.product import Product
from models.shop import Shop
from models.stock import StockEntry
from models.supplier import Supplier
from models.users import User
from schemas.order import AcceptItemIn, AllocationIn, OrderItemCreate
from services import orders as order_service
from utils.hashing import get_password_hash
from utils.logging_setup import setup_logging
from utils.result import unwrap
from utils.slugify import slugify

logger = logging.getLogger("seed")

# Configuration
DEMO_PASSWORD = "password123"
ORDER_COUNT = 12
PURCHASE_DATE_START = datetime.utcnow() - timedelta(days=90)

USERS = [
    ("Admin", "admin@example.com", "admin"),
    ("Sally Sales", "sales@example.com", "sales"),
    ("Sam Seller", "sales2@example.com", "sales"),
    ("Uma User", "user@example.com", "user"),
]
CATEGORIES = ["Beverages", "Snacks", "Household", "Personal care"]
SHOPS = ["Downtown", "Riverside", "Airport"]
SUPPLIERS = [
    ("Acme Wholesale", "orders@acme.example", "+1 555 0100"),
    ("FreshFoods Ltd", "sales@freshfoods.example", "+1 555 0101"),
]
# name, category, price (minor units)
PRODUCTS = [
    ("Mineral Water 1.5L", "Beverages", 300),
    ("Orange Juice 1L", "Beverages", 650),
    ("Potato Chips 150g", "Snacks", 800),
    ("Chocolate Bar", "Snacks", 450),
    ("Dish Soap 500ml", "Household", 1200),
    ("Paper Towels x4", "Household", 1500),
    ("Toothpaste 75ml", "Personal care", 900),
    ("Shampoo 400ml", "Personal care", 2200),
]


def seed_catalogue(db) -> None:
    if db.query(User).first() is not None:
        logger.info("Database already has users, skipping catalogue seed")
        return

    for name, email, role in USERS:
        db.add(User(name=name, email=email, password_hash=get_password_hash(DEMO_PASSWORD), role=role))

    categories = {name: ProductCategory(name=name) for name in CATEGORIES}
    db.add_all(categories.values())
    db.add_all(Shop(name=name) for name in SHOPS)
    suppliers = [Supplier(name=n, email=e, phone=p) for n, e, p in SUPPLIERS]
    db.add_all(suppliers)

    products = []
    for name, category, price in PRODUCTS:
        product = Product(name=name, slug=slugify(name), price=price, stock=0, reserved_stock=0)
        product.category = categories[category]
        products.append(product)
    db.add_all(products)
    db.flush()

    # Two lots per product at different costs so margins differ between lots
    for product in products:
        for lot in range(2):
            quantity = random.randint(20, 60)
            unit_cost = int(product.price * random.uniform(0.5, 0.8))
            db.add(
                StockEntry(
                    product_id=product.id,
                    supplier_id=random.choice(suppliers).id,
                    quantity=quantity,
                    unit_cost=unit_cost,
                    total_cost=quantity * unit_cost,
                    remaining_qty=quantity,
                    purchase_date=PURCHASE_DATE_START + timedelta(days=30 * lot),
                )
            )
            product.stock += quantity

    db.commit()
    logger.info("Seeded %d users, %d products, %d stock entries", len(USERS), len(products), len(products) * 2)


def _fifo_allocations(db, order) -> list:
    """Split every order item across the oldest lots that still have units."""
    items = []
    for item in order.items:
        needed = item.quantity
        allocations = []
        lots = (
            db.query(StockEntry)
            .filter(StockEntry.product_id == item.product_id, StockEntry.remaining_qty > 0)
            .order_by(StockEntry.purchase_date.asc(), StockEntry.id.asc())
            .all()
        )
        for lot in lots:
            if needed == 0:
                break
            take = min(needed, lot.remaining_qty)
            allocations.append(AllocationIn(stock_entry_id=lot.id, quantity=take))
            needed -= take
        items.append(AcceptItemIn(order_item_id=item.id, allocations=allocations))
    return items


def seed_orders(db) -> None:
    if db.query(Order.id).first() is not None:
        logger.info("Database already has orders, skipping order seed")
        return

    sellers = db.query(User).filter(User.role == "sales").all()
    shops = db.query(Shop).all()
    products = db.query(Product).all()

    for n in range(ORDER_COUNT):
        available = [p for p in products if p.stock > 0]
        if not available:
            logger.warning("Ran out of stock after %d orders", n)
            break
        lines = [
            OrderItemCreate(product_id=p.id, quantity=min(random.randint(1, 5), p.stock))
            for p in random.sample(available, k=min(len(available), random.randint(1, 3)))
        ]
        order = unwrap(
            order_service.create_order(db, random.choice(shops).id, lines, created_by=random.choice(sellers).id)
        )

        # Mix of lifecycle states: some stay PENDING, some are cancelled, most get fulfilled
        if n % 4 == 0:
            continue
        unwrap(order_service.accept_order(db, order.id, _fifo_allocations(db, order)))
        if n % 4 == 1:
            unwrap(order_service.cancel_order(db, order.id))
        else:
            unwrap(order_service.complete_order(db, order.id))

    logger.info("Seeded %d orders", ORDER_COUNT)


def main() -> None:
    settings = get_settings()
    setup_logging(settings)
    database = Database(settings.DATABASE_URL)
    database.create_all()

    db = database.session()
    try:
        seed_catalogue(db)
        seed_orders(db)
    finally:
        db.close()
        database.dispose()


if __name__ == "__main__":
    main()
