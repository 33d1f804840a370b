"""
Pytest fixtures for the shop inventory API.

Every test gets its own SQLite file, a fresh app instance and a TestClient
running the app lifespan. Catalogue rows are inserted straight through the
ORM so tests only go through HTTP for the behaviour they exercise.
"""
from datetime import datetime, timedelta

import fakeredis
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from models.category import ProductCategory
from models.product import Product
from models.shop import Shop
from models.stock import StockEntry
from models.supplier import Supplier
from models.users import User
from schemas.order import AcceptItemIn, AllocationIn, OrderItemCreate
from services import orders as order_service
from utils.dashboard_cache import CacheManager
from utils.hashing import get_password_hash
from utils.result import unwrap
from utils.slugify import slugify
from utils.tokenJWT import create_access_token

PASSWORD = "password123"
# bcrypt is slow on purpose, hash once per run
PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture(scope='function')
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite database."""
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        SECRET_KEY="test-secret",
        LOG_LEVEL="WARNING",
        DASHBOARD_CACHE_TTL_SECONDS=3600,
    )


@pytest.fixture(scope='function')
def redis_server():
    """In-memory Redis shared by every app instance of one test."""
    return fakeredis.FakeServer()


@pytest.fixture(scope='function')
def make_cache(redis_server, settings):
    def _make(ttl=None):
        client = fakeredis.FakeRedis(server=redis_server, decode_responses=True)
        return CacheManager(client, ttl=ttl or settings.DASHBOARD_CACHE_TTL_SECONDS)

    return _make


@pytest.fixture(scope='function')
def app(settings, make_cache):
    return create_app(settings, cache=make_cache())


@pytest.fixture(scope='function')
def client(app):
    """Test client; entering it runs the lifespan (engine + tables)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope='function')
def db_session(client, app):
    session = app.state.db.session()
    yield session
    session.close()


# ---- users ----

@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory for accounts that signed up a day ago."""

    def _make(email, role="user", name=None, banned=False):
        user = User(
            name=name or email.split("@")[0].title(),
            email=email,
            password_hash=PASSWORD_HASH,
            role=role,
            banned=banned,
            created_at=datetime.utcnow() - timedelta(days=1),
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user("admin@example.com", role="admin", name="Admin")


@pytest.fixture(scope='function')
def seller(make_user):
    return make_user("sally@example.com", role="sales", name="Sally Sales")


@pytest.fixture(scope='function')
def other_seller(make_user):
    return make_user("sam@example.com", role="sales", name="Sam Seller")


@pytest.fixture(scope='function')
def customer(make_user):
    return make_user("uma@example.com", role="user", name="Uma User")


@pytest.fixture(scope='function')
def headers_for(settings):
    def _headers(user):
        token = create_access_token({"sub": user.email}, settings)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture(scope='function')
def admin_headers(admin, headers_for):
    return headers_for(admin)


@pytest.fixture(scope='function')
def seller_headers(seller, headers_for):
    return headers_for(seller)


@pytest.fixture(scope='function')
def customer_headers(customer, headers_for):
    return headers_for(customer)


# ---- catalogue ----

@pytest.fixture(scope='function')
def category(db_session):
    category = ProductCategory(name="Beverages")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def shop(db_session):
    shop = Shop(name="Downtown")
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Acme Wholesale", email="orders@acme.example", phone="+1 555 0100")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(name, price=0, stock=0, category=None):
        product = Product(
            name=name,
            slug=slugify(name),
            price=price,
            stock=stock,
            reserved_stock=0,
            category_id=category.id if category else None,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def add_lot(db_session, supplier):
    """Register a purchased lot and add its units to the product's stock."""

    def _add(product, quantity, unit_cost, purchase_date=None):
        entry = StockEntry(
            product_id=product.id,
            supplier_id=supplier.id,
            quantity=quantity,
            unit_cost=unit_cost,
            total_cost=quantity * unit_cost,
            remaining_qty=quantity,
            purchase_date=purchase_date or datetime.utcnow(),
        )
        db_session.add(entry)
        product.stock += quantity
        db_session.commit()
        return entry

    return _add


@pytest.fixture(scope='function')
def stocked_product(make_product, add_lot, category):
    """Price 800, one lot of 100 units bought at 500."""
    product = make_product("Orange Juice 1L", price=800, category=category)
    lot = add_lot(product, 100, 500)
    return product, lot


@pytest.fixture(scope='function')
def place_order(db_session):
    """Create an order through the service layer, bypassing HTTP."""

    def _place(shop, lines, created_by):
        items = [OrderItemCreate(product_id=product.id, quantity=qty) for product, qty in lines]
        return unwrap(order_service.create_order(db_session, shop.id, items, created_by=created_by.id))

    return _place


@pytest.fixture(scope='function')
def accept_from(db_session):
    """Accept an order, allocating each item to the single lot given per product."""

    def _accept(order, lots):
        items = [
            AcceptItemIn(
                order_item_id=item.id,
                allocations=[AllocationIn(stock_entry_id=lots[item.product_id].id, quantity=item.quantity)],
            )
            for item in order.items
        ]
        return unwrap(order_service.accept_order(db_session, order.id, items))

    return _accept
