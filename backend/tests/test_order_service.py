import pytest
from sqlalchemy import update

from models.order import Order, OrderStatus
from models.product import Product
from models.stock import StockEntry
from schemas.order import OrderItemCreate
from services import orders as order_service
from utils.exceptions import BadRequestException
from utils.result import Err, ErrorKind, Ok


def test_margin_rate():
    assert order_service.margin_rate(800, 500) == 37.5
    assert order_service.margin_rate(500, 800) == -60.0
    assert order_service.margin_rate(0, 100) == 0.0


def test_delete_order_ownership(db_session, seller, other_seller, admin, shop, stocked_product, place_order):
    product, _ = stocked_product
    order_id = place_order(shop, [(product, 5)], created_by=seller).id

    result = order_service.delete_order(db_session, order_id, other_seller)
    assert isinstance(result, Err)
    assert result.kind == ErrorKind.FORBIDDEN

    result = order_service.delete_order(db_session, order_id, seller)
    assert result == Ok(order_id)


def test_admin_deletes_any_order(db_session, seller, admin, shop, stocked_product, place_order):
    product, _ = stocked_product
    order = place_order(shop, [(product, 5)], created_by=seller)

    assert isinstance(order_service.delete_order(db_session, order.id, admin), Ok)
    db_session.expire_all()
    assert product.stock == 100
    assert product.reserved_stock == 0


def test_can_delete(db_session, seller, other_seller, admin, shop, stocked_product, place_order, accept_from):
    product, lot = stocked_product
    order = place_order(shop, [(product, 5)], created_by=seller)

    assert order_service.can_delete(order, seller) is True
    assert order_service.can_delete(order, other_seller) is False
    assert order_service.can_delete(order, admin) is True

    accept_from(order, {product.id: lot})
    assert order_service.can_delete(order, admin) is False


def test_create_order_rolls_back_when_stock_drained_concurrently(
    app, db_session, seller, shop, stocked_product, monkeypatch
):
    product, _ = stocked_product
    real_reserve = order_service._reserve

    def drain_then_reserve(db, product_id, qty):
        # Another request sells everything between the pre-check and the write
        other = app.state.db.session()
        other.execute(update(Product).where(Product.id == product_id).values(stock=0))
        other.commit()
        other.close()
        real_reserve(db, product_id, qty)

    monkeypatch.setattr(order_service, "_reserve", drain_then_reserve)

    result = order_service.create_order(
        db_session, shop.id, [OrderItemCreate(product_id=product.id, quantity=10)], created_by=seller.id
    )

    assert isinstance(result, Err)
    assert result.kind == ErrorKind.BAD_REQUEST
    db_session.expire_all()
    assert db_session.query(Order).count() == 0
    assert product.stock == 0
    assert product.reserved_stock == 0


def test_accept_rolls_back_when_lot_drained_concurrently(
    app, db_session, seller, shop, stocked_product, place_order, accept_from, monkeypatch
):
    product, lot = stocked_product
    order = place_order(shop, [(product, 10)], created_by=seller)
    real_consume = order_service._consume_lot

    def drain_then_consume(db, stock_entry_id, qty):
        other = app.state.db.session()
        other.execute(update(StockEntry).where(StockEntry.id == stock_entry_id).values(remaining_qty=3))
        other.commit()
        other.close()
        real_consume(db, stock_entry_id, qty)

    monkeypatch.setattr(order_service, "_consume_lot", drain_then_consume)

    with pytest.raises(BadRequestException):
        accept_from(order, {product.id: lot})

    db_session.expire_all()
    assert db_session.get(Order, order.id).status == OrderStatus.PENDING
    assert db_session.get(Order, order.id).items[0].allocations == []
    assert product.reserved_stock == 10
