# backend/services/orders.py
"""Order lifecycle: PENDING -> PROCESSING -> COMPLETED, or -> CANCELLED.

Every transition that touches quantities runs in a single transaction.
Quantity changes are conditional UPDATEs (``... WHERE stock >= q``), so a
concurrent request that drained a product or lot between the pre-check and
the write makes the whole operation roll back instead of going negative.
"""
import logging
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload

from models.order import Order, OrderItem, OrderItemStockEntry, OrderStatus
from models.product import Product
from models.shop import Shop
from models.stock import StockEntry
from models.users import User
from schemas.order import AcceptItemIn, OrderItemCreate
from utils.permissions import is_elevated
from utils.result import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.PROCESSING)
DELETABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.CANCELLED)


class StockChanged(Exception):
    """A conditional quantity update matched no row."""


@contextmanager
def _transaction(db: Session) -> Iterator[None]:
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


def _conditional_update(db: Session, stmt, message: str) -> None:
    result = db.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount != 1:
        raise StockChanged(message)


def _reserve(db: Session, product_id: int, qty: int) -> None:
    # stock -= q, reserved_stock += q
    _conditional_update(
        db,
        update(Product)
        .where(Product.id == product_id, Product.stock >= qty)
        .values(stock=Product.stock - qty, reserved_stock=Product.reserved_stock + qty),
        f"Insufficient stock for product {product_id}",
    )


def _release_reservation(db: Session, product_id: int, qty: int) -> None:
    _conditional_update(
        db,
        update(Product)
        .where(Product.id == product_id, Product.reserved_stock >= qty)
        .values(reserved_stock=Product.reserved_stock - qty),
        f"Reserved stock of product {product_id} is lower than {qty}",
    )


def _unreserve(db: Session, product_id: int, qty: int) -> None:
    # Undo _reserve: the PENDING order gives its quantity back
    _conditional_update(
        db,
        update(Product)
        .where(Product.id == product_id, Product.reserved_stock >= qty)
        .values(stock=Product.stock + qty, reserved_stock=Product.reserved_stock - qty),
        f"Reserved stock of product {product_id} is lower than {qty}",
    )


def _return_stock(db: Session, product_id: int, qty: int) -> None:
    db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + qty)
        .execution_options(synchronize_session=False)
    )


def _consume_lot(db: Session, stock_entry_id: int, qty: int) -> None:
    _conditional_update(
        db,
        update(StockEntry)
        .where(StockEntry.id == stock_entry_id, StockEntry.remaining_qty >= qty)
        .values(remaining_qty=StockEntry.remaining_qty - qty),
        f"Stock entry {stock_entry_id} no longer has {qty} units remaining",
    )


def _restore_lot(db: Session, stock_entry_id: int, qty: int) -> None:
    _conditional_update(
        db,
        update(StockEntry)
        .where(StockEntry.id == stock_entry_id, StockEntry.remaining_qty + qty <= StockEntry.quantity)
        .values(remaining_qty=StockEntry.remaining_qty + qty),
        f"Stock entry {stock_entry_id} cannot take back {qty} units",
    )


def margin_rate(price: int, unit_cost: int) -> float:
    """Margin as a percentage of the selling price; 0 for free items."""
    if price == 0:
        return 0.0
    return (price - unit_cost) / price * 100


def get_order(db: Session, order_id: int) -> Optional[Order]:
    return (
        db.query(Order)
        .options(
            selectinload(Order.items).selectinload(OrderItem.allocations),
            selectinload(Order.items).selectinload(OrderItem.product),
        )
        .filter(Order.id == order_id)
        .first()
    )


def can_delete(order: Order, actor: User) -> bool:
    if order.status not in DELETABLE_STATUSES:
        return False
    return is_elevated(actor.role) or order.created_by == actor.id


# ==========================================
# CREATE
# ==========================================


def create_order(
    db: Session, shop_id: int, items: Sequence[OrderItemCreate], created_by: Optional[int]
) -> Result[Order]:
    if db.get(Shop, shop_id) is None:
        return Err(ErrorKind.NOT_FOUND, f"Shop {shop_id} not found")

    requested: Dict[int, int] = defaultdict(int)
    for item in items:
        requested[item.product_id] += item.quantity

    products = {p.id: p for p in db.query(Product).filter(Product.id.in_(list(requested))).all()}
    for product_id in requested:
        if product_id not in products:
            return Err(ErrorKind.NOT_FOUND, f"Product {product_id} not found")

    for product_id, qty in requested.items():
        product = products[product_id]
        if product.stock < qty:
            return Err(
                ErrorKind.BAD_REQUEST,
                f"Insufficient stock for product '{product.name}': available {product.stock}, requested {qty}",
            )

    lines: List[OrderItem] = []
    for item in items:
        price = item.price if item.price is not None else products[item.product_id].price
        lines.append(OrderItem(product_id=item.product_id, quantity=item.quantity, price=price))
    total_amount = sum(line.price * line.quantity for line in lines)

    order = Order(shop_id=shop_id, created_by=created_by, status=OrderStatus.PENDING, total_amount=total_amount)
    order.items = lines

    try:
        with _transaction(db):
            db.add(order)
            for product_id, qty in requested.items():
                _reserve(db, product_id, qty)
    except StockChanged as exc:
        logger.warning("Order creation aborted: %s", exc)
        return Err(ErrorKind.BAD_REQUEST, str(exc))

    logger.info("Order %s created by user %s (total %s, %d items)", order.id, created_by, total_amount, len(lines))
    return Ok(order)


# ==========================================
# ACCEPT (PENDING -> PROCESSING)
# ==========================================


def _validate_allocations(db: Session, order: Order, items: Sequence[AcceptItemIn]) -> Result[Dict[int, StockEntry]]:
    order_items = {item.id: item for item in order.items}

    seen = set()
    for req in items:
        if req.order_item_id not in order_items:
            return Err(ErrorKind.BAD_REQUEST, f"Order item {req.order_item_id} does not belong to order {order.id}")
        if req.order_item_id in seen:
            return Err(ErrorKind.BAD_REQUEST, f"Order item {req.order_item_id} is listed more than once")
        seen.add(req.order_item_id)

    for item_id in order_items:
        if item_id not in seen:
            return Err(ErrorKind.BAD_REQUEST, f"Order item {item_id} has no allocations")

    entry_ids = {a.stock_entry_id for req in items for a in req.allocations}
    entries = {e.id: e for e in db.query(StockEntry).filter(StockEntry.id.in_(list(entry_ids))).all()}

    demand: Dict[int, int] = defaultdict(int)
    for req in items:
        item = order_items[req.order_item_id]
        allocated = sum(a.quantity for a in req.allocations)
        if allocated != item.quantity:
            return Err(
                ErrorKind.BAD_REQUEST,
                f"Order item {item.id}: allocated quantity {allocated} does not match ordered quantity {item.quantity}",
            )
        for allocation in req.allocations:
            entry = entries.get(allocation.stock_entry_id)
            if entry is None:
                return Err(ErrorKind.BAD_REQUEST, f"Stock entry {allocation.stock_entry_id} not found")
            if entry.product_id != item.product_id:
                return Err(
                    ErrorKind.BAD_REQUEST,
                    f"Stock entry {entry.id} belongs to product {entry.product_id}, "
                    f"order item {item.id} is for product {item.product_id}",
                )
            demand[entry.id] += allocation.quantity

    for entry_id, qty in demand.items():
        entry = entries[entry_id]
        if entry.remaining_qty < qty:
            return Err(
                ErrorKind.BAD_REQUEST,
                f"Stock entry {entry_id} has only {entry.remaining_qty} units remaining, {qty} requested",
            )
    return Ok(entries)


def accept_order(db: Session, order_id: int, items: Sequence[AcceptItemIn]) -> Result[Order]:
    order = get_order(db, order_id)
    if order is None:
        return Err(ErrorKind.NOT_FOUND, f"Order {order_id} not found")
    if order.status != OrderStatus.PENDING:
        return Err(ErrorKind.BAD_REQUEST, f"Only PENDING orders can be accepted, order {order_id} is {order.status.value}")

    checked = _validate_allocations(db, order, items)
    if isinstance(checked, Err):
        return checked
    entries = checked.value
    order_items = {item.id: item for item in order.items}

    try:
        with _transaction(db):
            order.status = OrderStatus.PROCESSING
            for req in items:
                item = order_items[req.order_item_id]
                total_cost = 0
                total_margin = 0
                weighted_rate = 0.0
                for allocation in req.allocations:
                    unit_cost = entries[allocation.stock_entry_id].unit_cost
                    rate = margin_rate(item.price, unit_cost)
                    margin_amount = (item.price - unit_cost) * allocation.quantity
                    item.allocations.append(
                        OrderItemStockEntry(
                            stock_entry_id=allocation.stock_entry_id,
                            quantity=allocation.quantity,
                            unit_cost=unit_cost,
                            unit_price=item.price,
                            margin_amount=margin_amount,
                            margin_rate=rate,
                        )
                    )
                    _consume_lot(db, allocation.stock_entry_id, allocation.quantity)
                    total_cost += unit_cost * allocation.quantity
                    total_margin += margin_amount
                    weighted_rate += rate * allocation.quantity

                item.total_cost = total_cost
                item.total_margin = total_margin
                # Quantity-weighted, not the plain mean of allocation rates
                item.avg_margin_rate = weighted_rate / item.quantity
                _release_reservation(db, item.product_id, item.quantity)
    except StockChanged as exc:
        logger.warning("Accepting order %s aborted: %s", order_id, exc)
        return Err(ErrorKind.BAD_REQUEST, str(exc))

    logger.info("Order %s status changed PENDING -> PROCESSING", order_id)
    return Ok(order)


# ==========================================
# CANCEL / COMPLETE
# ==========================================


def cancel_order(db: Session, order_id: int) -> Result[Order]:
    order = get_order(db, order_id)
    if order is None:
        return Err(ErrorKind.NOT_FOUND, f"Order {order_id} not found")
    previous = order.status
    if previous not in CANCELLABLE_STATUSES:
        return Err(ErrorKind.BAD_REQUEST, f"Order {order_id} is {previous.value} and can no longer be cancelled")

    try:
        with _transaction(db):
            for item in order.items:
                if previous == OrderStatus.PENDING:
                    _unreserve(db, item.product_id, item.quantity)
                else:
                    # Allocation rows and cost fields stay as history
                    _return_stock(db, item.product_id, item.quantity)
                    for allocation in item.allocations:
                        _restore_lot(db, allocation.stock_entry_id, allocation.quantity)
            order.status = OrderStatus.CANCELLED
    except StockChanged as exc:
        logger.warning("Cancelling order %s aborted: %s", order_id, exc)
        return Err(ErrorKind.BAD_REQUEST, str(exc))

    logger.info("Order %s status changed %s -> CANCELLED", order_id, previous.value)
    return Ok(order)


def complete_order(db: Session, order_id: int) -> Result[Order]:
    order = get_order(db, order_id)
    if order is None:
        return Err(ErrorKind.NOT_FOUND, f"Order {order_id} not found")
    if order.status != OrderStatus.PROCESSING:
        return Err(ErrorKind.BAD_REQUEST, f"Only PROCESSING orders can be completed, order {order_id} is {order.status.value}")

    with _transaction(db):
        order.status = OrderStatus.COMPLETED

    logger.info("Order %s status changed PROCESSING -> COMPLETED", order_id)
    return Ok(order)


# ==========================================
# DELETE
# ==========================================


def delete_order(db: Session, order_id: int, actor: User) -> Result[int]:
    order = get_order(db, order_id)
    if order is None:
        return Err(ErrorKind.NOT_FOUND, f"Order {order_id} not found")
    if order.status not in DELETABLE_STATUSES:
        return Err(ErrorKind.BAD_REQUEST, "Only PENDING or CANCELLED orders can be deleted")
    if not is_elevated(actor.role) and order.created_by != actor.id:
        return Err(ErrorKind.FORBIDDEN, "You can only delete orders you created")

    status = order.status
    try:
        with _transaction(db):
            # CANCELLED orders already gave their stock back
            if status == OrderStatus.PENDING:
                for item in order.items:
                    _unreserve(db, item.product_id, item.quantity)
            db.delete(order)
    except StockChanged as exc:
        logger.warning("Deleting order %s aborted: %s", order_id, exc)
        return Err(ErrorKind.BAD_REQUEST, str(exc))

    logger.info("Order %s (%s) deleted by user %s", order_id, status.value, actor.id)
    return Ok(order_id)
