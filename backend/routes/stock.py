# backend/routes/stock.py
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload

from database import get_db
from models.order import OrderItemStockEntry
from models.product import Product
from models.stock import StockEntry
from models.supplier import Supplier
from models.users import User
from schemas.common import parse_query
from schemas.stock import AvailableLotOut, StockEntryCreate, StockEntryOut, StockEntryQuery
from utils.audit import client_ip, write_log
from utils.db_helpers import paginate
from utils.exceptions import BadRequestException, NotFoundException
from utils.responses import created_response, paginated, success_response
from utils.tokenJWT import require_permission

logger = logging.getLogger(__name__)

# Purchases are managed by whoever manages suppliers
router = APIRouter(prefix="/stock-entries", tags=["Stock entries"])


def _get_entry(db: Session, entry_id: int) -> StockEntry:
    entry = (
        db.query(StockEntry)
        .options(joinedload(StockEntry.product), joinedload(StockEntry.supplier))
        .filter(StockEntry.id == entry_id)
        .first()
    )
    if entry is None:
        raise NotFoundException("Stock entry not found")
    return entry


# =========================
# STOCK ENTRY LIST
# =========================
@router.get("")
def list_stock_entries(
    current_user: User = Depends(require_permission({"supplier": ["read"]})),
    params: StockEntryQuery = Depends(parse_query(StockEntryQuery)),
    db: Session = Depends(get_db),
):
    query = db.query(StockEntry).options(joinedload(StockEntry.product), joinedload(StockEntry.supplier))

    if params.product_id is not None:
        query = query.filter(StockEntry.product_id == params.product_id)
    if params.supplier_id is not None:
        query = query.filter(StockEntry.supplier_id == params.supplier_id)
    if params.has_stock is True:
        query = query.filter(StockEntry.remaining_qty > 0)
    elif params.has_stock is False:
        query = query.filter(StockEntry.remaining_qty == 0)
    if params.search:
        query = query.join(Product, StockEntry.product_id == Product.id).filter(
            Product.name.ilike(f"%{params.search}%")
        )

    # Newest purchase first
    query = query.order_by(StockEntry.purchase_date.desc(), StockEntry.id.desc())
    items, total = paginate(query, params)
    return paginated([StockEntryOut.model_validate(e) for e in items], params.page, params.limit, total)


# =========================
# AVAILABLE LOTS (FIFO)
# =========================
@router.get("/product/{product_id}")
def list_available_lots(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"supplier": ["read"]})),
):
    """Lots of a product that still have units left, oldest purchase first."""
    if db.get(Product, product_id) is None:
        raise NotFoundException("Product not found")

    lots = (
        db.query(StockEntry)
        .options(joinedload(StockEntry.supplier))
        .filter(StockEntry.product_id == product_id, StockEntry.remaining_qty > 0)
        .order_by(StockEntry.purchase_date.asc(), StockEntry.id.asc())
        .all()
    )
    return success_response([AvailableLotOut.model_validate(lot) for lot in lots])


@router.get("/{entry_id}")
def get_stock_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"supplier": ["read"]})),
):
    return success_response(StockEntryOut.model_validate(_get_entry(db, entry_id)))


# =========================
# REGISTER PURCHASE
# =========================
@router.post("")
def create_stock_entry(
    payload: StockEntryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"supplier": ["create"]})),
):
    if db.get(Product, payload.product_id) is None:
        raise NotFoundException(f"Product {payload.product_id} not found")
    if db.get(Supplier, payload.supplier_id) is None:
        raise NotFoundException(f"Supplier {payload.supplier_id} not found")

    entry = StockEntry(
        product_id=payload.product_id,
        supplier_id=payload.supplier_id,
        quantity=payload.quantity,
        unit_cost=payload.unit_cost,
        total_cost=payload.quantity * payload.unit_cost,
        remaining_qty=payload.quantity,
        purchase_date=payload.purchase_date or datetime.utcnow(),
        notes=payload.notes,
    )
    try:
        db.add(entry)
        db.execute(
            update(Product)
            .where(Product.id == payload.product_id)
            .values(stock=Product.stock + payload.quantity)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Stock entry %s: +%s of product %s", entry.id, entry.quantity, entry.product_id)
    write_log(
        db, user_id=current_user.id, action="STOCK_ENTRY_CREATE", resource="stock_entries",
        ip=client_ip(request),
        meta={"id": entry.id, "product_id": payload.product_id, "quantity": payload.quantity},
    )
    request.app.state.cache.invalidate_all()
    return created_response(StockEntryOut.model_validate(_get_entry(db, entry.id)), "Stock entry created successfully")


# =========================
# DELETE PURCHASE
# =========================
@router.delete("/{entry_id}")
def delete_stock_entry(
    entry_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"supplier": ["delete"]})),
):
    entry = _get_entry(db, entry_id)

    allocations = (
        db.query(func.count(OrderItemStockEntry.id)).filter(OrderItemStockEntry.stock_entry_id == entry.id).scalar()
    )
    if allocations:
        raise BadRequestException("Stock entry is allocated to orders and cannot be deleted")
    if entry.remaining_qty != entry.quantity:
        raise BadRequestException("Stock entry has been partially used and cannot be deleted")

    product_id, quantity = entry.product_id, entry.quantity
    try:
        result = db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise BadRequestException(f"Product {product_id} no longer holds {quantity} units in stock")
        db.delete(entry)
        db.commit()
    except Exception:
        db.rollback()
        raise

    write_log(
        db, user_id=current_user.id, action="STOCK_ENTRY_DELETE", resource="stock_entries",
        ip=client_ip(request), meta={"id": entry_id, "product_id": product_id, "quantity": quantity},
    )
    request.app.state.cache.invalidate_all()
    return success_response(None, "Stock entry deleted successfully")
