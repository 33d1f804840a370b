# backend/routes/orders.py
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session, joinedload, selectinload

from database import get_db
from models.order import Order, OrderItem
from models.users import User
from schemas.common import parse_query
from schemas.order import OrderAccept, OrderCreate, OrderDetailOut, OrderOut, OrderQuery
from services import orders as order_service
from utils.audit import client_ip, write_log
from utils.db_helpers import apply_sort, paginate
from utils.exceptions import NotFoundException
from utils.responses import created_response, paginated, success_response
from utils.result import Err, unwrap
from utils.tokenJWT import require_permission

router = APIRouter(prefix="/orders", tags=["Orders"])

SORT_COLUMNS = {
    "id": Order.id,
    "status": Order.status,
    "totalAmount": Order.total_amount,
    "createdAt": Order.created_at,
    "updatedAt": Order.updated_at,
}


def _load(db: Session, order_id: int) -> Order:
    order = (
        db.query(Order)
        .options(
            joinedload(Order.shop),
            joinedload(Order.creator),
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.items).selectinload(OrderItem.allocations),
        )
        .filter(Order.id == order_id)
        .first()
    )
    if order is None:
        raise NotFoundException("Order not found")
    return order


def _audit(db: Session, request: Request, user: User, action: str, order_id: Optional[int], result) -> None:
    status = "FAIL" if isinstance(result, Err) else "SUCCESS"
    meta = {"order_id": order_id}
    if isinstance(result, Err):
        meta["reason"] = result.detail
    write_log(db, user_id=user.id, action=action, resource="orders", status=status, ip=client_ip(request), meta=meta)


# =========================
# ORDER LIST
# =========================
@router.get("")
def list_orders(
    current_user: User = Depends(require_permission({"order": ["read"]})),
    params: OrderQuery = Depends(parse_query(OrderQuery)),
    db: Session = Depends(get_db),
):
    query = db.query(Order).options(
        joinedload(Order.shop),
        joinedload(Order.creator),
        selectinload(Order.items).selectinload(OrderItem.product),
    )
    if params.status is not None:
        query = query.filter(Order.status == params.status)
    if params.shop_id is not None:
        query = query.filter(Order.shop_id == params.shop_id)

    query = apply_sort(query, SORT_COLUMNS, params.sort_by, params.sort_order)
    items, total = paginate(query, params)
    return paginated([OrderOut.model_validate(o) for o in items], params.page, params.limit, total)


@router.get("/{order_id}")
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"order": ["read"]})),
):
    order = _load(db, order_id)
    out = OrderDetailOut.model_validate(order)
    out.can_delete = order_service.can_delete(order, current_user)
    return success_response(out)


# =========================
# CREATE ORDER
# =========================
@router.post("")
def create_order(
    payload: OrderCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"order": ["create"]})),
):
    result = order_service.create_order(db, payload.shop_id, payload.items, created_by=current_user.id)
    order_id = None if isinstance(result, Err) else result.value.id
    _audit(db, request, current_user, "ORDER_CREATE", order_id, result)
    order = unwrap(result)

    request.app.state.cache.invalidate_all()
    return created_response(OrderOut.model_validate(_load(db, order.id)), "Order created successfully")


# =========================
# STATUS TRANSITIONS
# =========================
@router.put("/{order_id}/accept")
def accept_order(
    order_id: int,
    payload: OrderAccept,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"order": ["update"]})),
):
    result = order_service.accept_order(db, order_id, payload.items)
    _audit(db, request, current_user, "ORDER_ACCEPT", order_id, result)
    unwrap(result)

    request.app.state.cache.invalidate_all()
    return success_response(OrderOut.model_validate(_load(db, order_id)), "Order accepted")


@router.put("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"order": ["update"]})),
):
    result = order_service.cancel_order(db, order_id)
    _audit(db, request, current_user, "ORDER_CANCEL", order_id, result)
    unwrap(result)

    request.app.state.cache.invalidate_all()
    return success_response(OrderOut.model_validate(_load(db, order_id)), "Order cancelled")


@router.put("/{order_id}/complete")
def complete_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"order": ["update"]})),
):
    result = order_service.complete_order(db, order_id)
    _audit(db, request, current_user, "ORDER_COMPLETE", order_id, result)
    unwrap(result)

    request.app.state.cache.invalidate_all()
    return success_response(OrderOut.model_validate(_load(db, order_id)), "Order completed")


# =========================
# DELETE ORDER
# =========================
@router.delete("/{order_id}")
def delete_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"order": ["delete"]})),
):
    result = order_service.delete_order(db, order_id, current_user)
    _audit(db, request, current_user, "ORDER_DELETE", order_id, result)
    unwrap(result)

    request.app.state.cache.invalidate_all()
    return success_response(None, "Order deleted successfully")
