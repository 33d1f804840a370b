# backend/routes/shops.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from models.order import Order
from models.shop import Shop
from models.users import User
from schemas.common import parse_query
from schemas.shop import ShopCreate, ShopOut, ShopQuery, ShopUpdate
from utils.audit import client_ip, write_log
from utils.db_helpers import apply_sort, commit_or_conflict, paginate
from utils.exceptions import BadRequestException, NotFoundException
from utils.responses import created_response, paginated, success_response
from utils.tokenJWT import require_permission

router = APIRouter(prefix="/shops", tags=["Shops"])

SORT_COLUMNS = {
    "id": Shop.id,
    "name": Shop.name,
    "createdAt": Shop.created_at,
    "updatedAt": Shop.updated_at,
}


def _get_shop(db: Session, shop_id: int) -> Shop:
    shop = db.get(Shop, shop_id)
    if shop is None:
        raise NotFoundException("Shop not found")
    return shop


@router.get("")
def list_shops(
    current_user: User = Depends(require_permission({"shop": ["read"]})),
    params: ShopQuery = Depends(parse_query(ShopQuery)),
    db: Session = Depends(get_db),
):
    query = db.query(Shop)
    if params.search:
        query = query.filter(Shop.name.ilike(f"%{params.search}%"))
    query = apply_sort(query, SORT_COLUMNS, params.sort_by, params.sort_order)
    items, total = paginate(query, params)
    return paginated([ShopOut.model_validate(s) for s in items], params.page, params.limit, total)


@router.get("/{shop_id}")
def get_shop(
    shop_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"shop": ["read"]})),
):
    return success_response(ShopOut.model_validate(_get_shop(db, shop_id)))


@router.post("")
def create_shop(
    payload: ShopCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"shop": ["create"]})),
):
    shop = Shop(name=payload.name)
    db.add(shop)
    commit_or_conflict(db, f"Shop '{payload.name}' already exists")
    db.refresh(shop)

    write_log(
        db, user_id=current_user.id, action="SHOP_CREATE", resource="shops",
        ip=client_ip(request), meta={"id": shop.id, "name": shop.name},
    )
    request.app.state.cache.invalidate_all()
    return created_response(ShopOut.model_validate(shop), "Shop created successfully")


@router.api_route("/{shop_id}", methods=["PUT", "PATCH"])
def update_shop(
    shop_id: int,
    payload: ShopUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"shop": ["update"]})),
):
    shop = _get_shop(db, shop_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name", shop.name) is None:
        raise BadRequestException("name cannot be null")

    for key, value in changes.items():
        setattr(shop, key, value)
    commit_or_conflict(db, f"Shop '{shop.name}' already exists")
    db.refresh(shop)

    write_log(
        db, user_id=current_user.id, action="SHOP_UPDATE", resource="shops",
        ip=client_ip(request), meta={"id": shop.id},
    )
    request.app.state.cache.invalidate_all()
    return success_response(ShopOut.model_validate(shop), "Shop updated successfully")


@router.delete("/{shop_id}")
def delete_shop(
    shop_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"shop": ["delete"]})),
):
    shop = _get_shop(db, shop_id)
    if db.query(Order.id).filter(Order.shop_id == shop.id).first() is not None:
        raise BadRequestException("Shop has orders and cannot be deleted")

    db.delete(shop)
    db.commit()

    write_log(
        db, user_id=current_user.id, action="SHOP_DELETE", resource="shops",
        ip=client_ip(request), meta={"id": shop_id},
    )
    request.app.state.cache.invalidate_all()
    return success_response(None, "Shop deleted successfully")
