# backend/routes/suppliers.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from models.stock import StockEntry
from models.supplier import Supplier
from models.users import User
from schemas.common import parse_query
from schemas.supplier import SupplierCreate, SupplierOut, SupplierQuery, SupplierUpdate
from utils.audit import client_ip, write_log
from utils.db_helpers import apply_sort, commit_or_conflict, paginate
from utils.exceptions import BadRequestException, NotFoundException
from utils.responses import created_response, paginated, success_response
from utils.tokenJWT import require_permission

router = APIRouter(prefix="/suppliers", tags=["Suppliers"])

SORT_COLUMNS = {
    "id": Supplier.id,
    "name": Supplier.name,
    "createdAt": Supplier.created_at,
    "updatedAt": Supplier.updated_at,
}


def _get_supplier(db: Session, supplier_id: int) -> Supplier:
    supplier = db.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundException("Supplier not found")
    return supplier


@router.get("")
def list_suppliers(
    current_user: User = Depends(require_permission({"supplier": ["read"]})),
    params: SupplierQuery = Depends(parse_query(SupplierQuery)),
    db: Session = Depends(get_db),
):
    query = db.query(Supplier)
    if params.search:
        pattern = f"%{params.search}%"
        query = query.filter(
            or_(Supplier.name.ilike(pattern), Supplier.email.ilike(pattern), Supplier.phone.ilike(pattern))
        )
    query = apply_sort(query, SORT_COLUMNS, params.sort_by, params.sort_order)
    items, total = paginate(query, params)
    return paginated([SupplierOut.model_validate(s) for s in items], params.page, params.limit, total)


@router.get("/{supplier_id}")
def get_supplier(
    supplier_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"supplier": ["read"]})),
):
    return success_response(SupplierOut.model_validate(_get_supplier(db, supplier_id)))


@router.post("")
def create_supplier(
    payload: SupplierCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"supplier": ["create"]})),
):
    supplier = Supplier(**payload.model_dump())
    db.add(supplier)
    commit_or_conflict(db, f"Supplier '{payload.name}' already exists")
    db.refresh(supplier)

    write_log(
        db, user_id=current_user.id, action="SUPPLIER_CREATE", resource="suppliers",
        ip=client_ip(request), meta={"id": supplier.id, "name": supplier.name},
    )
    return created_response(SupplierOut.model_validate(supplier), "Supplier created successfully")


@router.api_route("/{supplier_id}", methods=["PUT", "PATCH"])
def update_supplier(
    supplier_id: int,
    payload: SupplierUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"supplier": ["update"]})),
):
    supplier = _get_supplier(db, supplier_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name", supplier.name) is None:
        raise BadRequestException("name cannot be null")

    for key, value in changes.items():
        setattr(supplier, key, value)
    commit_or_conflict(db, f"Supplier '{supplier.name}' already exists")
    db.refresh(supplier)

    write_log(
        db, user_id=current_user.id, action="SUPPLIER_UPDATE", resource="suppliers",
        ip=client_ip(request), meta={"id": supplier.id, "fields": sorted(changes)},
    )
    return success_response(SupplierOut.model_validate(supplier), "Supplier updated successfully")


@router.delete("/{supplier_id}")
def delete_supplier(
    supplier_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"supplier": ["delete"]})),
):
    supplier = _get_supplier(db, supplier_id)
    if db.query(StockEntry.id).filter(StockEntry.supplier_id == supplier.id).first() is not None:
        raise BadRequestException("Supplier has stock entries and cannot be deleted")

    db.delete(supplier)
    db.commit()

    write_log(
        db, user_id=current_user.id, action="SUPPLIER_DELETE", resource="suppliers",
        ip=client_ip(request), meta={"id": supplier_id},
    )
    return success_response(None, "Supplier deleted successfully")
