# backend/routes/categories.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from models.category import ProductCategory
from models.product import Product
from models.users import User
from schemas.category import CategoryCreate, CategoryOut, CategoryQuery, CategoryUpdate
from schemas.common import parse_query
from utils.audit import client_ip, write_log
from utils.db_helpers import apply_sort, commit_or_conflict, paginate
from utils.exceptions import BadRequestException, NotFoundException
from utils.responses import created_response, paginated, success_response
from utils.tokenJWT import require_permission

router = APIRouter(prefix="/categories", tags=["Categories"])

SORT_COLUMNS = {
    "id": ProductCategory.id,
    "name": ProductCategory.name,
    "createdAt": ProductCategory.created_at,
    "updatedAt": ProductCategory.updated_at,
}


def _get_category(db: Session, category_id: int) -> ProductCategory:
    category = db.get(ProductCategory, category_id)
    if category is None:
        raise NotFoundException("Category not found")
    return category


def _product_count(db: Session, category_id: int) -> int:
    return db.query(func.count(Product.id)).filter(Product.category_id == category_id).scalar() or 0


@router.get("")
def list_categories(
    current_user: User = Depends(require_permission({"category": ["read"]})),
    params: CategoryQuery = Depends(parse_query(CategoryQuery)),
    db: Session = Depends(get_db),
):
    query = db.query(ProductCategory)
    if params.search:
        query = query.filter(ProductCategory.name.ilike(f"%{params.search}%"))
    query = apply_sort(query, SORT_COLUMNS, params.sort_by, params.sort_order)
    items, total = paginate(query, params)

    counts = {}
    if params.include_count and items:
        counts = dict(
            db.query(Product.category_id, func.count(Product.id))
            .filter(Product.category_id.in_([c.id for c in items]))
            .group_by(Product.category_id)
            .all()
        )

    data = []
    for category in items:
        out = CategoryOut.model_validate(category)
        if params.include_count:
            out.product_count = counts.get(category.id, 0)
        data.append(out)
    return paginated(data, params.page, params.limit, total)


@router.get("/{category_id}")
def get_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"category": ["read"]})),
):
    category = _get_category(db, category_id)
    out = CategoryOut.model_validate(category)
    out.product_count = _product_count(db, category.id)
    return success_response(out)


@router.post("")
def create_category(
    payload: CategoryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"category": ["create"]})),
):
    category = ProductCategory(name=payload.name)
    db.add(category)
    commit_or_conflict(db, f"Category '{payload.name}' already exists")
    db.refresh(category)

    write_log(
        db, user_id=current_user.id, action="CATEGORY_CREATE", resource="categories",
        ip=client_ip(request), meta={"id": category.id, "name": category.name},
    )
    return created_response(CategoryOut.model_validate(category), "Category created successfully")


@router.api_route("/{category_id}", methods=["PUT", "PATCH"])
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"category": ["update"]})),
):
    category = _get_category(db, category_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name", category.name) is None:
        raise BadRequestException("name cannot be null")

    for key, value in changes.items():
        setattr(category, key, value)
    commit_or_conflict(db, f"Category '{category.name}' already exists")
    db.refresh(category)

    write_log(
        db, user_id=current_user.id, action="CATEGORY_UPDATE", resource="categories",
        ip=client_ip(request), meta={"id": category.id},
    )
    return success_response(CategoryOut.model_validate(category), "Category updated successfully")


@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"category": ["delete"]})),
):
    category = _get_category(db, category_id)
    # Products stay, their category_id is cleared by ON DELETE SET NULL
    orphaned = _product_count(db, category.id)
    db.delete(category)
    db.commit()

    write_log(
        db, user_id=current_user.id, action="CATEGORY_DELETE", resource="categories",
        ip=client_ip(request), meta={"id": category_id, "orphaned_products": orphaned},
    )
    return success_response(None, "Category deleted successfully")
