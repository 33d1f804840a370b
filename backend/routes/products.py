# backend/routes/products.py
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from database import get_db
from models.category import ProductCategory
from models.order import OrderItem
from models.product import Product
from models.stock import StockEntry
from models.users import User
from schemas.common import parse_query
from schemas.product import ProductCreate, ProductOut, ProductQuery, ProductUpdate
from utils.audit import client_ip, write_log
from utils.db_helpers import apply_sort, commit_or_conflict, paginate
from utils.exceptions import BadRequestException, ConflictException, NotFoundException
from utils.responses import created_response, paginated, success_response
from utils.slugify import slugify
from utils.tokenJWT import require_permission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])

SORT_COLUMNS = {
    "id": Product.id,
    "name": Product.name,
    "price": Product.price,
    "stock": Product.stock,
    "createdAt": Product.created_at,
    "updatedAt": Product.updated_at,
}


# ---- HELPERS ----
def _find_product(db: Session, id_or_slug: str) -> Product:
    """Look a product up by numeric id first, then by slug."""
    query = db.query(Product).options(joinedload(Product.category))
    product = None
    if id_or_slug.isdigit():
        product = query.filter(Product.id == int(id_or_slug)).first()
    if product is None:
        product = query.filter(Product.slug == id_or_slug).first()
    if product is None:
        raise NotFoundException("Product not found")
    return product


def _ensure_category(db: Session, category_id) -> None:
    if category_id is not None and db.get(ProductCategory, category_id) is None:
        raise NotFoundException(f"Category {category_id} not found")


def _unique_slug(db: Session, name: str, exclude_id=None) -> str:
    slug = slugify(name)
    if not slug:
        raise BadRequestException("Product name must contain at least one letter or digit")
    query = db.query(Product.id).filter(Product.slug == slug)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictException(f"Product with slug '{slug}' already exists")
    return slug


# =========================
# PRODUCT LIST
# =========================
@router.get("")
def list_products(
    current_user: User = Depends(require_permission({"product": ["read"]})),
    params: ProductQuery = Depends(parse_query(ProductQuery)),
    db: Session = Depends(get_db),
):
    query = db.query(Product).options(joinedload(Product.category))

    if params.search:
        pattern = f"%{params.search}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.slug.ilike(pattern)))
    if params.category is not None:
        query = query.filter(Product.category_id == params.category)
    if params.min_price is not None:
        query = query.filter(Product.price >= params.min_price)
    if params.max_price is not None:
        query = query.filter(Product.price <= params.max_price)
    if params.in_stock is True:
        query = query.filter(Product.stock > 0)
    elif params.in_stock is False:
        query = query.filter(Product.stock == 0)

    query = apply_sort(query, SORT_COLUMNS, params.sort_by, params.sort_order)
    items, total = paginate(query, params)
    data = [ProductOut.model_validate(p) for p in items]
    return paginated(data, params.page, params.limit, total)


# =========================
# SINGLE PRODUCT
# =========================
@router.get("/{id_or_slug}")
def get_product(
    id_or_slug: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"product": ["read"]})),
):
    return success_response(ProductOut.model_validate(_find_product(db, id_or_slug)))


# =========================
# CREATE PRODUCT
# =========================
@router.post("")
def create_product(
    payload: ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"product": ["create"]})),
):
    _ensure_category(db, payload.category_id)
    slug = _unique_slug(db, payload.name)

    product = Product(
        name=payload.name,
        slug=slug,
        price=payload.price,
        stock=payload.stock,
        category_id=payload.category_id,
    )
    db.add(product)
    commit_or_conflict(db, f"Product with slug '{slug}' already exists")
    db.refresh(product)

    write_log(
        db, user_id=current_user.id, action="PRODUCT_CREATE", resource="products",
        ip=client_ip(request), meta={"id": product.id, "slug": product.slug},
    )
    request.app.state.cache.invalidate_all()
    return created_response(ProductOut.model_validate(product), "Product created successfully")


# =========================
# UPDATE PRODUCT (PUT / PATCH)
# =========================
@router.api_route("/{id_or_slug}", methods=["PUT", "PATCH"])
def update_product(
    id_or_slug: str,
    payload: ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"product": ["update"]})),
):
    product = _find_product(db, id_or_slug)
    changes = payload.model_dump(exclude_unset=True)

    if "category_id" in changes:
        _ensure_category(db, changes["category_id"])
    for field in ("name", "price", "stock"):
        if field in changes and changes[field] is None:
            raise BadRequestException(f"{field} cannot be null")

    if "name" in changes and changes["name"] != product.name:
        product.slug = _unique_slug(db, changes["name"], exclude_id=product.id)
    for key, value in changes.items():
        setattr(product, key, value)

    commit_or_conflict(db, f"Product with slug '{product.slug}' already exists")
    db.refresh(product)

    write_log(
        db, user_id=current_user.id, action="PRODUCT_UPDATE", resource="products",
        ip=client_ip(request), meta={"id": product.id, "fields": sorted(changes)},
    )
    request.app.state.cache.invalidate_all()
    return success_response(ProductOut.model_validate(product), "Product updated successfully")


# =========================
# DELETE PRODUCT
# =========================
@router.delete("/{id_or_slug}")
def delete_product(
    id_or_slug: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"product": ["delete"]})),
):
    product = _find_product(db, id_or_slug)

    if db.query(OrderItem.id).filter(OrderItem.product_id == product.id).first() is not None:
        raise BadRequestException("Product is used by existing orders and cannot be deleted")
    if db.query(StockEntry.id).filter(StockEntry.product_id == product.id).first() is not None:
        raise BadRequestException("Product has stock entries and cannot be deleted")

    product_id = product.id
    db.delete(product)
    db.commit()

    write_log(
        db, user_id=current_user.id, action="PRODUCT_DELETE", resource="products",
        ip=client_ip(request), meta={"id": product_id},
    )
    request.app.state.cache.invalidate_all()
    logger.info("Product %s deleted by user %s", product_id, current_user.id)
    return success_response(None, "Product deleted successfully")
