# backend/models/product.py
from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from database import Base


# Model Product
# A sellable item. Prices are integers in the minor currency unit.
# `stock` is on-hand quantity (already reduced by open orders),
# `reserved_stock` is the part of it promised to PENDING orders.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)

    price = Column(Integer, CheckConstraint("price >= 0", name="ck_products_price"), nullable=False, default=0)

    stock = Column(Integer, CheckConstraint("stock >= 0", name="ck_products_stock"), nullable=False, default=0)
    reserved_stock = Column(
        Integer, CheckConstraint("reserved_stock >= 0", name="ck_products_reserved_stock"), nullable=False, default=0
    )

    category_id = Column(Integer, ForeignKey("product_categories.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    category = relationship("ProductCategory", back_populates="products")
    stock_entries = relationship("StockEntry", back_populates="product")
