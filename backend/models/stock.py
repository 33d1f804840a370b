# backend/models/stock.py
from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from database import Base


# One purchased lot of a product. `quantity` never changes after creation,
# `remaining_qty` goes down as order items are allocated against the lot.
class StockEntry(Base):
    __tablename__ = "stock_entries"
    __table_args__ = (
        CheckConstraint("remaining_qty >= 0", name="ck_stock_entries_remaining_nonneg"),
        CheckConstraint("remaining_qty <= quantity", name="ck_stock_entries_remaining_le_quantity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Integer, nullable=False)
    total_cost = Column(Integer, nullable=False)
    remaining_qty = Column(Integer, nullable=False)

    purchase_date = Column(DateTime, server_default=func.now(), nullable=False, index=True)
    notes = Column(String(500), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    product = relationship("Product", back_populates="stock_entries")
    supplier = relationship("Supplier", back_populates="stock_entries")
    allocations = relationship("OrderItemStockEntry", back_populates="stock_entry")
