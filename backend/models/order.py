# backend/models/order.py
import enum

from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Integer, func
from sqlalchemy.orm import relationship

from database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    status = Column(Enum(OrderStatus, native_enum=False, length=20), nullable=False, default=OrderStatus.PENDING, index=True)
    total_amount = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    shop = relationship("Shop", back_populates="orders")
    creator = relationship("User", back_populates="orders")
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", passive_deletes=True, order_by="OrderItem.id"
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    # Unit price snapshot taken when the order was placed
    price = Column(Integer, nullable=False)

    # Filled in once the order is accepted and allocated against stock entries
    total_cost = Column(Integer, nullable=True)
    total_margin = Column(Integer, nullable=True)
    avg_margin_rate = Column(Float, nullable=True)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
    allocations = relationship(
        "OrderItemStockEntry",
        back_populates="order_item",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItemStockEntry.id",
    )


# Immutable record of one lot allocation for an order item
class OrderItemStockEntry(Base):
    __tablename__ = "order_item_stock_entries"

    id = Column(Integer, primary_key=True, index=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False, index=True)
    stock_entry_id = Column(Integer, ForeignKey("stock_entries.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Integer, nullable=False)
    unit_price = Column(Integer, nullable=False)
    margin_amount = Column(Integer, nullable=False)
    margin_rate = Column(Float, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    order_item = relationship("OrderItem", back_populates="allocations")
    stock_entry = relationship("StockEntry", back_populates="allocations")
