# backend/models/log.py
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from database import Base


# Audit trail entry: who did what to which resource, and whether it worked
class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)
    ts = Column(DateTime, server_default=func.now(), index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(50), index=True)   # e.g. ORDER_ACCEPT
    resource = Column(String(50), index=True)  # e.g. orders
    status = Column(String(20), index=True)   # SUCCESS / FAIL
    ip = Column(String(64), nullable=True)

    # Free-form context (ids, old/new status, counts)
    meta = Column(JSON, nullable=True)

    user = relationship("User", lazy="joined", uselist=False)
