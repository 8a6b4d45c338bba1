import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from ..core.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class BaseModel(Base):
    __abstract__ = True

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
