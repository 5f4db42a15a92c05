from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..common.db import Base


class Product(Base):
    __tablename__ = "products"

    product_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Only ever changed through a relative decrement
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
