from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from ..common.db import Base


class Client(Base):
    __tablename__ = "clients"

    ci: Mapped[str] = mapped_column(String(64), primary_key=True)
