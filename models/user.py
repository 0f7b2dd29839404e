from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, String, Boolean, func

from models.base import Base


class User(Base):
    """Account record. Owned by the authentication service, read here for listings."""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    is_staff = Column(Boolean, nullable=False, default=False)
    is_seller = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=func.now())


class UserDTO(BaseModel):
    id: int | None = None
    name: str | None = None
    email: str | None = None
    is_admin: bool | None = None
    is_staff: bool | None = None
    is_seller: bool | None = None
    created_at: datetime | None = None


class RequesterDTO(BaseModel):
    """
    Verified caller identity attached to every request by the authentication layer.

    The purchase engine trusts it as-is. Anonymous callers are represented by None.
    """
    user_id: int
    name: str
    email: str
    is_admin: bool = False
    is_staff: bool = False
    is_seller: bool = False

    @property
    def is_staff_or_admin(self) -> bool:
        return self.is_admin or self.is_staff
