# backend/studio_engine/models/staff.py
from sqlalchemy import Boolean, Column, Integer, String

from ..database import Base


class StaffMember(Base):
    """Trainer or instructor who runs sessions and classes."""

    __tablename__ = "staff_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    default_hourly_rate = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<StaffMember {self.id} {self.name!r}>"
