# backend/studio_engine/models/room.py
"""
Site and room models.

A room belongs to exactly one site and is the physical resource that the
conflict detector keeps exclusive.
"""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


class Site(Base):
    __tablename__ = "sites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)

    rooms = relationship("Room", back_populates="site")

    def __repr__(self) -> str:
        return f"<Site {self.id} {self.name!r}>"


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey("sites.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    capacity = Column(Integer, nullable=True)

    site = relationship("Site", back_populates="rooms")

    def __repr__(self) -> str:
        return f"<Room {self.id} {self.name!r} site={self.site_id}>"
