"""
CatalogItem model - local projection of the book/magazine catalog.
"""
from sqlalchemy import Column, Integer, String, DateTime
from database import Base
from datetime import datetime


class CatalogItem(Base):
    """A readable item (ebook, magazine or audiobook)."""
    __tablename__ = "catalog_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_type = Column(String(20), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    category = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<CatalogItem(id={self.id}, type={self.item_type}, title={self.title})>"
