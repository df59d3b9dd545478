"""
Lookups against the catalog of readable items.
"""
from typing import Optional
from sqlalchemy.orm import Session

from models.catalog import CatalogItem
from utils.exceptions import NotFoundError, ReadingValidationError


class CatalogService:
    """Resolves (book_id, book_type) pairs to catalog items."""

    BOOK_TYPES = ("ebook", "magazine", "audiobook")

    @staticmethod
    def get(db: Session, book_id: int, book_type: str) -> Optional[CatalogItem]:
        return db.query(CatalogItem).filter(
            CatalogItem.id == book_id,
            CatalogItem.item_type == book_type,
        ).first()

    @staticmethod
    def resolve(db: Session, book_id: int, book_type: str) -> CatalogItem:
        """
        Return the catalog item or raise.

        Raises:
            ReadingValidationError: Unknown book type
            NotFoundError: No such item in the catalog
        """
        if book_type not in CatalogService.BOOK_TYPES:
            raise ReadingValidationError(
                f"Invalid book type '{book_type}'. Must be one of: {', '.join(CatalogService.BOOK_TYPES)}"
            )

        item = CatalogService.get(db, book_id, book_type)
        if item is None:
            raise NotFoundError(f"{book_type.capitalize()} {book_id} not found")
        return item
