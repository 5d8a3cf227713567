from sqlalchemy.orm import Session

from storefront.errors import NotFoundError
from storefront.models import Vinyl


class CatalogLookup:
    """Resolves purchasable vinyls. Soft-deleted vinyls are not for sale."""

    def __init__(self, db: Session):
        self.db = db

    def find_vinyl(self, vinyl_id: str) -> Vinyl:
        vinyl = (
            self.db.query(Vinyl)
            .filter(Vinyl.id == vinyl_id, Vinyl.is_deleted.is_(False))
            .first()
        )
        if vinyl is None:
            raise NotFoundError("Vinyl not found")
        return vinyl
