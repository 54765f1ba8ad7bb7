from typing import List, Tuple

from sqlalchemy import func

from petpocket.db.base import Owner, Pet
from petpocket.domain.entities import PageRequest
from petpocket.repositories.base_repo import EncryptedEmailLookupMixin, SqlRepository


class OwnerRepository(EncryptedEmailLookupMixin, SqlRepository[Owner]):
    model = Owner

    def list_page(self, page: PageRequest) -> Tuple[List[Owner], int]:
        """Newest owners first."""
        query = self.db.query(Owner).order_by(Owner.created_at.desc(), Owner.id.desc())
        return self._page(query, page)

    def count_pets(self, owner_id: int) -> int:
        return (
            self.db.query(func.count(Pet.id)).filter(Pet.owner_id == owner_id).scalar()
            or 0
        )
