from typing import List, Optional, Tuple

from petpocket.db.base import Pet
from petpocket.domain.entities import PageRequest
from petpocket.repositories.base_repo import SqlRepository


class PetRepository(SqlRepository[Pet]):
    model = Pet

    def list_page(
        self, page: PageRequest, owner_id: Optional[int] = None
    ) -> Tuple[List[Pet], int]:
        query = self.db.query(Pet)
        if owner_id is not None:
            query = query.filter(Pet.owner_id == owner_id)
        query = query.order_by(Pet.created_at.desc(), Pet.id.desc())
        return self._page(query, page)

    def list_by_owner(self, owner_id: int) -> List[Pet]:
        return (
            self.db.query(Pet)
            .filter(Pet.owner_id == owner_id)
            .order_by(Pet.created_at.desc(), Pet.id.desc())
            .all()
        )
