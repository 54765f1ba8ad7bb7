from typing import List, Tuple

from petpocket.db.base import User
from petpocket.domain.entities import PageRequest
from petpocket.repositories.base_repo import EncryptedEmailLookupMixin, SqlRepository


class UserRepository(EncryptedEmailLookupMixin, SqlRepository[User]):
    model = User

    def list_page(self, page: PageRequest) -> Tuple[List[User], int]:
        query = self.db.query(User).order_by(User.created_at.desc(), User.id.desc())
        return self._page(query, page)
