from typing import Generic, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from petpocket.core.cipher import FieldCipher, normalize_email
from petpocket.db.session import SessionLocal
from petpocket.domain.entities import PageRequest

ModelT = TypeVar("ModelT")


class SqlRepository(Generic[ModelT]):
    """Shared lookups for repositories backed by one mapped table."""

    model: Type[ModelT]

    def __init__(self, db_session: Optional[Session] = None):
        self.db = db_session or SessionLocal()

    def get_by_id(self, row_id: int) -> Optional[ModelT]:
        return self.db.query(self.model).filter_by(id=row_id).first()

    def exists(self, row_id: int) -> bool:
        return (
            self.db.query(self.model.id).filter_by(id=row_id).first() is not None
        )

    def count(self) -> int:
        return self.db.query(func.count(self.model.id)).scalar() or 0

    def _page(self, query: Query, page: PageRequest) -> Tuple[List[ModelT], int]:
        # Count before ordering/limits; eager joins do not change the row count.
        total = query.order_by(None).count()
        rows = query.offset(page.offset).limit(page.limit).all()
        return rows, total


class EncryptedEmailLookupMixin:
    """Email equality lookup over an encrypted column.

    Candidates are narrowed with the blind index and confirmed by decrypting.
    Rows stored without an index fall back to a decrypt-and-compare scan.
    """

    db: Session
    model: type

    def find_by_email(
        self, email: str, cipher: FieldCipher, exclude_id: Optional[int] = None
    ):
        wanted = normalize_email(email)
        if not wanted:
            return None

        candidates = (
            self.db.query(self.model)
            .filter(self.model.email_index == cipher.blind_index(wanted))
            .all()
        )
        legacy = self.db.query(self.model).filter(self.model.email_index.is_(None)).all()

        for row in candidates + legacy:
            if exclude_id is not None and row.id == exclude_id:
                continue
            if normalize_email(cipher.decrypt(row.encrypted_email)) == wanted:
                return row
        return None
