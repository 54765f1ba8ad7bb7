"""
Dual-write orchestration between the relational store and the document store.

There is no transaction spanning both stores. The rules are:

* create: the row is committed first. Any failure up to and including the
  commit rolls the session back and runs the caller's compensation (e.g.
  releasing reserved stock) before re-raising. The companion document is
  written afterwards; if that write fails the row stays and the failure is
  logged with the row id.
* update: the row patch is committed first (only when there is one), then the
  document patch is upserted (only when there is one). A document failure is
  logged and surfaced as an internal error; the committed row patch stands.
* delete: the row is deleted and committed, then the document is removed on a
  best-effort basis.
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from pymongo.errors import PyMongoError
from sqlalchemy.orm import Session

from petpocket.core.exceptions import InternalError
from petpocket.repositories.details_repo import CompanionDocumentRepository

logger = logging.getLogger(__name__)


class DualWriteOrchestrator:
    def __init__(self, db_session: Session, documents: CompanionDocumentRepository):
        self.db = db_session
        self.documents = documents

    def _commit(self, compensate: Optional[Callable[[], None]] = None) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            if compensate is not None:
                compensate()
            raise

    def create(
        self,
        row: Any,
        document_factory: Callable[[Any], Dict[str, Any]],
        compensate: Optional[Callable[[], None]] = None,
    ) -> Tuple[Any, Optional[Dict[str, Any]]]:
        """Commit ``row`` then insert ``document_factory(row)`` keyed by ``row.id``.

        Returns the row and the stored document (``None`` if the document write failed).
        """
        try:
            self.db.add(row)
            self.db.flush()
        except Exception:
            self.db.rollback()
            if compensate is not None:
                compensate()
            raise
        self._commit(compensate)

        try:
            document = self.documents.insert(row.id, document_factory(row))
        except PyMongoError as e:
            logger.error(
                "Companion document write failed; row kept without details",
                extra={
                    "context": {
                        "collection": self.documents.collection_name,
                        "row_id": row.id,
                        "error": str(e),
                    }
                },
            )
            return row, None
        return row, document

    def update(
        self,
        row: Any,
        row_changes: Dict[str, Any],
        document_changes: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """Apply a merge-patch to both halves of the aggregate.

        Returns the companion document after the patch, or the current one
        when there was nothing to change on the document side.
        """
        if row_changes:
            for attribute, value in row_changes.items():
                setattr(row, attribute, value)
            self._commit()

        if not document_changes:
            return self.documents.get(row.id)

        try:
            return self.documents.upsert_fields(row.id, document_changes)
        except PyMongoError as e:
            logger.error(
                "Companion document update failed after row commit",
                extra={
                    "context": {
                        "collection": self.documents.collection_name,
                        "row_id": row.id,
                        "row_fields": sorted(row_changes),
                        "document_fields": sorted(document_changes),
                        "error": str(e),
                    }
                },
            )
            raise InternalError("Failed to update details") from e

    def delete(self, row: Any) -> None:
        row_id = row.id
        self.db.delete(row)
        self._commit()

        try:
            self.documents.delete(row_id)
        except PyMongoError as e:
            logger.error(
                "Companion document delete failed; orphan document left",
                extra={
                    "context": {
                        "collection": self.documents.collection_name,
                        "row_id": row_id,
                        "error": str(e),
                    }
                },
            )
