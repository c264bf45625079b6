"""Entity store: the data-access surface the workflow core consumes."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from ..app import db
from ..shared.errors import NotFoundError, StorageError

logger = logging.getLogger("formaflow.store")

T = TypeVar("T")


class EntityStore:
    def __init__(self, session=None) -> None:
        self.session = session if session is not None else db.session

    def get(self, model: type[T], ident: Any, *, for_update: bool = False) -> T:
        try:
            if for_update:
                record = (
                    self.session.query(model)
                    .filter(model.id == ident)
                    .with_for_update()
                    .populate_existing()
                    .one_or_none()
                )
            else:
                record = self.session.get(model, ident)
        except SQLAlchemyError as exc:
            raise self._storage_error("get", model, exc) from exc
        if record is None:
            raise NotFoundError(model.__name__, ident)
        return record

    def query(self, model: type[T], *criteria, order_by=None) -> list[T]:
        try:
            q = self.session.query(model)
            if criteria:
                q = q.filter(*criteria)
            if order_by is not None:
                if not isinstance(order_by, (list, tuple)):
                    order_by = [order_by]
                q = q.order_by(*order_by)
            return q.all()
        except SQLAlchemyError as exc:
            raise self._storage_error("query", model, exc) from exc

    def save(self, record: T) -> T:
        try:
            self.session.add(record)
            self.session.flush()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise self._storage_error("save", type(record), exc) from exc
        return record

    def delete(self, model: type, ident: Any) -> None:
        record = self.get(model, ident)
        try:
            self.session.delete(record)
            self.session.flush()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise self._storage_error("delete", model, exc) from exc

    @contextmanager
    def unit_of_work(self) -> Iterator["EntityStore"]:
        """Commit everything done inside the block, or roll all of it back."""

        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise self._storage_error("commit", None, exc) from exc
        except Exception:
            self.session.rollback()
            raise

    @staticmethod
    def _storage_error(op: str, model: type | None, exc: Exception) -> StorageError:
        name = model.__name__ if model is not None else "session"
        logger.error("[STORE] %s %s failed: %s", op, name, exc)
        return StorageError(f"Storage failure during {op} of {name}", operation=op)
