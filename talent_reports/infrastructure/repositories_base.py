# talent_reports/infrastructure/repositories_base.py
from __future__ import annotations

import builtins
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from sqlalchemy.orm import Session

T = TypeVar("T")  # ORM model type


class BaseRepository(Generic[T]):
    """
    Lightweight generic read repository over one ORM model.
    - The report engine never writes, so only query helpers live here.
    - Entity repos add domain conversion and their own lookups.
    """

    model: type[T]  # must be set by subclasses

    def __init__(self, session: Session):
        if not hasattr(self, "model") or self.model is None:
            raise ValueError(f"{self.__class__.__name__}.model must be set to an ORM class.")
        self.s = session

    def get(self, id_: Any) -> T | None:
        return self.s.get(self.model, id_)

    def list(
        self,
        *filters: Any,
        order_by: Iterable[Any] | None = None,
        limit: int | None = None,
    ) -> builtins.list[T]:
        q = self.s.query(self.model)
        for f in filters:
            q = q.filter(f)
        if order_by:
            for ob in order_by:
                q = q.order_by(ob)
        if limit:
            q = q.limit(limit)
        return list(q.all())

    def first(self, *filters: Any, order_by: Iterable[Any] | None = None) -> T | None:
        rows = self.list(*filters, order_by=order_by, limit=1)
        return rows[0] if rows else None
