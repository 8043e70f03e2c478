"""
Document-store abstraction for SQL databases and an in-memory test implementation.
"""

from __future__ import annotations

import copy
import time
import uuid
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

from sqlalchemy import JSON, BigInteger, Column, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Document = Dict[str, Any]
Predicate = Callable[[Document], bool]

# Fields owned by the store; callers cannot overwrite them through patch().
SYSTEM_FIELDS = ("id", "creation_time")


def now_ms() -> int:
    return int(time.time() * 1000)


class RecordNotFoundError(LookupError):
    """Raised when a document id does not exist in the given table."""

    def __init__(self, table: str, doc_id: str):
        super().__init__(f"{table} record {doc_id} not found")
        self.table = table
        self.doc_id = doc_id


class DbClient(Protocol):
    """Interface for document access used by every record handler."""

    def insert(self, table: str, document: Document) -> str:
        ...

    def get(self, table: str, doc_id: str) -> Optional[Document]:
        ...

    def patch(
        self,
        table: str,
        doc_id: str,
        fields: Document,
        unset: Iterable[str] = (),
    ) -> Document:
        ...

    def query(
        self,
        table: str,
        *,
        index: Optional[tuple[str, Any]] = None,
        where: Optional[Predicate] = None,
        order: str = "desc",
        limit: Optional[int] = None,
    ) -> list[Document]:
        ...


def _apply_patch(document: Document, fields: Document, unset: Iterable[str]) -> Document:
    for key, value in fields.items():
        if key in SYSTEM_FIELDS:
            continue
        document[key] = value
    for key in unset:
        if key not in SYSTEM_FIELDS:
            document.pop(key, None)
    return document


def _select(
    documents: Iterable[Document],
    *,
    index: Optional[tuple[str, Any]],
    where: Optional[Predicate],
    limit: Optional[int],
) -> list[Document]:
    results: list[Document] = []
    for doc in documents:
        if index is not None:
            field_name, value = index
            if doc.get(field_name) != value:
                continue
        if where is not None and not where(doc):
            continue
        results.append(doc)
        if limit is not None and len(results) >= limit:
            break
    return results


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.tables: Dict[str, Dict[str, Document]] = {}
        self._sequence = 0

    def _table(self, table: str) -> Dict[str, Document]:
        return self.tables.setdefault(table, {})

    def insert(self, table: str, document: Document) -> str:
        doc_id = uuid.uuid4().hex
        # Sequence keeps ordering stable for inserts within the same millisecond.
        self._sequence += 1
        stored = copy.deepcopy(document)
        stored["id"] = doc_id
        stored["creation_time"] = now_ms()
        stored["_seq"] = self._sequence
        self._table(table)[doc_id] = stored
        return doc_id

    def get(self, table: str, doc_id: str) -> Optional[Document]:
        doc = self._table(table).get(doc_id)
        return self._public(doc) if doc else None

    def patch(
        self,
        table: str,
        doc_id: str,
        fields: Document,
        unset: Iterable[str] = (),
    ) -> Document:
        doc = self._table(table).get(doc_id)
        if doc is None:
            raise RecordNotFoundError(table, doc_id)
        _apply_patch(doc, copy.deepcopy(fields), unset)
        return self._public(doc)

    def query(
        self,
        table: str,
        *,
        index: Optional[tuple[str, Any]] = None,
        where: Optional[Predicate] = None,
        order: str = "desc",
        limit: Optional[int] = None,
    ) -> list[Document]:
        docs = sorted(
            self._table(table).values(),
            key=lambda d: (d["creation_time"], d["_seq"]),
            reverse=order == "desc",
        )
        public = (self._public(doc) for doc in docs)
        return _select(public, index=index, where=where, limit=limit)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.tables.clear()

    @staticmethod
    def _public(doc: Document) -> Document:
        result = copy.deepcopy(doc)
        result.pop("_seq", None)
        return result


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)
        self._last_sort_key = 0

    def _next_sort_key(self) -> int:
        # Strictly increasing so inserts within one clock tick keep their order.
        self._last_sort_key = max(time.time_ns(), self._last_sort_key + 1)
        return self._last_sort_key

    @staticmethod
    def _to_document(row: "DocumentRow") -> Document:
        doc = dict(row.data or {})
        doc["id"] = row.id
        doc["creation_time"] = row.creation_time
        return doc

    def insert(self, table: str, document: Document) -> str:
        doc_id = uuid.uuid4().hex
        data = {k: v for k, v in document.items() if k not in SYSTEM_FIELDS}
        with self.Session() as session:
            session.add(
                DocumentRow(
                    table_name=table,
                    id=doc_id,
                    creation_time=now_ms(),
                    sort_key=self._next_sort_key(),
                    data=data,
                )
            )
            session.commit()
        return doc_id

    def get(self, table: str, doc_id: str) -> Optional[Document]:
        with self.Session() as session:
            row = session.get(DocumentRow, (table, doc_id))
            return self._to_document(row) if row else None

    def patch(
        self,
        table: str,
        doc_id: str,
        fields: Document,
        unset: Iterable[str] = (),
    ) -> Document:
        with self.Session() as session:
            row = session.get(DocumentRow, (table, doc_id))
            if row is None:
                raise RecordNotFoundError(table, doc_id)
            # Reassign a fresh dict so the JSON column is flagged as modified.
            row.data = _apply_patch(dict(row.data or {}), fields, unset)
            session.commit()
            session.refresh(row)
            return self._to_document(row)

    def query(
        self,
        table: str,
        *,
        index: Optional[tuple[str, Any]] = None,
        where: Optional[Predicate] = None,
        order: str = "desc",
        limit: Optional[int] = None,
    ) -> list[Document]:
        ordering = (
            DocumentRow.sort_key.desc()
            if order == "desc"
            else DocumentRow.sort_key.asc()
        )
        with self.Session() as session:
            stmt = (
                select(DocumentRow)
                .where(DocumentRow.table_name == table)
                .order_by(ordering)
            )
            rows = session.execute(stmt).scalars().all()
            documents = [self._to_document(row) for row in rows]
        return _select(documents, index=index, where=where, limit=limit)


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    table_name = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    creation_time = Column(BigInteger, nullable=False)
    sort_key = Column(BigInteger, nullable=False, index=True)
    data = Column(JSON, nullable=False)
