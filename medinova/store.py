"""Collection-per-entity document store on top of SQLite / Postgres.

The operations and their result dicts mirror what the MediNova frontend
already consumes (`insertedId`, `matchedCount`, `modifiedCount`,
`deletedCount`), so handlers can return them as-is.

Filters are plain equality matches on top-level fields. `_id` filters use
the primary key and unique fields (users.email) go through `unique_keys`, so
both read a single row. Other filters are matched in Python after loading the
collection's rows, which is fine for the collection sizes this app has.
"""

from __future__ import annotations

import json
import re
import secrets
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from medinova.db import begin_write, connect, detect_dialect, init_db, ping
from medinova.errors import DuplicateKeyError, StoreClosedError
from medinova.util.time import utcnow_iso


Document = Dict[str, Any]

_ID_RE = re.compile(r"^[0-9a-f]{24}$")

USERS = "users"
TESTS = "tests"
BANNERS = "banners"
BOOKINGS = "bookings"
RECOMMENDATIONS = "recommendations"

# collection -> fields whose values must be unique within it
DEFAULT_UNIQUE_FIELDS: Dict[str, Sequence[str]] = {USERS: ("email",)}


def _debug(msg: str) -> None:
    print(f"[store] {msg}")


def new_object_id() -> str:
    """24 lowercase hex chars, the same shape as a Mongo ObjectId."""
    return secrets.token_hex(12)


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_ID_RE.match(value))


def insert_result(inserted_id: Optional[str]) -> Dict[str, Any]:
    return {"acknowledged": True, "insertedId": inserted_id}


def update_result(matched: int, modified: int) -> Dict[str, Any]:
    return {
        "acknowledged": True,
        "matchedCount": int(matched),
        "modifiedCount": int(modified),
        "upsertedId": None,
        "upsertedCount": 0,
    }


def delete_result(deleted: int) -> Dict[str, Any]:
    return {"acknowledged": True, "deletedCount": int(deleted)}


def _equal(a: Any, b: Any) -> bool:
    # True == 1 in Python; a stored 1 must not match a boolean filter.
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    return a == b


def _matches(doc: Mapping[str, Any], flt: Mapping[str, Any]) -> bool:
    for k, v in flt.items():
        if k == "_id":
            continue
        if not _equal(doc.get(k), v):
            return False
    return True


def _row_to_doc(row: Any) -> Document:
    body = json.loads(row["body_json"])
    doc: Document = {"_id": str(row["doc_id"])}
    body.pop("_id", None)
    doc.update(body)
    return doc


def _dump(doc: Mapping[str, Any]) -> str:
    body = {k: v for k, v in doc.items() if k != "_id"}
    return json.dumps(body, default=str, ensure_ascii=False)


class DocumentStore:
    """Handle to the document database.

    Constructed explicitly and passed to whatever needs it; `open()` must be
    called before use and `close()` ends its life:

        store = DocumentStore(cfg.DB_DSN)
        store.open()
        ...
        store.close()
    """

    def __init__(self, dsn: str, *, unique_fields: Optional[Mapping[str, Sequence[str]]] = None):
        self.dsn = dsn
        self.dialect = detect_dialect(dsn)
        if unique_fields is None:
            unique_fields = DEFAULT_UNIQUE_FIELDS
        self.unique_fields: Dict[str, tuple[str, ...]] = {k: tuple(v) for k, v in unique_fields.items()}
        self._open = False

    # -----------------------------
    # Lifecycle
    # -----------------------------

    def open(self) -> "DocumentStore":
        if self._open:
            return self
        init_db(self.dsn)
        ping(self.dsn)
        self._open = True
        _debug(f"opened ({self.dialect})")
        return self

    def close(self) -> None:
        if self._open:
            _debug("closed")
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def __enter__(self) -> "DocumentStore":
        return self.open()

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def ping(self) -> bool:
        self._require_open()
        return ping(self.dsn)

    def _require_open(self) -> None:
        if not self._open:
            raise StoreClosedError("document store is not open")

    @contextmanager
    def _conn(self, *, write: bool = False) -> Iterator[Any]:
        self._require_open()
        with connect(self.dsn) as conn:
            if write:
                begin_write(conn)
            yield conn

    # -----------------------------
    # Internal row access
    # -----------------------------

    def _select(
        self,
        conn: Any,
        collection: str,
        flt: Optional[Mapping[str, Any]] = None,
        *,
        for_update: bool = False,
    ) -> List[Document]:
        flt = dict(flt or {})
        lock = " FOR UPDATE" if for_update and self.dialect == "postgres" else ""
        key = self._unique_key(collection, flt)

        if "_id" in flt:
            doc_id = flt["_id"]
            if not isinstance(doc_id, str):
                return []
            rows = conn.execute(
                f"SELECT doc_id, body_json FROM documents WHERE collection=? AND doc_id=?{lock}",
                (collection, doc_id),
            ).fetchall()
        elif key is not None:
            field, value = key
            rows = conn.execute(
                f"""
                SELECT d.doc_id, d.body_json FROM unique_keys k
                JOIN documents d ON d.collection=k.collection AND d.doc_id=k.doc_id
                WHERE k.collection=? AND k.field=? AND k.value=?{lock}
                """,
                (collection, field, value),
            ).fetchall()
        else:
            rows = conn.execute(
                f"SELECT doc_id, body_json FROM documents WHERE collection=? ORDER BY seq{lock}",
                (collection,),
            ).fetchall()

        docs = [_row_to_doc(r) for r in rows]
        return [d for d in docs if _matches(d, flt)]

    def _unique_key(self, collection: str, flt: Mapping[str, Any]) -> Optional[tuple[str, str]]:
        """First unique field the filter pins to a value, as stored in unique_keys."""
        for field in self.unique_fields.get(collection, ()):
            v = flt.get(field)
            if v is not None:
                return field, str(v)
        return None

    def _write_body(self, conn: Any, collection: str, doc: Document) -> None:
        conn.execute(
            "UPDATE documents SET body_json=?, updated_at=? WHERE collection=? AND doc_id=?",
            (_dump(doc), utcnow_iso(), collection, doc["_id"]),
        )

    def _unique_values(self, collection: str, doc: Mapping[str, Any]) -> List[tuple[str, str]]:
        out: List[tuple[str, str]] = []
        for field in self.unique_fields.get(collection, ()):
            v = doc.get(field)
            if v is not None:
                out.append((field, str(v)))
        return out

    # -----------------------------
    # Reads
    # -----------------------------

    def find(self, collection: str, flt: Optional[Mapping[str, Any]] = None) -> List[Document]:
        with self._conn() as conn:
            return self._select(conn, collection, flt)

    def find_one(self, collection: str, flt: Mapping[str, Any]) -> Optional[Document]:
        docs = self.find(collection, flt)
        return docs[0] if docs else None

    # -----------------------------
    # Writes
    # -----------------------------

    def insert_one(self, collection: str, doc: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert a document; raises DuplicateKeyError on a unique-field conflict."""
        body = {k: v for k, v in dict(doc).items() if k != "_id"}
        doc_id = new_object_id()
        now = utcnow_iso()

        with self._conn(write=True) as conn:
            for field, value in self._unique_values(collection, body):
                cur = conn.execute(
                    """
                    INSERT INTO unique_keys (collection, field, value, doc_id) VALUES (?,?,?,?)
                    ON CONFLICT (collection, field, value) DO NOTHING
                    """,
                    (collection, field, value, doc_id),
                )
                if cur.rowcount == 0:
                    # Nothing written yet besides earlier key rows; the context rolls back.
                    raise DuplicateKeyError(f"duplicate value for unique field {field!r}")

            conn.execute(
                """
                INSERT INTO documents (collection, doc_id, body_json, created_at, updated_at)
                VALUES (?,?,?,?,?)
                """,
                (collection, doc_id, _dump(body), now, now),
            )
        return insert_result(doc_id)

    def insert_unique(self, collection: str, doc: Mapping[str, Any]) -> Dict[str, Any]:
        """Like insert_one, but a unique-field conflict is reported, not raised."""
        try:
            return self.insert_one(collection, doc)
        except DuplicateKeyError:
            return insert_result(None)

    def update_one(
        self, collection: str, flt: Mapping[str, Any], set_fields: Mapping[str, Any]
    ) -> Dict[str, Any]:
        return self._update(collection, flt, set_fields, many=False)

    def update_many(
        self, collection: str, flt: Mapping[str, Any], set_fields: Mapping[str, Any]
    ) -> Dict[str, Any]:
        return self._update(collection, flt, set_fields, many=True)

    def _update(
        self,
        collection: str,
        flt: Mapping[str, Any],
        set_fields: Mapping[str, Any],
        *,
        many: bool,
    ) -> Dict[str, Any]:
        changes = {k: v for k, v in dict(set_fields).items() if k != "_id"}
        if any(f in changes for f in self.unique_fields.get(collection, ())):
            raise ValueError("unique_field_immutable")

        with self._conn(write=True) as conn:
            docs = self._select(conn, collection, flt, for_update=True)
            if not many:
                docs = docs[:1]
            modified = 0
            for doc in docs:
                merged = dict(doc)
                merged.update(changes)
                if merged != doc:
                    self._write_body(conn, collection, merged)
                    modified += 1
        return update_result(len(docs), modified)

    def delete_one(self, collection: str, flt: Mapping[str, Any]) -> Dict[str, Any]:
        with self._conn(write=True) as conn:
            docs = self._select(conn, collection, flt, for_update=True)
            if not docs:
                return delete_result(0)
            doc_id = docs[0]["_id"]
            conn.execute(
                "DELETE FROM documents WHERE collection=? AND doc_id=?",
                (collection, doc_id),
            )
            conn.execute(
                "DELETE FROM unique_keys WHERE collection=? AND doc_id=?",
                (collection, doc_id),
            )
        return delete_result(1)

    def set_exclusive_flag(self, collection: str, doc_id: str, field: str) -> Dict[str, Any]:
        """Set `field=True` on one document and `False` on every other, in one transaction.

        If the target does not exist nothing is changed and a zero-match result
        is returned.
        """
        with self._conn(write=True) as conn:
            docs = self._select(conn, collection, None, for_update=True)
            if not any(d["_id"] == doc_id for d in docs):
                return update_result(0, 0)

            target_modified = 0
            for doc in docs:
                want = doc["_id"] == doc_id
                if doc.get(field) is want:
                    continue
                merged = dict(doc)
                merged[field] = want
                self._write_body(conn, collection, merged)
                if want:
                    target_modified = 1
        return update_result(1, target_modified)

    def insert_many(self, collection: str, docs: Iterable[Mapping[str, Any]]) -> List[str]:
        return [self.insert_one(collection, d)["insertedId"] for d in docs]
