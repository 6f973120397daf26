# =============================================================================
# tests/fakes.py - In-Memory Firestore and Cloud Storage
# =============================================================================
# Just enough of the google-cloud-firestore and google-cloud-storage client
# surface for the services under test:
# - collection / document / collection_group references
# - where(filter=FieldFilter(...)), order_by, limit, start_after, stream
# - batched writes
# - bucket.blob(...) uploads, downloads and signed URLs
#
# Documents live in one dict keyed by their full path
# ("courses/c1/modules/m1"), so subcollections and collection groups fall
# out of simple path matching.
# =============================================================================

import copy
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from firebase_admin import firestore
from google.api_core.exceptions import NotFound


def _split(field_path: str) -> list[str]:
    return field_path.split(".")


def _lookup(data: dict, field_path: str) -> tuple[bool, Any]:
    current: Any = data
    for part in _split(field_path):
        if not isinstance(current, dict) or part not in current:
            return False, None
        current = current[part]
    return True, current


def _assign(data: dict, field_path: str, value: Any) -> None:
    parts = _split(field_path)
    current = data
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


def _merge(target: dict, source: dict) -> None:
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value


def _op_name(op: Any) -> Any:
    # FieldFilter turns "==" / "!=" against None into a UnaryFilter operator enum
    name = getattr(op, "name", None)
    if name in ("IS_NULL", "IS_NOT_NULL"):
        return name
    return op


def _matches(data: dict, field_path: str, op: Any, value: Any) -> bool:
    found, actual = _lookup(data, field_path)
    op = _op_name(op)
    if op == "IS_NULL" or (op == "==" and value is None):
        return found and actual is None
    if op == "IS_NOT_NULL" or (op == "!=" and value is None):
        return found and actual is not None
    if op == "==":
        return found and actual == value
    if op == "!=":
        return found and actual is not None and actual != value
    if op == "in":
        return found and actual in value
    if op == "not-in":
        return found and actual not in value
    if op == "array_contains":
        return found and isinstance(actual, list) and value in actual
    if not found or actual is None:
        return False
    if op == "<":
        return actual < value
    if op == "<=":
        return actual <= value
    if op == ">":
        return actual > value
    if op == ">=":
        return actual >= value
    raise ValueError(f"Unsupported operator: {op}")


class FakeSnapshot:
    def __init__(self, reference: "FakeDocumentReference", data: dict | None):
        self.reference = reference
        self._data = data

    @property
    def id(self) -> str:
        return self.reference.id

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict | None:
        return copy.deepcopy(self._data)

    def get(self, field_path: str) -> Any:
        if self._data is None:
            return None
        return _lookup(self._data, field_path)[1]


class FakeDocumentReference:
    def __init__(self, db: "FakeFirestore", path: str):
        self._db = db
        self.path = path

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    def collection(self, name: str) -> "FakeCollection":
        return FakeCollection(self._db, f"{self.path}/{name}")

    def get(self) -> FakeSnapshot:
        return FakeSnapshot(self, copy.deepcopy(self._db.docs.get(self.path)))

    def set(self, data: dict, merge: bool = False) -> None:
        resolved = self._db.resolve(data)
        if merge and self.path in self._db.docs:
            _merge(self._db.docs[self.path], resolved)
        else:
            self._db.docs[self.path] = resolved

    def update(self, data: dict) -> None:
        if self.path not in self._db.docs:
            raise NotFound(f"No document to update: {self.path}")
        current = self._db.docs[self.path]
        for key, value in self._db.resolve(data).items():
            _assign(current, key, value)

    def delete(self) -> None:
        self._db.docs.pop(self.path, None)


class FakeQuery:
    def __init__(
        self,
        db: "FakeFirestore",
        path: str | None = None,
        group: str | None = None,
    ):
        self._db = db
        self._path = path
        self._group = group
        self._filters: list[tuple[str, str, Any]] = []
        self._orders: list[tuple[str, str]] = []
        self._limit: int | None = None
        self._cursor: dict | None = None

    def _copy(self) -> "FakeQuery":
        query = FakeQuery(self._db, self._path, self._group)
        query._filters = list(self._filters)
        query._orders = list(self._orders)
        query._limit = self._limit
        query._cursor = self._cursor
        return query

    def where(self, field_path=None, op_string=None, value=None, *, filter=None) -> "FakeQuery":
        query = self._copy()
        if filter is not None:
            query._filters.append((filter.field_path, filter.op_string, filter.value))
        else:
            query._filters.append((field_path, op_string, value))
        return query

    def order_by(self, field_path: str, direction: str = "ASCENDING") -> "FakeQuery":
        query = self._copy()
        query._orders.append((field_path, direction))
        return query

    def limit(self, count: int) -> "FakeQuery":
        query = self._copy()
        query._limit = count
        return query

    def start_after(self, cursor) -> "FakeQuery":
        query = self._copy()
        query._cursor = cursor.to_dict() if isinstance(cursor, FakeSnapshot) else dict(cursor)
        return query

    def _in_scope(self, path: str) -> bool:
        parent, _ = path.rsplit("/", 1)
        if self._group is not None:
            return parent.rsplit("/", 1)[-1] == self._group
        return parent == self._path

    def _after_cursor(self, data: dict) -> bool:
        if not self._orders or self._cursor is None:
            return True
        field_path, direction = self._orders[0]
        _, value = _lookup(data, field_path)
        _, anchor = _lookup(self._cursor, field_path)
        if direction == firestore.Query.DESCENDING:
            return value < anchor
        return value > anchor

    def stream(self):
        results = []
        for path, data in self._db.docs.items():
            if not self._in_scope(path):
                continue
            if not all(_matches(data, f, op, v) for f, op, v in self._filters):
                continue
            # Firestore drops documents missing an ordered field
            if any(not _lookup(data, f)[0] for f, _ in self._orders):
                continue
            results.append((path, data))

        for field_path, direction in reversed(self._orders):
            results.sort(
                key=lambda item: _lookup(item[1], field_path)[1],
                reverse=direction == firestore.Query.DESCENDING,
            )

        results = [item for item in results if self._after_cursor(item[1])]
        if self._limit is not None:
            results = results[: self._limit]

        for path, data in results:
            yield FakeSnapshot(FakeDocumentReference(self._db, path), copy.deepcopy(data))

    def get(self) -> list[FakeSnapshot]:
        return list(self.stream())


class FakeCollection(FakeQuery):
    def __init__(self, db: "FakeFirestore", path: str):
        super().__init__(db, path=path)

    @property
    def id(self) -> str:
        return self._path.rsplit("/", 1)[-1]

    def document(self, document_id: str | None = None) -> FakeDocumentReference:
        return FakeDocumentReference(self._db, f"{self._path}/{document_id or uuid.uuid4().hex[:20]}")

    def add(self, data: dict, document_id: str | None = None):
        ref = self.document(document_id)
        ref.set(data)
        return self._db.now(), ref


class FakeBatch:
    def __init__(self, db: "FakeFirestore"):
        self._db = db
        self._ops: list = []
        self.committed = 0

    def set(self, ref: FakeDocumentReference, data: dict, merge: bool = False) -> None:
        self._ops.append(lambda: ref.set(data, merge=merge))

    def update(self, ref: FakeDocumentReference, data: dict) -> None:
        self._ops.append(lambda: ref.update(data))

    def delete(self, ref: FakeDocumentReference) -> None:
        self._ops.append(ref.delete)

    def commit(self) -> list:
        for op in self._ops:
            op()
        self.committed = len(self._ops)
        self._ops = []
        return []


class FakeFirestore:
    """
    Firestore client stand-in.

    SERVER_TIMESTAMP sentinels are replaced on write by a clock that moves
    forward one millisecond per write, so createdAt ordering follows
    insertion order.
    """

    def __init__(self):
        self.docs: dict[str, dict] = {}
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        self._clock += timedelta(milliseconds=1)
        return self._clock

    def resolve(self, data: dict) -> dict:
        resolved = {}
        for key, value in data.items():
            if value is firestore.SERVER_TIMESTAMP:
                resolved[key] = self.now()
            elif isinstance(value, dict):
                resolved[key] = self.resolve(value)
            else:
                resolved[key] = copy.deepcopy(value)
        return resolved

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name)

    def collection_group(self, name: str) -> FakeQuery:
        return FakeQuery(self, group=name)

    def document(self, path: str) -> FakeDocumentReference:
        return FakeDocumentReference(self, path)

    def batch(self) -> FakeBatch:
        return FakeBatch(self)

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def seed(self, path: str, data: dict) -> FakeDocumentReference:
        ref = FakeDocumentReference(self, path)
        ref.set(data)
        return ref

    def data(self, path: str) -> dict | None:
        return copy.deepcopy(self.docs.get(path))

    def paths(self, collection_path: str) -> list[str]:
        return [
            path for path in self.docs
            if path.rsplit("/", 1)[0] == collection_path
        ]


class FakeBlob:
    def __init__(self, bucket: "FakeBucket", name: str):
        self.bucket = bucket
        self.name = name

    @property
    def content_type(self) -> str | None:
        return self.bucket.content_types.get(self.name)

    def upload_from_string(self, data, content_type: str | None = None) -> None:
        if isinstance(data, str):
            data = data.encode()
        self.bucket.objects[self.name] = bytes(data)
        self.bucket.content_types[self.name] = content_type

    def upload_from_filename(self, filename: str, content_type: str | None = None) -> None:
        self.upload_from_string(Path(filename).read_bytes(), content_type=content_type)

    def download_as_bytes(self) -> bytes:
        if self.name not in self.bucket.objects:
            raise NotFound(f"No such object: {self.name}")
        return self.bucket.objects[self.name]

    def download_to_filename(self, filename: str) -> None:
        Path(filename).write_bytes(self.download_as_bytes())

    def exists(self) -> bool:
        return self.name in self.bucket.objects

    def delete(self) -> None:
        if self.bucket.objects.pop(self.name, None) is None:
            raise NotFound(f"No such object: {self.name}")

    def generate_signed_url(self, expiration=None, version: str = "v4", method: str = "GET", **kwargs) -> str:
        seconds = int(expiration.total_seconds()) if isinstance(expiration, timedelta) else expiration
        return f"https://storage.test/{self.name}?method={method}&version={version}&expires={seconds}"


class FakeBucket:
    """Cloud Storage bucket stand-in holding object bytes in memory."""

    name = "test-bucket"

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str | None] = {}

    def blob(self, name: str) -> FakeBlob:
        return FakeBlob(self, name)

    def list_blobs(self, prefix: str = "", max_results: int | None = None):
        names = sorted(name for name in self.objects if name.startswith(prefix))
        if max_results is not None:
            names = names[:max_results]
        return [FakeBlob(self, name) for name in names]

    def put_file(self, name: str, source: Path) -> None:
        """Seed an object from a local file."""
        self.objects[name] = Path(source).read_bytes()


class StripeStub(dict):
    """
    Stand-in for a StripeObject: a dict whose keys also read as attributes.

    Services read Stripe responses both ways (session.id, account.get(...)).
    """

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)
