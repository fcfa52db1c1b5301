"""In-memory stand-ins for the record store, Redis cache and view-log tables."""

from __future__ import annotations

import copy
import itertools
import math
import re
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any

from docpanel.core.errors import RecordStoreError
from docpanel.repositories.filters import format_timestamp

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<str>'(?:[^']|'')*')|(?P<and>&&)|(?P<or>\|\|)|(?P<lp>\()|(?P<rp>\))"
    r"|(?P<op>!=|>=|<=|=|>|<|~)|(?P<num>-?\d+(?:\.\d+)?)|(?P<word>[A-Za-z_][\w.]*))"
)


def _tokenize(expression: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    expression = expression.strip()
    while pos < len(expression):
        match = _TOKEN_RE.match(expression, pos)
        if not match or match.end() == pos:
            raise RecordStoreError(400, f"bad filter near {expression[pos:]!r}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


def _literal(kind: str, text: str) -> Any:
    if kind == "str":
        return text[1:-1].replace("''", "'")
    if kind == "num":
        return float(text) if "." in text else int(text)
    if text == "true":
        return True
    if text == "false":
        return False
    if text == "null":
        return None
    raise RecordStoreError(400, f"unsupported literal {text!r}")


def _compare(left: Any, op: str, right: Any) -> bool:
    if op == "~":
        return right is not None and str(right).lower() in str(left or "").lower()
    if op == "=":
        return (left or None) == right if right is None else left == right
    if op == "!=":
        return not _compare(left, "=", right)
    if left is None or right is None:
        return False
    if isinstance(right, (int, float)) and not isinstance(left, (int, float)):
        return False
    return {">": left > right, "<": left < right, ">=": left >= right, "<=": left <= right}[op]


class _FilterParser:
    def __init__(self, expression: str):
        self.tokens = _tokenize(expression)
        self.pos = 0

    def _peek(self) -> tuple[str, str] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self) -> tuple[str, str]:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def parse(self):
        node = self._or()
        if self._peek() is not None:
            raise RecordStoreError(400, "trailing tokens in filter")
        return node

    def _or(self):
        nodes = [self._and()]
        while self._peek() and self._peek()[0] == "or":
            self._take()
            nodes.append(self._and())
        return lambda rec: any(n(rec) for n in nodes)

    def _and(self):
        nodes = [self._atom()]
        while self._peek() and self._peek()[0] == "and":
            self._take()
            nodes.append(self._atom())
        return lambda rec: all(n(rec) for n in nodes)

    def _atom(self):
        kind, text = self._take()
        if kind == "lp":
            node = self._or()
            self._take()
            return node
        if kind != "word":
            raise RecordStoreError(400, f"expected field, got {text!r}")
        field = text
        _, op = self._take()
        value = _literal(*self._take())
        return lambda rec: _compare(rec.get(field), op, value)


def matches(record: dict[str, Any], expression: str | None) -> bool:
    if not expression:
        return True
    return _FilterParser(expression).parse()(record)


def _new_id() -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(15))


class InMemoryRecordStore:
    """Dict-backed RecordStore with PocketBase-like errors and filter handling."""

    def __init__(self):
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.users: dict[str, tuple[str, dict[str, Any]]] = {}
        self.calls: list[tuple[str, str, str | None]] = []
        self.auth_invalidations = 0
        self._failures: list[dict[str, Any]] = []
        self._seq = itertools.count(1)
        self._epoch = datetime(2026, 1, 1, tzinfo=timezone.utc)

    # ── Test helpers ──

    def seed(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        stored = self._stamp(dict(record), new=True)
        self.collections.setdefault(collection, {})[stored["id"]] = stored
        return copy.deepcopy(stored)

    def raw(self, collection: str, record_id: str) -> dict[str, Any] | None:
        return self.collections.get(collection, {}).get(record_id)

    def all(self, collection: str) -> list[dict[str, Any]]:
        return list(self.collections.get(collection, {}).values())

    def fail(
        self,
        op: str,
        *,
        collection: str | None = None,
        record_id: str | None = None,
        status: int = 500,
        message: str = "boom",
        data: dict[str, Any] | None = None,
        times: int | None = None,
    ) -> None:
        self._failures.append(
            {
                "op": op,
                "collection": collection,
                "record_id": record_id,
                "error": RecordStoreError(status, message, data),
                "times": times,
            }
        )

    def _maybe_fail(self, op: str, collection: str, record_id: str | None = None) -> None:
        self.calls.append((op, collection, record_id))
        for rule in self._failures:
            if rule["op"] != op:
                continue
            if rule["collection"] not in (None, collection):
                continue
            if rule["record_id"] not in (None, record_id):
                continue
            if rule["times"] is not None:
                if rule["times"] <= 0:
                    continue
                rule["times"] -= 1
            raise rule["error"]

    def _stamp(self, record: dict[str, Any], *, new: bool) -> dict[str, Any]:
        now = format_timestamp(self._epoch + timedelta(seconds=next(self._seq)))
        if new:
            record.setdefault("id", _new_id())
            record.setdefault("created", now)
        record["updated"] = now
        return record

    def _table(self, collection: str) -> dict[str, dict[str, Any]]:
        return self.collections.setdefault(collection, {})

    @staticmethod
    def _project(record: dict[str, Any], fields: str | None) -> dict[str, Any]:
        if not fields:
            return copy.deepcopy(record)
        wanted = [f.strip() for f in fields.split(",") if f.strip()]
        return {key: copy.deepcopy(record.get(key)) for key in wanted}

    # ── RecordStore protocol ──

    async def get(self, collection: str, record_id: str, *, fields: str | None = None) -> dict[str, Any]:
        self._maybe_fail("get", collection, record_id)
        record = self._table(collection).get(record_id)
        if record is None:
            raise RecordStoreError(404, "The requested resource wasn't found.")
        return self._project(record, fields)

    async def get_first(self, collection: str, filter: str, *, fields: str | None = None) -> dict[str, Any] | None:
        page = await self.list(collection, page=1, per_page=1, filter=filter, fields=fields)
        items = page.get("items") or []
        return items[0] if items else None

    async def list(
        self,
        collection: str,
        *,
        page: int = 1,
        per_page: int = 30,
        filter: str | None = None,
        sort: str | None = None,
        fields: str | None = None,
    ) -> dict[str, Any]:
        self._maybe_fail("list", collection, str(page))
        rows = [r for r in self._table(collection).values() if matches(r, filter)]
        for key in reversed([k.strip() for k in (sort or "").split(",") if k.strip()]):
            descending = key.startswith("-")
            name = key.lstrip("-+")
            rows.sort(key=lambda r: (r.get(name) is not None, r.get(name) or ""), reverse=descending)
        total = len(rows)
        total_pages = math.ceil(total / per_page) if total else 0
        start = (page - 1) * per_page
        return {
            "page": page,
            "perPage": per_page,
            "totalItems": total,
            "totalPages": total_pages,
            "items": [self._project(r, fields) for r in rows[start : start + per_page]],
        }

    async def list_all(
        self,
        collection: str,
        *,
        filter: str | None = None,
        sort: str | None = None,
        fields: str | None = None,
    ) -> list[dict[str, Any]]:
        result = await self.list(collection, page=1, per_page=10_000, filter=filter, sort=sort, fields=fields)
        return result["items"]

    async def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        self._maybe_fail("create", collection, data.get("id"))
        table = self._table(collection)
        if data.get("id") and data["id"] in table:
            raise RecordStoreError(
                400,
                "Failed to create record.",
                {"id": {"code": "validation_not_unique", "message": "Value must be unique."}},
            )
        record = {key: copy.deepcopy(value) for key, value in data.items() if value is not None or key != "id"}
        record = self._stamp(record, new=True)
        table[record["id"]] = record
        return copy.deepcopy(record)

    async def update(self, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        self._maybe_fail("update", collection, record_id)
        record = self._table(collection).get(record_id)
        if record is None:
            raise RecordStoreError(404, "The requested resource wasn't found.")
        for key, value in data.items():
            if key.endswith("+"):
                name = key[:-1]
                record[name] = (record.get(name) or 0) + value
            else:
                record[key] = copy.deepcopy(value)
        self._stamp(record, new=False)
        return copy.deepcopy(record)

    async def delete(self, collection: str, record_id: str) -> None:
        self._maybe_fail("delete", collection, record_id)
        if self._table(collection).pop(record_id, None) is None:
            raise RecordStoreError(404, "The requested resource wasn't found.")

    async def increment(self, collection: str, record_id: str, field: str, delta: int = 1) -> dict[str, Any]:
        return await self.update(collection, record_id, {f"{field}+": delta})

    async def authenticate_user(self, email: str, password: str) -> dict[str, Any]:
        self._maybe_fail("auth", "users", email)
        stored = self.users.get(email)
        if stored is None or stored[0] != password:
            raise RecordStoreError(400, "Failed to authenticate.")
        return copy.deepcopy(stored[1])

    def invalidate_auth(self) -> None:
        self.auth_invalidations += 1


class FakeCache:
    """CacheService replacement keeping JSON values in a dict."""

    def __init__(self):
        self.values: dict[str, Any] = {}

    @property
    def connected(self) -> bool:
        return True

    async def get(self, key: str):
        return self.values.get(key)

    async def set(self, key: str, value: str, ttl: timedelta | None = None) -> None:
        self.values[key] = value

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)

    async def get_json(self, key: str):
        value = self.values.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set_json(self, key: str, value: Any, ttl: timedelta | None = None) -> None:
        self.values[key] = copy.deepcopy(value)


class InMemoryViewLogRepository:
    def __init__(self):
        self.views: list[dict[str, Any]] = []
        self.durations: list[dict[str, Any]] = []
        self.fail_writes = False

    async def has_recent_view(self, db, *, entry_id: str, ip_hash: str, since_epoch: int) -> bool:
        return any(
            row["entry_id"] == entry_id and row["ip_address"] == ip_hash and row["viewed_at"] > since_epoch
            for row in self.views
        )

    async def add_view(self, db, *, entry_id: str, ip_hash: str, viewed_at: int) -> None:
        if self.fail_writes:
            raise RuntimeError("view_logs unavailable")
        self.views.append({"entry_id": entry_id, "ip_address": ip_hash, "viewed_at": viewed_at})

    async def add_duration(self, db, *, entry_id: str, duration_seconds: int, logged_at: int, ip_hash) -> None:
        self.durations.append(
            {"entry_id": entry_id, "duration_seconds": duration_seconds, "logged_at": logged_at, "ip_address": ip_hash}
        )

    async def clear_entry(self, db, entry_id: str) -> int:
        before = len(self.views)
        self.views = [row for row in self.views if row["entry_id"] != entry_id]
        self.durations = [row for row in self.durations if row["entry_id"] != entry_id]
        return before - len(self.views)


class _NullSession:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def null_session_factory() -> _NullSession:
    return _NullSession()


class FakeClock:
    """Controllable wall clock usable both as a datetime and an epoch source."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def epoch(self) -> float:
        return self.now.timestamp()

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)
