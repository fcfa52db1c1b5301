"""Builders for record store filter expressions (PocketBase filter syntax)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def quote(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, datetime):
        value = format_timestamp(value)
    return "'" + str(value).replace("'", "''") + "'"


def format_timestamp(value: datetime) -> str:
    """Record store datetime format: 'YYYY-MM-DD HH:MM:SS.mmmZ' in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value:
        return None
    text = str(value).strip().replace("T", " ")
    if text.endswith("Z"):
        text = text[:-1]
    for fmt in ("%Y-%m-%d %H:%M:%S.%f", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def cmp(field: str, op: str, value: Any) -> str:
    return f"{field} {op} {quote(value)}"


def eq(field: str, value: Any) -> str:
    return cmp(field, "=", value)


def ne(field: str, value: Any) -> str:
    return cmp(field, "!=", value)


def like(field: str, value: str) -> str:
    return cmp(field, "~", value)


def all_of(*clauses: str | None) -> str:
    parts = [c for c in clauses if c]
    if len(parts) == 1:
        return parts[0]
    return " && ".join(f"({c})" if " || " in c else c for c in parts)


def any_of(*clauses: str | None) -> str:
    parts = [c for c in clauses if c]
    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0]
    return "(" + " || ".join(parts) + ")"
