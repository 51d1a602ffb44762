# src/digiteam/backends/ordering.py

from __future__ import annotations

import copy
from collections.abc import Iterable
from datetime import date, datetime, timezone
from typing import Any

from ..core.ports import ArrayUnion, Document, OrderBy


def _sort_key(value: Any) -> tuple[int, Any]:
    # Numbers before text; dates/timestamps compare as UTC ISO text.
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, datetime):
        ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return (1, ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"))
    if isinstance(value, date):
        return (1, value.isoformat())
    if isinstance(value, str):
        return (1, value)
    return (2, str(value))


def ordered_snapshot(docs: Iterable[Document], order: OrderBy) -> list[Document]:
    """
    Order documents the way a query with a single orderBy does.

    Documents without the order field are not part of the result. Ties are broken
    by document id (reversed together with the direction).
    """
    present = [d for d in docs if d.get(order.field) is not None]
    present.sort(
        key=lambda d: (_sort_key(d[order.field]), str(d.get("id", ""))),
        reverse=order.descending,
    )
    return present


def apply_update(current: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    """Merge a partial update into a stored field map. Untouched fields are kept."""
    out = copy.deepcopy(current)
    for key, value in fields.items():
        if isinstance(value, ArrayUnion):
            existing = out.get(key)
            items = list(existing) if isinstance(existing, list) else []
            for v in value.values:
                if v not in items:
                    items.append(copy.deepcopy(v))
            out[key] = items
        else:
            out[key] = copy.deepcopy(value)
    return out
