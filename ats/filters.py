from __future__ import annotations

from typing import Any, Iterable, Optional


# sort key accepted from clients -> row field
SORT_FIELDS = {
    "applied_at": "appliedAt",
    "resume_score": "resumeScore",
    "updated_at": "updatedAt",
}
SEARCH_FIELDS = ("name", "email", "department")


def _score(item: dict[str, Any]) -> float:
    raw = item.get("resumeScore")
    try:
        return float(raw) if raw is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def _sort_value(item: dict[str, Any], key: str) -> Any:
    if key == "resume_score":
        return _score(item)
    return str(item.get(SORT_FIELDS[key]) or "")


def apply_filters(
    items: Iterable[dict[str, Any]],
    *,
    status_filter: str = "all",
    search_text: str = "",
    score_min: Optional[float] = None,
    score_max: Optional[float] = None,
    sort_key: str = "applied_at",
    sort_order: str = "desc",
) -> list[dict[str, Any]]:
    """Filter and order application rows for a listing.

    Rows carry ``status``, ``resumeScore``, ``appliedAt``, ``updatedAt`` and
    the searchable ``name``/``email``/``department``. A missing score counts
    as 0. The input is not modified and ties keep their input order.
    """
    if sort_key not in SORT_FIELDS:
        sort_key = "applied_at"
    descending = str(sort_order or "").lower() != "asc"

    status = str(status_filter or "all").strip().lower()
    needle = str(search_text or "").strip().lower()

    out: list[dict[str, Any]] = []
    for it in items:
        if status != "all" and str(it.get("status") or "").lower() != status:
            continue
        if needle and not any(needle in str(it.get(f) or "").lower() for f in SEARCH_FIELDS):
            continue
        score = _score(it)
        if score_min is not None and score < score_min:
            continue
        if score_max is not None and score > score_max:
            continue
        out.append(it)

    return sorted(out, key=lambda x: _sort_value(x, sort_key), reverse=descending)
