from __future__ import annotations

from ats.filters import apply_filters


def _row(i: int, **kw) -> dict:
    base = {
        "id": f"A{i}",
        "name": f"Person {i}",
        "email": f"p{i}@example.com",
        "department": "Engineering",
        "status": "submitted",
        "resumeScore": 50,
        "appliedAt": f"2025-01-0{i}T00:00:00.000Z",
        "updatedAt": f"2025-01-0{i}T00:00:00.000Z",
    }
    base.update(kw)
    return base


def test_status_filter_is_idempotent():
    items = [_row(1, status="rejected"), _row(2, status="hired")]
    once = apply_filters(items, status_filter="hired")
    assert [r["id"] for r in once] == ["A2"]
    assert apply_filters(once, status_filter="hired") == once


def test_search_is_case_insensitive_over_name_email_department():
    items = [_row(1, name="Ada Lovelace"), _row(2, email="GRACE@navy.mil"), _row(3, department="Sales")]
    assert [r["id"] for r in apply_filters(items, search_text="ada")] == ["A1"]
    assert [r["id"] for r in apply_filters(items, search_text="grace")] == ["A2"]
    assert [r["id"] for r in apply_filters(items, search_text="SALES")] == ["A3"]


def test_score_range_is_inclusive_and_missing_counts_as_zero():
    items = [_row(1, resumeScore=10), _row(2, resumeScore=20), _row(3, resumeScore=None)]
    ids = [r["id"] for r in apply_filters(items, score_min=10, score_max=20, sort_order="asc")]
    assert ids == ["A1", "A2"]
    assert [r["id"] for r in apply_filters(items, score_max=0)] == ["A3"]


def test_sorting_and_stable_ties():
    items = [_row(1, resumeScore=70), _row(2, resumeScore=90), _row(3, resumeScore=70)]
    desc = apply_filters(items, sort_key="resume_score", sort_order="desc")
    assert [r["id"] for r in desc] == ["A2", "A1", "A3"]
    asc = apply_filters(items, sort_key="resume_score", sort_order="asc")
    assert [r["id"] for r in asc] == ["A1", "A3", "A2"]
    by_date = apply_filters(items, sort_key="applied_at", sort_order="desc")
    assert [r["id"] for r in by_date] == ["A3", "A2", "A1"]


def test_input_is_not_modified():
    items = [_row(2), _row(1)]
    snapshot = [dict(r) for r in items]
    apply_filters(items, sort_key="applied_at", sort_order="asc")
    assert items == snapshot
