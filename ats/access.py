"""Who may act on a job and which recruiters are attached to it.

Everything here is pure: no database, no request globals. Handlers build a
``RequestContext`` once per request and pass it down explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional


ROLE_ORG_ADMIN = "OrgAdmin"
ROLE_SENIOR_HR = "SeniorHR"
ROLE_HR = "HR"
ROLE_CANDIDATE = "user"

RECRUITER_ROLES = (ROLE_ORG_ADMIN, ROLE_SENIOR_HR, ROLE_HR)
ALL_ROLES = RECRUITER_ROLES + (ROLE_CANDIDATE,)

_ROLE_BY_KEY = {r.lower(): r for r in ALL_ROLES}
# Display order used by recruiter pickers.
ROLE_RANK = {ROLE_ORG_ADMIN: 1, ROLE_SENIOR_HR: 2, ROLE_HR: 3}


def normalize_role(role: Any) -> Optional[str]:
    r = str(role or "").strip().lower()
    if not r:
        return None
    return _ROLE_BY_KEY.get(r)


@dataclass(frozen=True)
class RequestContext:
    valid: bool
    userId: str
    orgId: str
    role: str
    email: str = ""
    name: str = ""

    @property
    def is_org_admin(self) -> bool:
        return self.role == ROLE_ORG_ADMIN

    @property
    def is_recruiter(self) -> bool:
        return self.role in RECRUITER_ROLES


@dataclass(frozen=True)
class Resource:
    ownerId: str
    orgId: str
    assignedIds: frozenset[str] = field(default_factory=frozenset)


def is_authorized(user: Optional[RequestContext], resource: Optional[Resource]) -> bool:
    if user is None or resource is None:
        return False
    if not str(user.userId or "").strip() or not str(user.orgId or "").strip():
        return False
    if str(user.orgId) != str(resource.orgId or ""):
        return False

    if user.userId == resource.ownerId:
        return True
    if user.role == ROLE_ORG_ADMIN:
        return True
    return user.userId in resource.assignedIds


def can_manage(user: Optional[RequestContext], resource: Optional[Resource]) -> bool:
    """Owner or OrgAdmin of the same organization; assignment is not enough."""
    if not is_authorized(user, resource):
        return False
    return user.userId == resource.ownerId or user.role == ROLE_ORG_ADMIN


def locked_recruiter_ids(owner_id: str, requester: Optional[RequestContext]) -> set[str]:
    locked = {str(owner_id)} if owner_id else set()
    if requester is not None and requester.is_org_admin and requester.userId != owner_id:
        locked.add(requester.userId)
    return locked


class RecruiterAccessSet:
    """Assigned recruiters of one job.

    Locked ids are always members; ``remove`` leaves them in place and
    ``replace`` unions them back in.
    """

    def __init__(self, assigned: Iterable[str] = (), locked: Iterable[str] = ()):
        self._locked = {str(x) for x in locked if str(x or "").strip()}
        self._ids: list[str] = []
        for x in sorted(self._locked) + [str(x) for x in assigned]:
            self._append(x)

    def _append(self, rid: str) -> None:
        rid = str(rid or "").strip()
        if rid and rid not in self._ids:
            self._ids.append(rid)

    @property
    def locked(self) -> frozenset[str]:
        return frozenset(self._locked)

    def add(self, rid: str) -> None:
        self._append(rid)

    def remove(self, rid: str) -> bool:
        rid = str(rid or "").strip()
        if rid in self._locked or rid not in self._ids:
            return False
        self._ids.remove(rid)
        return True

    def replace(self, ids: Iterable[str]) -> None:
        self._ids = []
        for x in sorted(self._locked):
            self._append(x)
        for x in ids:
            self._append(x)

    def ids(self) -> list[str]:
        return list(self._ids)

    def __contains__(self, rid: object) -> bool:
        return rid in self._ids

    def __len__(self) -> int:
        return len(self._ids)


def partition_recruiters(
    all_recruiters: Iterable[dict[str, Any]],
    assigned_ids: Iterable[str],
    locked_ids: Iterable[str],
) -> dict[str, list[dict[str, Any]]]:
    """Split recruiters into locked, additional (assigned) and available.

    Every recruiter lands in exactly one bucket; input order is kept.
    """
    assigned = {str(x) for x in assigned_ids}
    locked = {str(x) for x in locked_ids}

    out: dict[str, list[dict[str, Any]]] = {"locked": [], "additional": [], "available": []}
    for r in all_recruiters:
        rid = str(r.get("id") or r.get("userId") or "")
        if rid in locked:
            out["locked"].append(r)
        elif rid in assigned:
            out["additional"].append(r)
        else:
            out["available"].append(r)
    return out
