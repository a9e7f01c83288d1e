from __future__ import annotations

from typing import Any, Optional

from ats.access import RequestContext
from ats.actions.helpers import append_audit
from ats.models import Profile
from ats.utils.datetime import iso_utc_now
from ats.utils.errors import ApiError
from ats.utils.jsonfields import dump_json, load_json_list
from ats.utils.validators import str_list

PROFILE_TEXT_FIELDS = ("phone", "linkedinUrl", "portfolioUrl", "resumeUrl")
# list fields and the column each one is stored in
PROFILE_LIST_FIELDS = {
    "education": "educationJson",
    "experience": "experienceJson",
    "projects": "projectsJson",
}


def profile_to_dict(p: Profile) -> dict[str, Any]:
    out: dict[str, Any] = {"userId": p.userId}
    for key in PROFILE_TEXT_FIELDS:
        out[key] = getattr(p, key) or ""
    out["skills"] = load_json_list(p.skillsJson)
    for key, column in PROFILE_LIST_FIELDS.items():
        out[key] = load_json_list(getattr(p, column))
    out["createdAt"] = p.createdAt
    out["updatedAt"] = p.updatedAt
    return out


def _entries(data: dict, key: str) -> list[dict[str, Any]]:
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(x, dict) for x in raw):
        raise ApiError("BAD_REQUEST", f"{key} must be a list of objects", status=400)
    return raw


def upsert_profile(db, user_id: str, data: dict) -> tuple[Profile, bool]:
    """Insert or replace the profile of ``user_id`` with the fields in ``data``."""
    profile: Optional[Profile] = db.get(Profile, user_id)
    created = profile is None
    now = iso_utc_now()
    if created:
        profile = Profile(userId=user_id, createdAt=now)
        db.add(profile)

    for key in PROFILE_TEXT_FIELDS:
        setattr(profile, key, str(data.get(key) or "").strip())
    profile.skillsJson = dump_json(str_list(data.get("skills")), "[]")
    for key, column in PROFILE_LIST_FIELDS.items():
        setattr(profile, column, dump_json(_entries(data, key), "[]"))
    profile.updatedAt = now
    return profile, created


def application_defaults(db, user_id: str) -> dict[str, Any]:
    """Saved profile values an application starts from; empty without a profile."""
    profile = db.get(Profile, user_id)
    if profile is None:
        return {}
    out = profile_to_dict(profile)
    for key in ("userId", "createdAt", "updatedAt"):
        out.pop(key, None)
    return {k: v for k, v in out.items() if v not in ("", [])}


def profile_get(data, auth: RequestContext | None, db, cfg):
    profile = db.get(Profile, auth.userId)
    if profile is None:
        return {"profile": None, "isProfileComplete": False}
    return {"profile": profile_to_dict(profile), "isProfileComplete": True}


def profile_save(data, auth: RequestContext | None, db, cfg):
    profile, created = upsert_profile(db, auth.userId, data)
    append_audit(
        db,
        entityType="PROFILE",
        entityId=auth.userId,
        action="PROFILE_SAVE",
        stageTag="PROFILE",
        actor=auth,
        toState="CREATED" if created else "UPDATED",
        meta={"skills": len(load_json_list(profile.skillsJson))},
    )
    return {"profile": profile_to_dict(profile), "isProfileComplete": True}
