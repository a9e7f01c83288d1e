from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import case, select
from sqlalchemy.exc import IntegrityError

from ats.access import (
    RECRUITER_ROLES,
    ROLE_CANDIDATE,
    ROLE_ORG_ADMIN,
    ROLE_SENIOR_HR,
    RequestContext,
    normalize_role,
)
from ats.actions.helpers import append_audit
from ats.models import Organization, User, new_id
from ats.utils.auth import context_for_user, create_access_token, hash_password, verify_password
from ats.utils.datetime import iso_utc_now
from ats.utils.errors import ApiError
from ats.utils.validators import opt_str, require_str, validate_email, validate_password

log = logging.getLogger(__name__)


def user_to_dict(u: User) -> dict[str, Any]:
    return {
        "id": u.userId,
        "orgId": u.orgId or None,
        "email": u.email,
        "firstName": u.firstName,
        "lastName": u.lastName,
        "name": u.fullName,
        "role": u.role,
        "status": u.status,
    }


def recruiter_dict(u: User) -> dict[str, Any]:
    return {"id": u.userId, "name": u.fullName, "email": u.email, "role": u.role}


def org_recruiters(db, org_id: str) -> list[User]:
    rank = case(
        (User.role == "OrgAdmin", 1),
        (User.role == "SeniorHR", 2),
        (User.role == "HR", 3),
        else_=4,
    )
    stmt = (
        select(User)
        .where(User.orgId == org_id)
        .where(User.role.in_(RECRUITER_ROLES))
        .where(User.status == "ACTIVE")
        .order_by(rank, User.firstName, User.lastName)
    )
    return list(db.execute(stmt).scalars().all())


def default_recruiter_selection(recruiters: list[User], ctx: RequestContext) -> tuple[list[str], list[str]]:
    """Recruiters pre-selected (and locked) when ``ctx`` creates a job."""
    if ctx.role == ROLE_ORG_ADMIN:
        return [ctx.userId], [ctx.userId]
    if ctx.role == ROLE_SENIOR_HR:
        ids = [ctx.userId]
        org_admin = next((r for r in recruiters if r.role == ROLE_ORG_ADMIN), None)
        if org_admin is not None:
            ids.append(org_admin.userId)
        return ids, list(ids)
    return [], []


def _email_taken(db, email: str) -> bool:
    return db.execute(select(User.userId).where(User.email == email)).first() is not None


def _new_user(*, org_id: str, email: str, password: str, first_name: str, last_name: str, role: str) -> User:
    now = iso_utc_now()
    return User(
        userId=new_id("U"),
        orgId=org_id,
        email=email,
        passwordHash=hash_password(password),
        firstName=first_name,
        lastName=last_name,
        role=role,
        status="ACTIVE",
        createdAt=now,
        updatedAt=now,
    )


def _session_payload(cfg, user: User) -> dict[str, Any]:
    return {
        "access_token": create_access_token(cfg, user),
        "token_type": "bearer",
        "user": user_to_dict(user),
    }


def org_create(data, auth: RequestContext | None, db, cfg):
    org_name = require_str(data, "orgName", "organization name")
    email = validate_email(data.get("email"))
    password = validate_password(data.get("password"), allow_short=False)
    first_name = require_str(data, "firstName", "first name")
    last_name = opt_str(data, "lastName")

    if _email_taken(db, email):
        raise ApiError("CONFLICT", "Email already exists", status=409)

    now = iso_utc_now()
    org = Organization(orgId=new_id("ORG"), name=org_name, createdAt=now)
    db.add(org)
    admin = _new_user(
        org_id=org.orgId,
        email=email,
        password=password,
        first_name=first_name,
        last_name=last_name,
        role=ROLE_ORG_ADMIN,
    )
    db.add(admin)

    actor = context_for_user(admin)
    append_audit(db, entityType="ORG", entityId=org.orgId, action="ORG_CREATE", stageTag="ORG", actor=actor)
    log.info("organization created org=%s admin=%s", org.orgId, admin.userId)

    out = _session_payload(cfg, admin)
    out["organization"] = {"id": org.orgId, "name": org.name}
    return out


def signup(data, auth: RequestContext | None, db, cfg):
    email = validate_email(data.get("email"))
    password = validate_password(data.get("password"), allow_short=False)
    first_name = require_str(data, "firstName", "first name")
    last_name = opt_str(data, "lastName")

    if _email_taken(db, email):
        raise ApiError("CONFLICT", "Email already exists", status=409)

    user = _new_user(
        org_id="",
        email=email,
        password=password,
        first_name=first_name,
        last_name=last_name,
        role=ROLE_CANDIDATE,
    )
    db.add(user)
    return _session_payload(cfg, user)


def login(data, auth: RequestContext | None, db, cfg):
    email = validate_email(data.get("email"))
    password = validate_password(data.get("password"), allow_short=True)

    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not verify_password(password, user.passwordHash or ""):
        raise ApiError("AUTH_INVALID", "Invalid credentials", status=401)
    if str(user.status or "ACTIVE").upper() != "ACTIVE":
        raise ApiError("FORBIDDEN", "User is disabled", status=403)

    user.lastLoginAt = iso_utc_now()
    return _session_payload(cfg, user)


def get_me(data, auth: RequestContext | None, db, cfg):
    user = db.get(User, auth.userId)
    if not user:
        raise ApiError("AUTH_INVALID", "User not found", status=401)
    out = user_to_dict(user)
    if user.orgId:
        org = db.get(Organization, user.orgId)
        out["organization"] = {"id": org.orgId, "name": org.name} if org else None
    return out


def user_create(data, auth: RequestContext | None, db, cfg):
    email = validate_email(data.get("email"))
    password = validate_password(data.get("password"), allow_short=False)
    first_name = require_str(data, "firstName", "first name")
    last_name = opt_str(data, "lastName")
    role = normalize_role(data.get("role") or "HR")
    if role not in RECRUITER_ROLES:
        raise ApiError("BAD_REQUEST", f"role must be one of {', '.join(RECRUITER_ROLES)}", status=400)

    if _email_taken(db, email):
        raise ApiError("CONFLICT", "Email already exists", status=409)

    user = _new_user(
        org_id=auth.orgId,
        email=email,
        password=password,
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError as e:
        raise ApiError("CONFLICT", "Email already exists", status=409) from e

    append_audit(
        db,
        entityType="USER",
        entityId=user.userId,
        action="USER_CREATE",
        stageTag="USER",
        actor=auth,
        toState=role,
    )
    return user_to_dict(user)


def recruiters_list(data, auth: RequestContext | None, db, cfg):
    recruiters = org_recruiters(db, auth.orgId)
    defaults, locked = default_recruiter_selection(recruiters, auth)
    return {
        "recruiters": [recruiter_dict(r) for r in recruiters],
        "defaultSelectedRecruiters": defaults,
        "lockedRecruiters": locked,
    }
