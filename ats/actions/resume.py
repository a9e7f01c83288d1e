from __future__ import annotations

from ats.access import RequestContext
from ats.actions.helpers import append_audit
from ats.actions.profile import application_defaults, profile_to_dict, upsert_profile
from ats.services.resume_parser import parse_resume
from ats.utils.errors import ApiError
from ats.utils.validators import opt_str, require_str

# ~5 MB of file content once decoded
MAX_RESUME_BASE64_CHARS = 7_000_000


def _save_parsed(db, user_id: str, parsed: dict) -> dict:
    """Overlay non-empty parsed values on the saved profile."""
    merged = application_defaults(db, user_id)
    merged.update({k: v for k, v in parsed.items() if v not in ("", [], None)})
    profile, _created = upsert_profile(db, user_id, merged)
    return profile_to_dict(profile)


def resume_parse(data, auth: RequestContext | None, db, cfg):
    file_base64 = require_str(data, "fileBase64")
    if len(file_base64) > MAX_RESUME_BASE64_CHARS:
        raise ApiError("VALIDATION_FAILED", "Resume file is too large", status=400)

    file_name = opt_str(data, "fileName", "resume.pdf")
    result = parse_resume(
        cfg=cfg,
        file_base64=file_base64,
        file_name=file_name,
        mime_type=opt_str(data, "mimeType"),
    )
    saved = bool(data.get("saveToProfile")) and result["parsed"]
    if saved:
        result["savedProfile"] = _save_parsed(db, auth.userId, result["profile"])

    append_audit(
        db,
        entityType="USER",
        entityId=auth.userId,
        action="RESUME_PARSE",
        stageTag="APPLY",
        actor=auth,
        toState="PARSED" if result["parsed"] else "FALLBACK",
        meta={"fileName": file_name, "savedToProfile": saved},
    )
    return result
