from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

import requests

log = logging.getLogger(__name__)


def empty_profile() -> dict[str, Any]:
    return {
        "name": "",
        "email": "",
        "phone": "",
        "linkedinUrl": "",
        "portfolioUrl": "",
        "skills": [],
        "education": [],
        "experience": [],
        "projects": [],
    }


def _parsed(node: Any, *path: str) -> Any:
    """Walk ``node[path0]["parsed"][path1]...`` tolerating missing levels."""
    cur = node
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
        if isinstance(cur, dict) and "parsed" in cur:
            cur = cur.get("parsed")
    return cur


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        for key in ("raw", "value", "name"):
            if value.get(key):
                return str(value[key])
        return ""
    return str(value)


def _websites(data: dict[str, Any]) -> list[str]:
    out = []
    for w in data.get("websites") or []:
        url = _text(w).strip()
        if url:
            out.append(url)
    single = _text(data.get("website")).strip()
    if single:
        out.append(single)
    return out


def map_document(data: dict[str, Any]) -> dict[str, Any]:
    """Map an upstream parsed-resume document onto the profile shape."""
    profile = empty_profile()
    profile["name"] = _text(data.get("candidateName") or data.get("name")).strip()

    emails = data.get("emails") or []
    profile["email"] = _text(emails[0]).strip() if emails else ""
    phones = data.get("phoneNumbers") or []
    profile["phone"] = _text(phones[0]).strip() if phones else ""

    sites = _websites(data)
    profile["linkedinUrl"] = next((s for s in sites if "linkedin" in s.lower()), "")
    profile["portfolioUrl"] = next((s for s in sites if "linkedin" not in s.lower()), "")

    skills = []
    for s in data.get("skills") or []:
        if isinstance(s, dict):
            inner = s.get("parsed") if isinstance(s.get("parsed"), dict) else s
            name = _text(inner.get("name")).strip()
        else:
            name = _text(s).strip()
        if name and name not in skills:
            skills.append(name)
    profile["skills"] = skills

    for e in data.get("education") or []:
        item = e.get("parsed") if isinstance(e, dict) and isinstance(e.get("parsed"), dict) else e
        if not isinstance(item, dict):
            continue
        dates = _parsed(item, "educationDates") or {}
        end = dates.get("end") if isinstance(dates, dict) else None
        profile["education"].append(
            {
                "degree": _text(_parsed(item, "educationAccreditation")),
                "institution": _text(_parsed(item, "educationOrganization")),
                "year": _text(end.get("year")) if isinstance(end, dict) else "",
                "grade": _text(_parsed(item, "educationGrade", "educationGradeScore")),
            }
        )

    for w in data.get("workExperience") or []:
        item = w.get("parsed") if isinstance(w, dict) and isinstance(w.get("parsed"), dict) else w
        if not isinstance(item, dict):
            continue
        dates = item.get("workExperienceDates")
        profile["experience"].append(
            {
                "jobTitle": _text(_parsed(item, "workExperienceJobTitle")),
                "company": _text(_parsed(item, "workExperienceOrganization")),
                "duration": _text(dates.get("raw")) if isinstance(dates, dict) else _text(dates),
                "description": _text(_parsed(item, "workExperienceDescription")),
            }
        )

    for p in data.get("projects") or []:
        item = p.get("parsed") if isinstance(p, dict) and isinstance(p.get("parsed"), dict) else p
        if not isinstance(item, dict):
            continue
        profile["projects"].append(
            {
                "title": _text(_parsed(item, "projectTitle")),
                "description": _text(_parsed(item, "projectDescription")),
                "githubUrl": _text(item.get("githubUrl")),
                "liveUrl": _text(item.get("liveUrl")),
            }
        )
    return profile


def _fallback(reason: str) -> dict[str, Any]:
    log.warning("resume parse degraded: %s", reason)
    return {"parsed": False, "profile": empty_profile(), "reason": reason}


def parse_resume(*, cfg, file_base64: str, file_name: str, mime_type: str = "") -> dict[str, Any]:
    """Send a resume to the parsing service.

    Never raises for upstream problems: a missing configuration, a transport
    error, an HTTP error or an empty document all give ``parsed=False`` with
    an empty profile so the applicant can fill the form by hand.
    """
    url = str(cfg.RESUME_PARSER_URL or "").strip()
    if not url:
        return _fallback("parser not configured")

    try:
        content = base64.b64decode(str(file_base64 or ""), validate=True)
    except (binascii.Error, ValueError):
        return _fallback("file is not valid base64")
    if not content:
        return _fallback("empty file")

    headers: dict[str, str] = {}
    if cfg.RESUME_PARSER_API_KEY:
        headers["Authorization"] = f"Bearer {cfg.RESUME_PARSER_API_KEY}"
    form: dict[str, str] = {}
    if cfg.RESUME_PARSER_WORKSPACE:
        form["workspace"] = cfg.RESUME_PARSER_WORKSPACE

    files = {"file": (file_name or "resume.pdf", content, mime_type or "application/octet-stream")}
    try:
        resp = requests.post(url, data=form, files=files, headers=headers, timeout=cfg.RESUME_PARSER_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        return _fallback(f"request failed: {e}")

    if resp.status_code >= 400:
        return _fallback(f"HTTP {resp.status_code}: {str(resp.text or '').strip()[:200]}")

    try:
        body = resp.json()
    except ValueError:
        return _fallback("response is not JSON")

    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, dict) or not data:
        return _fallback("no data parsed")

    return {"parsed": True, "profile": map_document(data)}
