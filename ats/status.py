from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ats.utils.errors import ApiError


class ApplicationStatus(str, Enum):
    SUBMITTED = "submitted"
    SHORTLISTED = "shortlisted"
    TEST_SCHEDULED = "test_scheduled"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    WAITING_FOR_RESULT = "waiting_for_result"
    HIRED = "hired"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: Any) -> "ApplicationStatus":
        s = str(value.value if isinstance(value, ApplicationStatus) else value or "").strip().lower()
        try:
            return cls(s)
        except ValueError as e:
            raise ApiError(
                "VALIDATION_FAILED",
                f"Unknown application status: {s or '(empty)'}",
                status=400,
                details={"allowed": [x.value for x in cls]},
            ) from e


S = ApplicationStatus

TRANSITIONS: dict[ApplicationStatus, tuple[ApplicationStatus, ...]] = {
    S.SUBMITTED: (S.SHORTLISTED, S.TEST_SCHEDULED, S.INTERVIEW_SCHEDULED, S.REJECTED),
    S.SHORTLISTED: (S.TEST_SCHEDULED, S.INTERVIEW_SCHEDULED, S.REJECTED),
    S.TEST_SCHEDULED: (S.INTERVIEW_SCHEDULED, S.REJECTED),
    S.INTERVIEW_SCHEDULED: (S.WAITING_FOR_RESULT, S.REJECTED),
    S.WAITING_FOR_RESULT: (S.HIRED, S.REJECTED),
    S.HIRED: (),
    S.REJECTED: (),
}

TERMINAL = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


@dataclass(frozen=True)
class ActionMeta:
    label: str
    description: str
    note_template: str


ACTION_META: dict[ApplicationStatus, ActionMeta] = {
    S.SHORTLISTED: ActionMeta(
        "Shortlist Candidate",
        "Move candidate to shortlisted pool for further evaluation",
        "Candidate {name} has been shortlisted for {job} position. Strong match based on skills and experience.",
    ),
    S.TEST_SCHEDULED: ActionMeta(
        "Assign Test",
        "Send assessment test to evaluate candidate skills",
        "Technical assessment test assigned to {name} for {job} position.",
    ),
    S.INTERVIEW_SCHEDULED: ActionMeta(
        "Schedule Interview",
        "Arrange interview with the candidate",
        "Interview scheduled with {name} for {job} position.",
    ),
    S.WAITING_FOR_RESULT: ActionMeta(
        "Mark Interview Completed",
        "Interview is done and the final decision is pending",
        "Interview completed with {name}. Waiting for final decision.",
    ),
    S.HIRED: ActionMeta(
        "Hire Candidate",
        "Final decision - Hire the candidate",
        "Congratulations! {name} has been hired for {job} position.",
    ),
    S.REJECTED: ActionMeta(
        "Reject Application",
        "Reject candidate at this stage",
        "Application from {name} has been rejected for {job} position.",
    ),
}


@dataclass(frozen=True)
class InvalidTransitionError(ApiError):
    code: str = "VALIDATION_FAILED"
    message: str = "Invalid status transition"
    status: int = 400
    details: Any | None = None


def allowed_targets(current: Any) -> tuple[ApplicationStatus, ...]:
    return TRANSITIONS[ApplicationStatus.parse(current)]


def is_terminal(status: Any) -> bool:
    return ApplicationStatus.parse(status) in TERMINAL


def can_transition(current: Any, target: Any) -> bool:
    return ApplicationStatus.parse(target) in allowed_targets(current)


def check_transition(current: Any, target: Any) -> ApplicationStatus:
    """Return the parsed target, or raise ``InvalidTransitionError``."""
    cur = ApplicationStatus.parse(current)
    tgt = ApplicationStatus.parse(target)
    if tgt not in TRANSITIONS[cur]:
        raise InvalidTransitionError(
            message=f"Cannot move application from {cur.value} to {tgt.value}",
            details={"from": cur.value, "to": tgt.value, "allowed": [s.value for s in TRANSITIONS[cur]]},
        )
    return tgt


def default_note(target: Any, *, candidate_name: str, job_title: str) -> str:
    meta = ACTION_META.get(ApplicationStatus.parse(target))
    if meta is None:
        return ""
    return meta.note_template.format(name=candidate_name or "Candidate", job=job_title or "the")


def available_actions(current: Any, *, candidate_name: str = "", job_title: str = "") -> list[dict[str, str]]:
    out: list[dict[str, str]] = []
    for tgt in allowed_targets(current):
        meta = ACTION_META[tgt]
        out.append(
            {
                "status": tgt.value,
                "label": meta.label,
                "description": meta.description,
                "defaultNote": default_note(tgt, candidate_name=candidate_name, job_title=job_title),
            }
        )
    return out
