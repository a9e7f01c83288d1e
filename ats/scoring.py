from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional


QUESTION_TYPES = ("mcq_single", "mcq_multiple", "text", "coding")
AUTO_GRADED_TYPES = frozenset({"mcq_single", "mcq_multiple"})


def _as_float(raw: Any) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        s = str(raw if raw is not None else "").strip()
        if not s:
            return None
        try:
            value = float(s)
        except ValueError:
            return None
    if not math.isfinite(value):
        return None
    return value


def clamp_mark(raw: Any, max_marks: Any) -> float:
    """Clamp a reviewer-entered mark into ``[0, max_marks]``.

    Anything that is not a finite number becomes 0.
    """
    upper = _as_float(max_marks)
    if upper is None or upper < 0:
        upper = 0.0
    value = _as_float(raw)
    if value is None:
        return 0.0
    return max(0.0, min(value, upper))


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


@dataclass(frozen=True)
class ScoredResponse:
    marksAwarded: float
    maxMarks: float


@dataclass(frozen=True)
class ScoreSummary:
    correctCount: int
    incorrectCount: int
    partialCount: int
    totalScore: float
    totalPossible: float
    percentage: int
    passed: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "correctCount": self.correctCount,
            "incorrectCount": self.incorrectCount,
            "partialCount": self.partialCount,
            "totalScore": self.totalScore,
            "totalPossible": self.totalPossible,
            "percentage": self.percentage,
            "passed": self.passed,
        }


def summarize(responses: Iterable[ScoredResponse], passing_marks: Any) -> ScoreSummary:
    correct = incorrect = partial = 0
    total = 0.0
    possible = 0.0
    for r in responses:
        max_marks = _as_float(r.maxMarks) or 0.0
        awarded = clamp_mark(r.marksAwarded, max_marks)
        total += awarded
        possible += max_marks
        if awarded == max_marks:
            correct += 1
        elif awarded == 0:
            incorrect += 1
        else:
            partial += 1

    percentage = round_half_up(total / possible * 100) if possible > 0 else 0
    passing = _as_float(passing_marks) or 0.0
    return ScoreSummary(
        correctCount=correct,
        incorrectCount=incorrect,
        partialCount=partial,
        totalScore=round(total, 2),
        totalPossible=round(possible, 2),
        percentage=percentage,
        passed=percentage >= passing,
    )


@dataclass(frozen=True)
class GradeResult:
    marksAwarded: float
    isAutoGraded: bool
    explanation: str


def grade_response(
    question_type: str,
    marks: Any,
    *,
    selected_options: Optional[list] = None,
    correct_options: Optional[list] = None,
) -> GradeResult:
    max_marks = _as_float(marks) or 0.0
    selected = [str(x) for x in (selected_options or [])]
    correct = [str(x) for x in (correct_options or [])]

    if question_type == "mcq_single":
        if not selected or not correct:
            return GradeResult(0.0, True, "Missing selected options or correct options")
        if selected[0] == correct[0]:
            return GradeResult(max_marks, True, "Correct answer selected")
        return GradeResult(0.0, True, f"Incorrect. Selected: {selected[0]}, Expected: {correct[0]}")

    if question_type == "mcq_multiple":
        correct_set = set(correct)
        selected_set = set(selected)
        if not correct_set:
            return GradeResult(0.0, True, "No correct options configured")
        right = len(selected_set & correct_set)
        wrong = len(selected_set - correct_set)
        per_option = max_marks / len(correct_set)
        awarded = round(max(0.0, (right - wrong) * per_option), 2)
        explanation = f"Selected {right}/{len(correct_set)} correct options"
        if wrong:
            explanation += f", {wrong} incorrect"
        return GradeResult(min(awarded, max_marks), True, explanation)

    # text and coding answers wait for a reviewer.
    return GradeResult(0.0, False, "Pending manual evaluation")


SKILL_MATCH_WEIGHT = 25.0
LINK_BONUS = 2.5
OBJECTIVE_MAX = SKILL_MATCH_WEIGHT + 2 * LINK_BONUS


def _profile_text(entries: Any) -> str:
    parts: list[str] = []
    for e in entries or []:
        if isinstance(e, dict):
            parts.append(str(e.get("description") or ""))
        else:
            parts.append(str(e or ""))
    return " ".join(parts).lower()


def skill_match_points(required_skills: Iterable[str], profile: dict[str, Any]) -> float:
    required = {str(s).strip().lower() for s in (required_skills or []) if str(s or "").strip()}
    if not required:
        return SKILL_MATCH_WEIGHT

    listed = {str(s).strip().lower() for s in (profile.get("skills") or []) if str(s or "").strip()}
    matched = required & listed

    text = _profile_text(profile.get("experience")) + " " + _profile_text(profile.get("projects"))
    for skill in required:
        if skill in text or skill.split(" ")[0] in text:
            matched.add(skill)

    return len(matched) / len(required) * SKILL_MATCH_WEIGHT


def resume_match_score(required_skills: Iterable[str], profile: dict[str, Any]) -> float:
    """Objective 0-100 score: skill overlap plus LinkedIn/portfolio bonus."""
    profile = profile or {}
    bonus = 0.0
    for key in ("linkedinUrl", "portfolioUrl"):
        if str(profile.get(key) or "").startswith("http"):
            bonus += LINK_BONUS
    points = skill_match_points(required_skills, profile) + bonus
    return round(points / OBJECTIVE_MAX * 100, 2)
