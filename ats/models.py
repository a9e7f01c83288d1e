from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, Float, Integer, String, Text, UniqueConstraint

from ats.db import Base


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


class Organization(Base):
    __tablename__ = "organizations"

    orgId = Column(String, primary_key=True)
    name = Column(Text, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="")


class User(Base):
    __tablename__ = "users"

    userId = Column(String, primary_key=True)
    # Empty for candidates, who do not belong to an organization.
    orgId = Column(String, nullable=False, default="", index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    passwordHash = Column(Text, nullable=False, default="")
    firstName = Column(Text, nullable=False, default="")
    lastName = Column(Text, nullable=False, default="")
    role = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="ACTIVE")
    lastLoginAt = Column(Text, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")

    @property
    def fullName(self) -> str:
        return f"{self.firstName or ''} {self.lastName or ''}".strip()


class Profile(Base):
    """Candidate profile; one row per user, written by upsert."""

    __tablename__ = "profiles"

    userId = Column(String, primary_key=True)
    phone = Column(Text, nullable=False, default="")
    linkedinUrl = Column(Text, nullable=False, default="")
    portfolioUrl = Column(Text, nullable=False, default="")
    resumeUrl = Column(Text, nullable=False, default="")
    skillsJson = Column(Text, nullable=False, default="[]")
    educationJson = Column(Text, nullable=False, default="[]")
    experienceJson = Column(Text, nullable=False, default="[]")
    projectsJson = Column(Text, nullable=False, default="[]")
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class Job(Base):
    __tablename__ = "jobs"

    jobId = Column(String, primary_key=True)
    orgId = Column(String, nullable=False, index=True)
    postedBy = Column(String, nullable=False, index=True)
    title = Column(Text, nullable=False, default="")
    department = Column(Text, nullable=False, default="")
    jobType = Column(String, nullable=False, default="")
    workMode = Column(String, nullable=False, default="")
    location = Column(Text, nullable=False, default="")
    minSalary = Column(Float, nullable=True)
    maxSalary = Column(Float, nullable=True)
    currency = Column(String, nullable=False, default="")
    experienceLevel = Column(String, nullable=False, default="")
    requiredSkillsJson = Column(Text, nullable=False, default="[]")
    qualificationsJson = Column(Text, nullable=False, default="[]")
    responsibilitiesJson = Column(Text, nullable=False, default="[]")
    description = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="Draft", index=True)
    assignedRecruitersJson = Column(Text, nullable=False, default="[]")
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (UniqueConstraint("jobId", "applicantId", name="uq_applications_job_applicant"),)

    applicationId = Column(String, primary_key=True)
    jobId = Column(String, nullable=False, index=True)
    applicantId = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="submitted", index=True)
    resumeScore = Column(Float, nullable=True)
    coverLetter = Column(Text, nullable=False, default="")
    applicationDataJson = Column(Text, nullable=False, default="{}")
    appliedAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class ApplicationStatusHistory(Base):
    __tablename__ = "application_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    applicationId = Column(String, nullable=False, index=True)
    oldStatus = Column(String, nullable=False, default="")
    newStatus = Column(String, nullable=False, default="")
    performedBy = Column(String, nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    performedAt = Column(Text, nullable=False, default="")


class Test(Base):
    __test__ = False
    __tablename__ = "tests"

    testId = Column(String, primary_key=True)
    orgId = Column(String, nullable=False, index=True)
    createdBy = Column(String, nullable=False, default="")
    title = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    instructions = Column(Text, nullable=False, default="")
    durationMinutes = Column(Integer, nullable=False, default=60)
    questionCount = Column(Integer, nullable=False, default=0)
    totalMarks = Column(Float, nullable=False, default=0)
    # Percentage of totalMarks needed to pass.
    passingMarks = Column(Float, nullable=False, default=0)
    isProctored = Column(Boolean, nullable=False, default=False)
    proctoringSettingsJson = Column(Text, nullable=False, default="{}")
    isActive = Column(Boolean, nullable=False, default=True)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class TestQuestion(Base):
    __test__ = False
    __tablename__ = "test_questions"

    questionId = Column(String, primary_key=True)
    testId = Column(String, nullable=False, index=True)
    questionType = Column(String, nullable=False)
    questionText = Column(Text, nullable=False, default="")
    optionsJson = Column(Text, nullable=False, default="[]")
    correctAnswer = Column(Text, nullable=False, default="")
    correctOptionsJson = Column(Text, nullable=False, default="[]")
    explanation = Column(Text, nullable=False, default="")
    marks = Column(Float, nullable=False, default=1)
    difficulty = Column(String, nullable=False, default="medium")
    orderIndex = Column(Integer, nullable=False, default=0)


class TestAssignment(Base):
    __test__ = False
    __tablename__ = "test_assignments"
    __table_args__ = (UniqueConstraint("testId", "applicationId", name="uq_test_assignments_test_application"),)

    assignmentId = Column(String, primary_key=True)
    testId = Column(String, nullable=False, index=True)
    applicationId = Column(String, nullable=False, index=True)
    assignedBy = Column(String, nullable=False, default="")
    startAt = Column(Text, nullable=False, default="")
    endAt = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="assigned")
    isProctored = Column(Boolean, nullable=False, default=False)
    proctoringSettingsJson = Column(Text, nullable=False, default="{}")
    assignedAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class TestAttempt(Base):
    __test__ = False
    __tablename__ = "test_attempts"
    __table_args__ = (UniqueConstraint("testId", "applicationId", name="uq_test_attempts_test_application"),)

    attemptId = Column(String, primary_key=True)
    testId = Column(String, nullable=False, index=True)
    applicationId = Column(String, nullable=False, index=True)
    applicantId = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="not_started")
    startedAt = Column(Text, nullable=False, default="")
    submittedAt = Column(Text, nullable=False, default="")
    totalScore = Column(Float, nullable=False, default=0)
    percentage = Column(Integer, nullable=False, default=0)
    isPassed = Column(Boolean, nullable=False, default=False)
    isEvaluated = Column(Boolean, nullable=False, default=False)
    proctoringDataJson = Column(Text, nullable=False, default="{}")
    violationScore = Column(Integer, nullable=False, default=0)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class TestResponse(Base):
    __test__ = False
    __tablename__ = "test_responses"
    __table_args__ = (UniqueConstraint("attemptId", "questionId", name="uq_test_responses_attempt_question"),)

    responseId = Column(String, primary_key=True)
    attemptId = Column(String, nullable=False, index=True)
    questionId = Column(String, nullable=False, index=True)
    answer = Column(Text, nullable=False, default="")
    selectedOptionsJson = Column(Text, nullable=False, default="[]")
    marksAwarded = Column(Float, nullable=False, default=0)
    isAutoGraded = Column(Boolean, nullable=False, default=False)
    explanation = Column(Text, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class MarkAdjustment(Base):
    __tablename__ = "mark_adjustments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    responseId = Column(String, nullable=False, index=True)
    attemptId = Column(String, nullable=False, index=True)
    previousMarks = Column(Float, nullable=False, default=0)
    newMarks = Column(Float, nullable=False, default=0)
    reason = Column(Text, nullable=False, default="")
    adjustedBy = Column(String, nullable=False, default="")
    adjustedAt = Column(Text, nullable=False, default="")


class Interview(Base):
    __tablename__ = "interviews"

    interviewId = Column(String, primary_key=True)
    jobId = Column(String, nullable=False, index=True)
    applicationId = Column(String, nullable=False, index=True)
    applicantId = Column(String, nullable=False, index=True)
    scheduledBy = Column(String, nullable=False, default="")
    scheduledAt = Column(Text, nullable=False, default="")
    durationMinutes = Column(Integer, nullable=False, default=60)
    interviewType = Column(String, nullable=False, default="video")
    meetingPlatform = Column(Text, nullable=False, default="")
    meetingLink = Column(Text, nullable=False, default="")
    meetingLocation = Column(Text, nullable=False, default="")
    interviewersJson = Column(Text, nullable=False, default="[]")
    notes = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="scheduled")
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class AuditLog(Base):
    __tablename__ = "audit_log"

    logId = Column(String, primary_key=True)
    entityType = Column(String, nullable=False, default="")
    entityId = Column(String, nullable=False, default="")
    action = Column(String, nullable=False, default="")
    fromState = Column(String, nullable=False, default="")
    toState = Column(String, nullable=False, default="")
    stageTag = Column(String, nullable=False, default="")
    remark = Column(Text, nullable=False, default="")
    actorUserId = Column(String, nullable=False, default="")
    actorRole = Column(String, nullable=False, default="")
    at = Column(Text, nullable=False, default="")
    metaJson = Column(Text, nullable=False, default="{}")
