"""
Project review lifecycle.

Status transitions, review feedback and grading for a single ``Project``.
Functions here only mutate the project object they are given; loading,
committing and HTTP concerns stay in ``main``.

    Draft ──submit──▶ Under Review ──approve──▶ Approved
      ▲  │                          └─deny────▶ Rejected
      └──┘ save
"""

import math
from datetime import datetime
from typing import Any, Iterable, Optional

from exceptions import (
    AuthorizationError,
    ConcurrencyConflictError,
    EmptyFeedbackError,
    InvalidGradeError,
    InvalidTransitionError,
    MissingFeedbackError,
    ValidationError,
)
from logging_config import logger
from models import MemberRole, Project, ProjectStatus, Role


REVIEWER_ROLES = frozenset({Role.advisor, Role.coordinator})

GRADE_MIN = 0.0
GRADE_MAX = 100.0

# lower bound of each letter band
LETTER_GRADES = (
    (80.0, "A"),
    (75.0, "B+"),
    (70.0, "B"),
    (65.0, "C+"),
    (60.0, "C"),
    (55.0, "D+"),
    (50.0, "D"),
)

FEEDBACK_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.utcnow()


def _role(role: Any) -> Role:
    try:
        return Role(role)
    except ValueError:
        raise AuthorizationError(f"Unknown role '{role}'")


def _require_reviewer(project: Project, role: Role, actor_email: str, action: str) -> None:
    """Coordinators review any project; advisors only the ones they advise."""
    if role not in REVIEWER_ROLES:
        raise AuthorizationError(
            f"Only advisors or coordinators can {action}", role=role.value
        )
    if role == Role.advisor and not is_assigned_advisor(project, actor_email):
        raise AuthorizationError(
            "You are not assigned as the advisor for this project", role=role.value
        )


def is_assigned_advisor(project: Project, email: Optional[str]) -> bool:
    if not email or not project.advisor_email:
        return False
    return project.advisor_email.lower() == email.lower()


def _require_student(role: Role, action: str) -> None:
    if role != Role.student:
        raise AuthorizationError(f"Only students can {action}", role=role.value)


def check_version(project: Project, expected_version: Optional[int]) -> None:
    """Fail when the caller's view of the project is stale."""
    if expected_version is not None and project.version != expected_version:
        raise ConcurrencyConflictError(project.id, expected_version, project.version)


# ----------------------------------------
# Team validation
# ----------------------------------------

def primary_students(members: Iterable) -> list:
    return [
        m for m in members
        if m.role == MemberRole.student.value and bool(m.is_primary)
    ]


def validate_team(members: list, submitting: bool) -> None:
    """At most one primary student at all times; exactly one when submitting.

    A project without team members is a single-author project and is exempt.
    """
    primaries = primary_students(members)
    if len(primaries) > 1:
        raise ValidationError(
            "Only one student team member can be marked as primary",
            field="team_members",
        )
    if submitting and members and not primaries:
        raise ValidationError(
            "A primary student must be designated among the team members before submitting",
            field="team_members",
        )


# ----------------------------------------
# Student transitions
# ----------------------------------------

def _submit(project: Project, now: datetime) -> None:
    validate_team(project.team_members, submitting=True)
    project.status = ProjectStatus.under_review
    project.submission_date = now


def start(project: Project, actor_role: Any, submit: bool = False,
          now: Optional[datetime] = None) -> Project:
    """Give a newly built project its initial status."""
    role = _role(actor_role)
    _require_student(role, "create projects")
    now = _now(now)

    if submit:
        _submit(project, now)
    else:
        validate_team(project.team_members, submitting=False)
        project.status = ProjectStatus.draft
        project.submission_date = None

    project.last_modified = now
    return project


def ensure_editable(project: Project, actor_role: Any, actor_email: str) -> None:
    """Raise unless ``actor_email`` may edit ``project`` in its current status."""
    role = _role(actor_role)
    _require_student(role, "edit project details")

    members = {email.lower() for email in project.students}
    if actor_email.lower() not in members:
        raise AuthorizationError("You are not a member of this project", role=role.value)

    if project.status != ProjectStatus.draft:
        raise InvalidTransitionError("edit", project.status.value)


def save(project: Project, actor_role: Any, actor_email: str, submit: bool = False,
         now: Optional[datetime] = None) -> Project:
    """Finish an edit of a draft, optionally submitting it for review.

    Call after the edited fields have been applied to ``project``.
    """
    ensure_editable(project, actor_role, actor_email)
    now = _now(now)

    if submit:
        _submit(project, now)
    else:
        validate_team(project.team_members, submitting=False)

    project.last_modified = now
    logger.log_transition(
        project.id, "submit" if submit else "save", ProjectStatus.draft.value,
        project.status.value, Role(actor_role).value
    )
    return project


# ----------------------------------------
# Review transitions
# ----------------------------------------

def _require_under_review(project: Project, action: str) -> None:
    if project.status != ProjectStatus.under_review:
        raise InvalidTransitionError(action, project.status.value)


def approve(project: Project, actor_role: Any, actor_email: str,
            feedback: Optional[str] = None, now: Optional[datetime] = None) -> Project:
    role = _role(actor_role)
    _require_reviewer(project, role, actor_email, "approve projects")
    _require_under_review(project, "approve")
    now = _now(now)

    if feedback is not None and feedback.strip():
        add_feedback(project, role, actor_email, feedback, now)

    project.status = ProjectStatus.approved
    if project.submission_date is None:
        project.submission_date = now
    project.last_modified = now

    logger.log_transition(
        project.id, "approve", ProjectStatus.under_review.value, project.status.value, role.value
    )
    return project


def deny(project: Project, actor_role: Any, actor_email: str, feedback: Optional[str],
         now: Optional[datetime] = None) -> Project:
    role = _role(actor_role)
    _require_reviewer(project, role, actor_email, "reject projects")
    _require_under_review(project, "reject")
    if feedback is None or not feedback.strip():
        raise MissingFeedbackError()
    now = _now(now)

    add_feedback(project, role, actor_email, feedback, now)
    project.status = ProjectStatus.rejected
    project.last_modified = now

    logger.log_transition(
        project.id, "deny", ProjectStatus.under_review.value, project.status.value, role.value
    )
    return project


def review(project: Project, actor_role: Any, actor_email: str, target: ProjectStatus,
           feedback: Optional[str] = None, now: Optional[datetime] = None) -> Project:
    """Apply the review action that leads to ``target``."""
    if target == ProjectStatus.approved:
        return approve(project, actor_role, actor_email, feedback, now)
    if target == ProjectStatus.rejected:
        return deny(project, actor_role, actor_email, feedback, now)

    _require_reviewer(project, _role(actor_role), actor_email, "change project status")
    raise InvalidTransitionError(
        f"move to '{target.value}'",
        project.status.value,
        message=f"Reviewers can only approve or reject; '{target.value}' is not a review outcome",
    )


# ----------------------------------------
# Feedback and grade
# ----------------------------------------

def add_feedback(project: Project, actor_role: Any, actor_email: str, text: Optional[str],
                 now: Optional[datetime] = None) -> Project:
    """Append ``text`` to the feedback kept for the actor's role.

    Earlier entries are never replaced; each later entry goes on its own line
    with a timestamp prefix.
    """
    role = _role(actor_role)
    _require_reviewer(project, role, actor_email, "leave feedback")
    if text is None or not text.strip():
        raise EmptyFeedbackError()
    now = _now(now)
    text = text.strip()

    feedback = dict(project.feedback or {})
    existing = feedback.get(role.value)
    if existing:
        stamp = now.strftime(FEEDBACK_TIMESTAMP_FORMAT)
        feedback[role.value] = f"{existing}\n[{stamp}] {text}"
    else:
        feedback[role.value] = text

    # reassign so the JSON column is marked dirty
    project.feedback = feedback
    project.last_modified = now

    logger.info(
        f"Project {project.id}: feedback added by {role.value}",
        extra={"event_type": "feedback", "actor_role": role.value},
    )
    return project


def parse_grade(value: Any) -> Optional[float]:
    """Convert user input to a grade in [0, 100]; ``None`` clears it."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidGradeError(value)
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            number = float(value.strip())
        except ValueError:
            raise InvalidGradeError(value)
    elif isinstance(value, (int, float)):
        number = float(value)
    else:
        raise InvalidGradeError(value)

    if math.isnan(number) or math.isinf(number):
        raise InvalidGradeError(value)
    if number < GRADE_MIN or number > GRADE_MAX:
        raise InvalidGradeError(value, f"Grade must be between {GRADE_MIN:g} and {GRADE_MAX:g}")
    return number


def set_grade(project: Project, actor_role: Any, actor_email: str, grade: Any,
              now: Optional[datetime] = None) -> Project:
    role = _role(actor_role)
    _require_reviewer(project, role, actor_email, "grade projects")
    if project.status == ProjectStatus.draft:
        raise InvalidTransitionError(
            "grade", project.status.value,
            message="Draft projects cannot be graded until they are submitted for review",
        )

    project.grade = parse_grade(grade)
    project.last_modified = _now(now)

    logger.info(
        f"Project {project.id}: grade set to {project.grade} by {role.value}",
        extra={"event_type": "grade", "actor_role": role.value},
    )
    return project


def letter_grade(grade: Optional[float]) -> Optional[str]:
    if grade is None:
        return None
    for floor, letter in LETTER_GRADES:
        if grade >= floor:
            return letter
    return "F"
